from __future__ import annotations

import re
from dataclasses import dataclass

_STABLE_RE = re.compile(r"v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)", re.ASCII)
_VERSION_RE = re.compile(r"(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)", re.ASCII)


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def to_tag(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"


def parse_stable_tag(tag: str) -> SemVer | None:
    """Parse `vX.Y.Z`; anything else (pre-release, leading zeros, spaces) is None."""
    m = _STABLE_RE.fullmatch(tag)
    if m is None:
        return None
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def parse_version(version: str) -> SemVer | None:
    """Parse a bare `X.Y.Z` application version."""
    m = _VERSION_RE.fullmatch(version.strip())
    if m is None:
        return None
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)))
