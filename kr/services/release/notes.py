"""Release body rendering and parsing.

The body carries, next to the human-readable asset list, one hidden
`kr:asset` marker per platform. Re-runs read these markers back to tell an
identical re-upload (skip) from a changed package (replace or conflict).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from kr.core.result import Err, Ok, Result
from kr.core.targets import PlatformTarget, ordered_targets
from kr.services.model import Artifact
from kr.services.release.errors import ReleaseError

_ENTRY_RE = re.compile(
    r"<!-- kr:asset platform=(?P<platform>[a-z]+) sha256=(?P<sha>[0-9a-f]{64})"
    r" size=(?P<size>\d+) signed=(?P<signed>yes|no) name=(?P<name>.+?) -->"
)


@dataclass(frozen=True, slots=True)
class AssetEntry:
    target: PlatformTarget
    name: str
    sha256: str
    size_bytes: int
    signed: bool

    @classmethod
    def of(cls, artifact: Artifact) -> AssetEntry:
        return cls(
            target=artifact.target,
            name=artifact.name,
            sha256=artifact.checksum,
            size_bytes=artifact.size_bytes,
            signed=artifact.signed,
        )

    def marker(self) -> str:
        signed = "yes" if self.signed else "no"
        return (
            f"<!-- kr:asset platform={self.target} sha256={self.sha256}"
            f" size={self.size_bytes} signed={signed} name={self.name} -->"
        )


def parse_asset_entries(body: str) -> dict[PlatformTarget, AssetEntry]:
    """Read back the per-platform markers of a release body."""
    entries: dict[PlatformTarget, AssetEntry] = {}
    known = {t.value: t for t in PlatformTarget}
    for m in _ENTRY_RE.finditer(body):
        target = known.get(m.group("platform"))
        if target is None:
            continue
        entries[target] = AssetEntry(
            target=target,
            name=m.group("name"),
            sha256=m.group("sha"),
            size_bytes=int(m.group("size")),
            signed=m.group("signed") == "yes",
        )
    return entries


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


def render_notes(
    *,
    title: str,
    entries: Mapping[PlatformTarget, AssetEntry],
    failures: Mapping[PlatformTarget, str],
    public_key: str | None = None,
    user_notes: str | None = None,
) -> str:
    lines: list[str] = [f"# {title}", ""]

    lines.append("## Assets")
    if not entries:
        lines.append("- (none)")
    for target in ordered_targets(entries):
        e = entries[target]
        signed = ", signed" if e.signed else ""
        lines.append(
            f"- {target}: `{e.name}` ({_format_size(e.size_bytes)}, sha256 `{e.sha256}`{signed})"
        )
        lines.append(e.marker())

    missing = [t for t in ordered_targets(failures) if t not in entries]
    if missing:
        lines.append("")
        lines.append("## Missing platforms")
        lines.append("This release is incomplete. The following platforms failed to build:")
        for target in missing:
            lines.append(f"- {target}: {failures[target]}")

    stale = [t for t in ordered_targets(failures) if t in entries]
    if stale:
        lines.append("")
        lines.append("## Failed in the latest run")
        for target in stale:
            lines.append(f"- {target}: {failures[target]} (asset above is from an earlier run)")

    if public_key:
        lines.append("")
        lines.append("## Updater public key")
        lines.append("```")
        lines.append(public_key)
        lines.append("```")

    if user_notes is not None and user_notes.strip():
        lines.append("")
        lines.append("## Notes")
        lines.append(user_notes.rstrip())

    return "\n".join(lines).rstrip() + "\n"


def load_notes_file(path: Path) -> Result[str, ReleaseError]:
    """Read a user-provided markdown notes file."""
    if path.suffix.lower() != ".md":
        return Err(
            ReleaseError(
                kind="invalid_input",
                message="notes file must be a .md file",
                hint=str(path),
            )
        )
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"failed to read notes file: {e}",
                hint=str(path),
            )
        )
    if not text.strip():
        return Err(
            ReleaseError(kind="invalid_input", message="notes file is empty", hint=str(path))
        )
    return Ok(text)
