"""Artifact locator.

Searches a platform's build output for its package with the platform's
ordered glob patterns. Exactly one candidate is a success; none is
`not_found`; several are `ambiguous` and are never resolved by picking one,
since shipping the wrong package is worse than failing loudly.

The locator only reads the output tree.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

from kr.core.result import Err, Ok, Result
from kr.core.targets import PlatformTarget
from kr.services.errors import LocateError
from kr.services.model import Artifact

__all__ = ["ArtifactLocator", "OutputSearch", "sha256_file"]


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


@dataclass(frozen=True, slots=True)
class OutputSearch:
    """Ordered glob patterns locating a package under an output root.

    Patterns are permissive on purpose: Tauri and Gradle move packages
    between releases (target triple directories, ABI split directories).
    Each file is attributed to the first pattern matching it; matches of all
    patterns are collected.
    """

    patterns: tuple[str, ...]
    extension: str

    def candidates(self, output_dir: Path, *, newer_than: float | None = None) -> list[Path]:
        """Return matching files in pattern order, without duplicates.

        Args:
            output_dir: Root of the platform's build output.
            newer_than: Ignore files last modified before this epoch time
                (packages left over from earlier builds).
        """
        if not output_dir.is_dir():
            return []

        seen: set[Path] = set()
        found: list[Path] = []
        for pattern in self.patterns:
            for path in sorted(output_dir.glob(pattern)):
                if not path.is_file() or not path.name.endswith(self.extension):
                    continue
                key = path.resolve()
                if key in seen:
                    continue
                seen.add(key)
                if newer_than is not None and path.stat().st_mtime < newer_than:
                    continue
                found.append(path)
        return found


def _unreadable(target: PlatformTarget, output_dir: Path, error: OSError) -> LocateError:
    # Permission denied, or the file vanished between glob and read.
    return LocateError(
        target=target, reason="unreadable", output_dir=output_dir, detail=str(error)
    )


class ArtifactLocator:
    def locate(
        self,
        target: PlatformTarget,
        search: OutputSearch,
        output_dir: Path,
        *,
        newer_than: float | None = None,
    ) -> Result[Artifact, LocateError]:
        """Locate the single package of `target` under `output_dir`.

        Returns:
            Ok(Artifact) with size and sha256 when exactly one file matches,
            Err(LocateError) with reason "not_found", "ambiguous", or
            "unreadable" when the output tree cannot be read.
        """
        try:
            found = search.candidates(output_dir, newer_than=newer_than)
        except OSError as e:
            return Err(_unreadable(target, output_dir, e))
        if not found:
            return Err(LocateError(target=target, reason="not_found", output_dir=output_dir))
        if len(found) > 1:
            return Err(
                LocateError(
                    target=target,
                    reason="ambiguous",
                    output_dir=output_dir,
                    candidates=tuple(found),
                )
            )

        path = found[0]
        try:
            size = path.stat().st_size
            checksum = sha256_file(path)
        except OSError as e:
            return Err(_unreadable(target, output_dir, e))
        return Ok(Artifact(target=target, path=path, size_bytes=size, checksum=checksum))
