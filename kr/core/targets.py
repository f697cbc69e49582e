"""Release platform targets.

The declaration order of `PlatformTarget` is the upload order of a release:
desktop assets always precede mobile assets, whatever order the build jobs
finish in.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

__all__ = ["PlatformTarget", "ordered_targets"]


class PlatformTarget(StrEnum):
    DESKTOP = "desktop"
    MOBILE = "mobile"

    @property
    def rank(self) -> int:
        return list(PlatformTarget).index(self)


def ordered_targets(targets: Iterable[PlatformTarget]) -> tuple[PlatformTarget, ...]:
    """Deduplicate targets and sort them in declaration order."""
    return tuple(sorted(set(targets), key=lambda t: t.rank))
