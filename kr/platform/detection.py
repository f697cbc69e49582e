"""Host platform detection.

The desktop package format depends on the machine running the build
(Tauri only bundles for its host), so the default desktop bundle is derived
from the detected platform.
"""

from __future__ import annotations

import sys as _sys
from enum import Enum, auto
from functools import lru_cache

__all__ = ["Platform", "detect_platform"]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def desktop_bundle(self) -> str:
        """Tauri bundle format produced for desktop releases on this host."""
        return {
            Platform.WINDOWS: "msi",
            Platform.MACOS: "dmg",
        }.get(self, "deb")


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system (cached)."""
    system = _sys.platform.lower()
    if system.startswith("linux"):
        return Platform.LINUX
    if system.startswith("darwin"):
        return Platform.MACOS
    if system.startswith(("win32", "cygwin", "msys")):
        return Platform.WINDOWS
    return Platform.UNKNOWN
