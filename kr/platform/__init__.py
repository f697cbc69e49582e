"""Platform abstraction: host detection and subprocess execution."""

from .detection import Platform, detect_platform
from .process import CancelToken, CommandRunner, DefaultCommandRunner, ProcessError, run

__all__ = [
    "CancelToken",
    "CommandRunner",
    "DefaultCommandRunner",
    "Platform",
    "ProcessError",
    "detect_platform",
    "run",
]
