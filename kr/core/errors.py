"""Process exit codes for the kr CLI.

The release command has exactly three outcomes and CI jobs branch on them:
- 0: every requested platform was built and published
- 1: total failure, nothing was published
- 2: partial success, at least one platform is missing from the release
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands. Values are stable."""

    OK = 0
    FAILURE = 1
    PARTIAL = 2

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
