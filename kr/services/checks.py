# SPDX-License-Identifier: MIT
"""Check results reported by `kr check` and the toolchain provisioner."""

from dataclasses import dataclass
from enum import Enum, auto


class CheckStatus(Enum):
    OK = auto()
    """Requirement present."""

    ERROR = auto()
    """Requirement missing or broken."""


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Result of a single requirement check.

    Attributes:
        name: Requirement identifier (e.g. "trunk", "rust-target:wasm32-unknown-unknown")
        status: Whether the requirement is satisfied
        message: Version string or failure description
        hint: Optional fix command or URL
    """

    name: str
    status: CheckStatus
    message: str
    hint: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == CheckStatus.OK

    @classmethod
    def success(cls, name: str, message: str) -> "CheckResult":
        return cls(name=name, status=CheckStatus.OK, message=message)

    @classmethod
    def error(cls, name: str, message: str, hint: str | None = None) -> "CheckResult":
        return cls(name=name, status=CheckStatus.ERROR, message=message, hint=hint)
