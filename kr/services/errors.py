"""Failure taxonomy of a release run.

Platform-scoped errors (provision, build, timeout, locate, sign) end the
owning job only; `InvalidTrigger`, `PublishError` and `Cancelled` abort the
whole run. All of them are plain values carried in `Err`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Literal

from kr.core.targets import PlatformTarget

Phase = Literal["provision", "frontend", "native", "sign", "publish"]
LocateReason = Literal["not_found", "ambiguous", "unreadable"]
PublishReason = Literal["no_artifacts", "transport", "conflict"]


@dataclass(frozen=True, slots=True)
class InvalidTrigger:
    kind: ClassVar[str] = "invalid_trigger"

    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class ProvisionError:
    kind: ClassVar[str] = "provision"

    target: PlatformTarget
    requirement: str
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class BuildFailure:
    kind: ClassVar[str] = "build"

    target: PlatformTarget
    phase: Phase
    returncode: int
    log_excerpt: str


@dataclass(frozen=True, slots=True)
class PhaseTimeout:
    kind: ClassVar[str] = "timeout"

    target: PlatformTarget
    phase: Phase
    seconds: float


@dataclass(frozen=True, slots=True)
class LocateError:
    kind: ClassVar[str] = "locate"

    target: PlatformTarget
    reason: LocateReason
    output_dir: Path
    candidates: tuple[Path, ...] = ()
    detail: str = ""


@dataclass(frozen=True, slots=True)
class SignError:
    kind: ClassVar[str] = "sign"

    target: PlatformTarget
    message: str
    log_excerpt: str = ""


@dataclass(frozen=True, slots=True)
class PublishError:
    kind: ClassVar[str] = "publish"

    reason: PublishReason
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class Cancelled:
    kind: ClassVar[str] = "cancelled"

    message: str = "release run cancelled"
    phase: Phase | None = None


JobError = ProvisionError | BuildFailure | PhaseTimeout | LocateError | SignError | Cancelled
RunError = InvalidTrigger | PublishError | Cancelled
