from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path

from kr.core.errors import ErrorCode
from kr.core.targets import PlatformTarget
from kr.services.errors import JobError, RunError


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


@dataclass(frozen=True, slots=True)
class Ready:
    """Every toolchain a target needs is present."""

    target: PlatformTarget
    checked: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class BuildOutcome:
    target: PlatformTarget
    output_dir: Path


@dataclass(frozen=True, slots=True)
class Artifact:
    """One installable package located in a platform's build output."""

    target: PlatformTarget
    path: Path
    size_bytes: int
    checksum: str
    signed: bool = False
    signature_path: Path | None = None
    public_key: str | None = None

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True, slots=True)
class PlatformOutcome:
    """Terminal snapshot of a build job, as reported to the user."""

    target: PlatformTarget
    status: JobStatus
    artifact: Artifact | None
    error: JobError | None
    warnings: tuple[str, ...]
    started_at: datetime | None
    finished_at: datetime | None

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.SUCCEEDED

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()


def _empty_warnings() -> list[str]:
    """Factory for empty warnings list (helps type inference)."""
    return []


@dataclass(slots=True)
class BuildJob:
    """Mutable state of one platform pipeline.

    Owned by the worker thread running it; terminal once succeeded or failed.
    """

    target: PlatformTarget
    output_dir: Path | None = None
    status: JobStatus = JobStatus.PENDING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_detail: str | None = None
    error: JobError | None = None
    artifact: Artifact | None = None
    warnings: list[str] = field(default_factory=_empty_warnings)

    def start(self) -> None:
        self._require(JobStatus.PENDING)
        self.status = JobStatus.RUNNING
        self.started_at = datetime.now(UTC)

    def succeed(self, artifact: Artifact) -> None:
        self._require(JobStatus.RUNNING)
        self.artifact = artifact
        self.status = JobStatus.SUCCEEDED
        self.finished_at = datetime.now(UTC)

    def fail(self, error: JobError, detail: str) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"{self.target} job is already {self.status}")
        self.error = error
        self.error_detail = detail
        self.status = JobStatus.FAILED
        self.finished_at = datetime.now(UTC)

    def snapshot(self) -> PlatformOutcome:
        return PlatformOutcome(
            target=self.target,
            status=self.status,
            artifact=self.artifact,
            error=self.error,
            warnings=tuple(self.warnings),
            started_at=self.started_at,
            finished_at=self.finished_at,
        )

    def _require(self, expected: JobStatus) -> None:
        if self.status != expected:
            raise RuntimeError(f"{self.target} job is {self.status}, expected {expected}")


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    tag_name: str
    draft: bool
    artifacts: tuple[Artifact, ...]
    notes: str
    url: str | None = None


@dataclass(frozen=True, slots=True)
class RunResult:
    """Aggregate outcome of one orchestration run."""

    tag_name: str | None
    outcomes: tuple[PlatformOutcome, ...]
    release: ReleaseRecord | None = None
    error: RunError | None = None

    @property
    def exit_code(self) -> ErrorCode:
        if self.error is not None or self.release is None:
            return ErrorCode.FAILURE
        if all(o.succeeded for o in self.outcomes):
            return ErrorCode.OK
        return ErrorCode.PARTIAL

    @property
    def failed(self) -> tuple[PlatformOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.succeeded)
