"""Error presentation utilities.

One place turning failure values into text, used for the per-platform
outcome list, the failure reasons written into release notes and the
JSON report.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kr.output.console import Style
from kr.services.errors import (
    BuildFailure,
    Cancelled,
    InvalidTrigger,
    JobError,
    LocateError,
    PhaseTimeout,
    ProvisionError,
    PublishError,
    RunError,
    SignError,
)

if TYPE_CHECKING:
    from kr.output.console import ConsoleProtocol

__all__ = ["describe_failure", "failure_hint", "print_run_error"]


def _duration(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        return f"{int(seconds // 60)}m"
    return f"{seconds:g}s"


def describe_failure(error: JobError | RunError) -> str:
    """Single-line reason, safe to publish."""
    match error:
        case ProvisionError(requirement=requirement, message=message):
            return f"toolchain {requirement} unavailable: {message}"
        case BuildFailure(phase=phase, returncode=rc):
            return f"{phase} build failed (exit {rc})"
        case PhaseTimeout(phase=phase, seconds=seconds):
            return f"{phase} timed out after {_duration(seconds)}"
        case LocateError(reason="ambiguous", candidates=candidates):
            names = ", ".join(p.name for p in candidates)
            return f"ambiguous build output ({len(candidates)} candidates: {names})"
        case LocateError(reason="unreadable", detail=detail):
            return f"cannot read build output: {detail}"
        case LocateError(output_dir=output_dir):
            return f"no package found under {output_dir}"
        case SignError(message=message):
            return f"signing failed: {message}"
        case PublishError(reason=reason, message=message):
            return f"publish failed ({reason}): {message}"
        case InvalidTrigger(message=message):
            return f"invalid trigger: {message}"
        case Cancelled(message=message, phase=phase):
            return f"{message} during {phase}" if phase else message


def failure_hint(error: JobError | RunError) -> str | None:
    match error:
        case ProvisionError(hint=hint) | PublishError(hint=hint) | InvalidTrigger(hint=hint):
            return hint
        case _:
            return None


def _excerpt(error: JobError | RunError) -> str:
    match error:
        case BuildFailure(log_excerpt=text) | SignError(log_excerpt=text):
            return text
        case _:
            return ""


def print_run_error(error: JobError | RunError, console: ConsoleProtocol) -> None:
    """Print a failure with its hint and captured log tail."""
    console.error(describe_failure(error))
    hint = failure_hint(error)
    if hint:
        console.print(f"hint: {hint}", Style.DIM)
    excerpt = _excerpt(error)
    if excerpt:
        for line in excerpt.splitlines():
            console.print(f"  | {line}", Style.DIM)
