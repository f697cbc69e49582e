"""Run report: per-platform outcome list on the console and as JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

from kr.output.console import Style
from kr.output.errors import describe_failure, print_run_error
from kr.services.model import PlatformOutcome, RunResult

if TYPE_CHECKING:
    from kr.output.console import ConsoleProtocol

__all__ = ["print_outcomes", "report_payload", "write_report"]

REPORT_SCHEMA = 1


def _duration(outcome: PlatformOutcome) -> str:
    seconds = outcome.duration_seconds
    if seconds is None:
        return "-"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m{secs:02d}s" if minutes else f"{secs}s"


def print_outcomes(result: RunResult, console: ConsoleProtocol) -> None:
    """Print one line per platform, then the aggregate outcome."""
    console.header(f"Release {result.tag_name or '(unresolved)'}")

    for outcome in result.outcomes:
        label = f"{outcome.target:<8} {_duration(outcome):>7}"
        if outcome.succeeded and outcome.artifact is not None:
            a = outcome.artifact
            signed = " (signed)" if a.signed else ""
            console.success(f"{label}  {a.name}{signed}  sha256 {a.checksum[:12]}")
        elif outcome.error is not None:
            console.print(f"  {label}  FAILED", Style.ERROR)
            print_run_error(outcome.error, console)
        else:
            console.print(f"  {label}  {outcome.status}", Style.DIM)
        for warning in outcome.warnings:
            console.warning(f"{outcome.target}: {warning}")

    if result.error is not None:
        console.newline()
        print_run_error(result.error, console)

    console.newline()
    if result.release is not None:
        state = "draft" if result.release.draft else "published"
        where = f": {result.release.url}" if result.release.url else ""
        console.print(f"release {result.release.tag_name} ({state}){where}", Style.BOLD)

    failed = len(result.failed)
    total = len(result.outcomes)
    if result.exit_code.is_success:
        console.success(f"all {total} platform(s) published")
    elif result.release is not None:
        console.warning(f"partial release: {failed} of {total} platform(s) failed")
    else:
        console.error("nothing was published")


def _outcome_payload(outcome: PlatformOutcome) -> dict[str, object]:
    artifact: dict[str, object] | None = None
    if outcome.artifact is not None:
        a = outcome.artifact
        artifact = {
            "name": a.name,
            "path": str(a.path),
            "size": a.size_bytes,
            "sha256": a.checksum,
            "signed": a.signed,
            "signature": a.signature_path.name if a.signature_path is not None else None,
        }
    error: dict[str, object] | None = None
    if outcome.error is not None:
        error = {"kind": outcome.error.kind, "message": describe_failure(outcome.error)}
    return {
        "platform": str(outcome.target),
        "status": str(outcome.status),
        "started_at": outcome.started_at.isoformat() if outcome.started_at else None,
        "finished_at": outcome.finished_at.isoformat() if outcome.finished_at else None,
        "duration_seconds": outcome.duration_seconds,
        "artifact": artifact,
        "error": error,
        "warnings": list(outcome.warnings),
    }


def report_payload(result: RunResult) -> dict[str, object]:
    release: dict[str, object] | None = None
    if result.release is not None:
        release = {
            "tag": result.release.tag_name,
            "draft": result.release.draft,
            "url": result.release.url,
            "assets": [a.name for a in result.release.artifacts],
        }
    error: dict[str, object] | None = None
    if result.error is not None:
        error = {"kind": result.error.kind, "message": describe_failure(result.error)}
    return {
        "schema": REPORT_SCHEMA,
        "tag": result.tag_name,
        "exit_code": int(result.exit_code),
        "platforms": [_outcome_payload(o) for o in result.outcomes],
        "release": release,
        "error": error,
    }


def write_report(path: Path, result: RunResult) -> Path:
    """Write the JSON run report; secrets never reach it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(report_payload(result), indent=2, sort_keys=True) + "\n"
    path.write_text(text, encoding="utf-8")
    return path
