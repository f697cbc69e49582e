from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from kr.core.targets import PlatformTarget
from kr.output.console import MockConsole
from kr.output.report import print_outcomes, write_report
from kr.services.errors import BuildFailure
from kr.services.model import Artifact, JobStatus, PlatformOutcome, ReleaseRecord, RunResult

_T0 = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)


def _partial_result(tmp_path: Path) -> RunResult:
    artifact = Artifact(
        target=PlatformTarget.DESKTOP,
        path=tmp_path / "keep-accounts_1.0.0_amd64.deb",
        size_bytes=2048,
        checksum="a" * 64,
    )
    desktop = PlatformOutcome(
        target=PlatformTarget.DESKTOP,
        status=JobStatus.SUCCEEDED,
        artifact=artifact,
        error=None,
        warnings=("unsigned: no signing key configured",),
        started_at=_T0,
        finished_at=_T0 + timedelta(seconds=95),
    )
    mobile = PlatformOutcome(
        target=PlatformTarget.MOBILE,
        status=JobStatus.FAILED,
        artifact=None,
        error=BuildFailure(PlatformTarget.MOBILE, "native", 1, "BUILD FAILED"),
        warnings=(),
        started_at=_T0,
        finished_at=_T0 + timedelta(seconds=30),
    )
    release = ReleaseRecord(
        tag_name="v1.0.0",
        draft=True,
        artifacts=(artifact,),
        notes="",
        url="https://github.invalid/releases/v1.0.0",
    )
    return RunResult(tag_name="v1.0.0", outcomes=(desktop, mobile), release=release)


def test_print_outcomes_lists_every_platform(tmp_path: Path) -> None:
    console = MockConsole()
    print_outcomes(_partial_result(tmp_path), console)

    text = console.text
    assert "keep-accounts_1.0.0_amd64.deb" in text
    assert "1m35s" in text
    assert "native build failed (exit 1)" in text
    assert "partial release: 1 of 2 platform(s) failed" in text
    assert console.has_warning()


def test_write_report_json(tmp_path: Path) -> None:
    path = write_report(tmp_path / "out" / "report.json", _partial_result(tmp_path))

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["tag"] == "v1.0.0"
    assert data["exit_code"] == 2
    assert [p["platform"] for p in data["platforms"]] == ["desktop", "mobile"]
    desktop, mobile = data["platforms"]
    assert desktop["status"] == "succeeded"
    assert desktop["artifact"]["sha256"] == "a" * 64
    assert desktop["duration_seconds"] == 95.0
    assert mobile["error"] == {"kind": "build", "message": "native build failed (exit 1)"}
    assert data["release"]["assets"] == ["keep-accounts_1.0.0_amd64.deb"]
    assert data["error"] is None
