"""Tests for kr.platform.process module."""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

from kr.core.result import Err, Ok
from kr.platform.process import CancelToken, ProcessError, run

PY = sys.executable


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(command=("trunk", "build"), returncode=1, stdout="", stderr="")
        assert str(error) == "trunk build failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("cargo", "tauri", "build", "--bundles", "deb"),
            returncode=101,
            stdout="",
            stderr="",
        )
        assert str(error) == "cargo tauri build ... failed (exit 101)"

    def test_str_timed_out(self) -> None:
        error = ProcessError(("gh", "release"), -1, "", "", timed_out=True)
        assert str(error) == "gh release timed out"

    def test_tail_keeps_last_lines(self) -> None:
        out = "\n".join(f"line {i}" for i in range(50))
        error = ProcessError(("x",), 1, out, "")
        assert error.tail(3) == "line 47\nline 48\nline 49"

    def test_tail_includes_stderr(self) -> None:
        error = ProcessError(("x",), 1, "out\n", "err\n")
        assert error.tail(10) == "out\nerr"

    def test_tail_budget_not_spent_on_blank_joins(self) -> None:
        error = ProcessError(("x",), 1, "a\nb\n", "c\n")
        assert error.tail(2) == "b\nc"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestCancelToken:
    def test_starts_clear(self) -> None:
        assert CancelToken().cancelled is False

    def test_cancel_is_sticky(self) -> None:
        token = CancelToken()
        token.cancel()
        token.cancel()
        assert token.cancelled is True


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "print('hello')"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "import sys; sys.exit(42)"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == 42

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert result.error.stderr

    def test_merge_output_interleaves_stderr(self, tmp_path: Path) -> None:
        result = run(
            [PY, "-c", "import sys; print('out'); sys.stderr.write('err\\n'); sys.exit(3)"],
            cwd=tmp_path,
            merge_output=True,
        )
        assert isinstance(result, Err)
        assert "out" in result.error.stdout
        assert "err" in result.error.stdout

    def test_passes_env(self, tmp_path: Path) -> None:
        result = run(
            [PY, "-c", "import os; print(os.environ['KR_PACKAGE_ID'])"],
            cwd=tmp_path,
            env={"KR_PACKAGE_ID": "app.keepaccounts", "PATH": ""},
        )
        assert isinstance(result, Ok)
        assert result.value.strip() == "app.keepaccounts"

    def test_timeout_kills_process(self, tmp_path: Path) -> None:
        started = time.monotonic()
        result = run([PY, "-c", "import time; time.sleep(30)"], cwd=tmp_path, timeout=0.5)
        assert isinstance(result, Err)
        assert result.error.timed_out is True
        assert result.error.cancelled is False
        assert time.monotonic() - started < 10

    def test_cancel_kills_process(self, tmp_path: Path) -> None:
        token = CancelToken()
        timer = threading.Timer(0.3, token.cancel)
        timer.start()
        try:
            started = time.monotonic()
            result = run([PY, "-c", "import time; time.sleep(30)"], cwd=tmp_path, cancel=token)
        finally:
            timer.cancel()
        assert isinstance(result, Err)
        assert result.error.cancelled is True
        assert time.monotonic() - started < 10

    def test_already_cancelled_does_not_spawn(self, tmp_path: Path) -> None:
        token = CancelToken()
        token.cancel()
        marker = tmp_path / "spawned"
        result = run(
            [PY, "-c", f"open({str(marker)!r}, 'w').close()"], cwd=tmp_path, cancel=token
        )
        assert isinstance(result, Err)
        assert result.error.cancelled is True
        assert not marker.exists()


# A parent whose grandchild inherits the output pipe: killing only the parent
# would leave the pipe open until the grandchild exits.
_GRANDCHILD = (
    "import subprocess, sys; "
    "subprocess.run([sys.executable, '-c', 'import time; time.sleep(30)'])"
)


class TestRunProcessTree:
    def test_timeout_kills_grandchildren(self, tmp_path: Path) -> None:
        started = time.monotonic()
        result = run([PY, "-c", _GRANDCHILD], cwd=tmp_path, timeout=0.5)
        assert isinstance(result, Err)
        assert result.error.timed_out is True
        assert time.monotonic() - started < 5

    def test_cancel_kills_grandchildren(self, tmp_path: Path) -> None:
        token = CancelToken()
        timer = threading.Timer(0.5, token.cancel)
        timer.start()
        try:
            started = time.monotonic()
            result = run([PY, "-c", _GRANDCHILD], cwd=tmp_path, cancel=token)
        finally:
            timer.cancel()
        assert isinstance(result, Err)
        assert result.error.cancelled is True
        assert time.monotonic() - started < 5

    @pytest.mark.skipif(sys.platform == "win32", reason="requires sh")
    def test_cancel_kills_shell_pipeline(self, tmp_path: Path) -> None:
        token = CancelToken()
        timer = threading.Timer(0.5, token.cancel)
        timer.start()
        try:
            started = time.monotonic()
            result = run(["sh", "-c", "sleep 8 | cat"], cwd=tmp_path, cancel=token)
        finally:
            timer.cancel()
        assert isinstance(result, Err)
        assert result.error.cancelled is True
        assert time.monotonic() - started < 3

    @pytest.mark.skipif(sys.platform == "win32", reason="requires sh")
    def test_timeout_kills_shell_children(self, tmp_path: Path) -> None:
        started = time.monotonic()
        result = run(["sh", "-c", "sleep 8; echo done"], cwd=tmp_path, timeout=0.5)
        assert isinstance(result, Err)
        assert result.error.timed_out is True
        assert "done" not in result.error.stdout
        assert time.monotonic() - started < 3
