"""Tests for kr.services.release.gh module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from kr.core.result import Err, Ok
from kr.services.release import gh as gh_mod
from kr.services.release.gh import GhReleaseChannel, parse_release_view
from kr.test.fakes import Call, FakeRunner, fail


def _no_sleep(seconds: float) -> None:
    del seconds


def _view(*, draft: bool = True, assets: list[dict[str, object]] | None = None) -> str:
    return json.dumps(
        {
            "tagName": "v1.0.0",
            "isDraft": draft,
            "body": "notes",
            "url": "https://github.com/keep-accounts/keep-accounts/releases/tag/v1.0.0",
            "assets": assets or [],
        }
    )


def _scripted(*responses):  # type: ignore[no-untyped-def]
    queue = list(responses)

    def handle(call: Call):  # type: ignore[no-untyped-def]
        response = queue.pop(0)
        return response(call) if callable(response) else response

    return FakeRunner(handle)


class TestParseReleaseView:
    def test_parses_assets(self) -> None:
        result = parse_release_view(_view(assets=[{"name": "a.deb", "size": 12}, {"size": 1}]))
        assert isinstance(result, Ok)
        release = result.value
        assert release.tag == "v1.0.0"
        assert release.draft is True
        assert release.asset_names == frozenset({"a.deb"})

    def test_invalid_json(self) -> None:
        result = parse_release_view("not json")
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_input"

    def test_missing_fields(self) -> None:
        assert isinstance(parse_release_view("{}"), Err)


class TestFindRelease:
    def test_not_found_is_none(self, tmp_path: Path) -> None:
        runner = _scripted(lambda c: fail(c.cmd, stderr="release not found"))
        channel = GhReleaseChannel(work_dir=tmp_path, runner=runner)

        assert channel.find_release("v1.0.0") == Ok(None)

    def test_retries_transient_error(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr(gh_mod, "sleep", _no_sleep)
        runner = _scripted(
            lambda c: fail(c.cmd, stderr="HTTP 503 Service Unavailable"),
            lambda c: fail(c.cmd, stderr="HTTP 502 Bad Gateway"),
            Ok(_view()),
        )
        channel = GhReleaseChannel(work_dir=tmp_path, runner=runner)

        result = channel.find_release("v1.0.0")

        assert isinstance(result, Ok)
        assert result.value is not None
        assert len(runner.calls) == 3

    def test_gives_up_after_bounded_attempts(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr(gh_mod, "sleep", _no_sleep)
        runner = FakeRunner(lambda c: fail(c.cmd, stderr="HTTP 500 Internal Server Error"))
        channel = GhReleaseChannel(work_dir=tmp_path, runner=runner, retry_attempts=3)

        result = channel.find_release("v1.0.0")

        assert isinstance(result, Err)
        assert result.error.kind == "transport"
        assert len(runner.calls) == 3

    def test_does_not_retry_non_transient(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr(gh_mod, "sleep", _no_sleep)
        runner = FakeRunner(
            lambda c: fail(c.cmd, stderr="To get started with GitHub CLI, run: gh auth login")
        )
        channel = GhReleaseChannel(work_dir=tmp_path, runner=runner)

        result = channel.find_release("v1.0.0")

        assert isinstance(result, Err)
        assert result.error.kind == "gh_auth_required"
        assert len(runner.calls) == 1


class TestWrites:
    def test_create_uses_draft_target_and_repo(self, tmp_path: Path) -> None:
        runner = _scripted(Ok(""), Ok(_view()))
        channel = GhReleaseChannel(
            work_dir=tmp_path, repo="keep-accounts/keep-accounts", runner=runner
        )

        result = channel.create_release(
            "v1.0.0", draft=True, title="keep-accounts v1.0.0", notes="body", target_ref="main"
        )

        assert isinstance(result, Ok)
        create = runner.calls[0].cmd
        assert create[:4] == ["gh", "release", "create", "v1.0.0"]
        assert "--draft" in create
        assert create[create.index("--target") + 1] == "main"
        assert create[-2:] == ["--repo", "keep-accounts/keep-accounts"]

    def test_writes_are_not_retried(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr(gh_mod, "sleep", _no_sleep)
        runner = FakeRunner(lambda c: fail(c.cmd, stderr="HTTP 503 Service Unavailable"))
        channel = GhReleaseChannel(work_dir=tmp_path, runner=runner)
        asset = tmp_path / "a.deb"
        asset.write_bytes(b"x")

        result = channel.upload_asset("v1.0.0", asset, clobber=False)

        assert isinstance(result, Err)
        assert result.error.kind == "transport"
        assert len(runner.calls) == 1

    def test_upload_clobber_flag(self, tmp_path: Path) -> None:
        runner = FakeRunner()
        channel = GhReleaseChannel(work_dir=tmp_path, runner=runner)

        channel.upload_asset("v1.0.0", tmp_path / "a.deb", clobber=True)
        channel.upload_asset("v1.0.0", tmp_path / "b.deb", clobber=False)

        assert "--clobber" in runner.calls[0].cmd
        assert "--clobber" not in runner.calls[1].cmd

    def test_delete_edit_and_publish(self, tmp_path: Path) -> None:
        runner = FakeRunner()
        channel = GhReleaseChannel(work_dir=tmp_path, runner=runner)

        channel.delete_asset("v1.0.0", "old.apk")
        channel.edit_notes("v1.0.0", "new body")
        channel.publish_release("v1.0.0")

        assert runner.lines == [
            "gh release delete-asset v1.0.0 old.apk --yes",
            "gh release edit v1.0.0 --notes new body",
            "gh release edit v1.0.0 --draft=false",
        ]
