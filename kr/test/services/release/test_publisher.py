"""Tests for kr.services.release.publisher module."""

from __future__ import annotations

import hashlib
from pathlib import Path

from kr.core.result import Err, Ok
from kr.core.targets import PlatformTarget
from kr.output.console import MockConsole
from kr.services.model import Artifact
from kr.services.release.errors import ReleaseError
from kr.services.release.notes import parse_asset_entries
from kr.services.release.publisher import ReleasePublisher
from kr.test.fakes import FakeReleaseChannel

DESKTOP = PlatformTarget.DESKTOP
MOBILE = PlatformTarget.MOBILE
TAG = "v1.0.0"


def _artifact(
    tmp_path: Path, target: PlatformTarget, name: str, content: bytes, *, signed: bool = False
) -> Artifact:
    path = tmp_path / target / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    sig: Path | None = None
    if signed:
        sig = path.with_name(name + ".sig")
        sig.write_text("signature")
    return Artifact(
        target=target,
        path=path,
        size_bytes=len(content),
        checksum=hashlib.sha256(content).hexdigest(),
        signed=signed,
        signature_path=sig,
        public_key="RWSpublickey" if signed else None,
    )


def _publisher(channel: FakeReleaseChannel) -> ReleasePublisher:
    return ReleasePublisher(channel=channel, console=MockConsole(), title="keep-accounts {tag}")


def test_no_artifacts_is_rejected() -> None:
    channel = FakeReleaseChannel()

    result = _publisher(channel).publish(TAG, draft=True, artifacts=[], failures={})

    assert isinstance(result, Err)
    assert result.error.reason == "no_artifacts"
    assert channel.calls == []


def test_creates_draft_and_uploads_in_platform_order(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    mobile = _artifact(tmp_path, MOBILE, "app-universal-release.apk", b"apk")
    desktop = _artifact(tmp_path, DESKTOP, "keep_1.0.0_amd64.deb", b"deb", signed=True)

    result = _publisher(channel).publish(
        TAG, draft=True, artifacts=[mobile, desktop], failures={}
    )

    assert isinstance(result, Ok)
    assert channel.uploaded == [
        "keep_1.0.0_amd64.deb",
        "keep_1.0.0_amd64.deb.sig",
        "app-universal-release.apk",
    ]
    release = channel.releases[TAG]
    assert release.draft is True
    assert release.title == "keep-accounts v1.0.0"
    assert [a.target for a in result.value.artifacts] == [DESKTOP, MOBILE]
    assert result.value.draft is True
    assert "RWSpublickey" in release.body
    assert set(parse_asset_entries(release.body)) == {DESKTOP, MOBILE}


def test_partial_release_lists_missing_platform(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    desktop = _artifact(tmp_path, DESKTOP, "keep_1.0.0_amd64.deb", b"deb")

    result = _publisher(channel).publish(
        TAG,
        draft=True,
        artifacts=[desktop],
        failures={MOBILE: "native build failed (exit 1)"},
    )

    assert isinstance(result, Ok)
    body = channel.releases[TAG].body
    assert "## Missing platforms" in body
    assert "mobile: native build failed (exit 1)" in body
    assert result.value.notes == body


def test_rerun_with_same_artifacts_uploads_nothing(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    desktop = _artifact(tmp_path, DESKTOP, "keep_1.0.0_amd64.deb", b"deb", signed=True)
    publisher = _publisher(channel)

    publisher.publish(TAG, draft=True, artifacts=[desktop], failures={})
    uploads_before = len(channel.uploaded)
    result = publisher.publish(TAG, draft=True, artifacts=[desktop], failures={})

    assert isinstance(result, Ok)
    assert len(channel.uploaded) == uploads_before
    assert len(channel.method_calls("create_release")) == 1
    assert sorted(channel.releases[TAG].assets) == [
        "keep_1.0.0_amd64.deb",
        "keep_1.0.0_amd64.deb.sig",
    ]


def test_rerun_fills_in_missing_platform_without_duplicates(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    publisher = _publisher(channel)
    desktop = _artifact(tmp_path, DESKTOP, "keep_1.0.0_amd64.deb", b"deb")
    mobile = _artifact(tmp_path, MOBILE, "app-universal-release.apk", b"apk")

    publisher.publish(TAG, draft=True, artifacts=[desktop], failures={MOBILE: "timed out"})
    result = publisher.publish(TAG, draft=True, artifacts=[desktop, mobile], failures={})

    assert isinstance(result, Ok)
    assert channel.uploaded == ["keep_1.0.0_amd64.deb", "app-universal-release.apk"]
    body = channel.releases[TAG].body
    assert "Missing platforms" not in body
    assert set(parse_asset_entries(body)) == {DESKTOP, MOBILE}


def test_changed_package_on_draft_is_replaced(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    publisher = _publisher(channel)
    first = _artifact(tmp_path / "a", DESKTOP, "keep_1.0.0_amd64.deb", b"first build")
    second = _artifact(tmp_path / "b", DESKTOP, "keep_1.0.0_amd64.deb", b"second build")

    publisher.publish(TAG, draft=True, artifacts=[first], failures={})
    result = publisher.publish(TAG, draft=True, artifacts=[second], failures={})

    assert isinstance(result, Ok)
    uploads = channel.method_calls("upload_asset")
    assert len(uploads) == 2
    entries = parse_asset_entries(channel.releases[TAG].body)
    assert entries[DESKTOP].sha256 == second.checksum
    assert list(channel.releases[TAG].assets) == ["keep_1.0.0_amd64.deb"]


def test_renamed_package_replaces_previous_asset(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    publisher = _publisher(channel)
    old = _artifact(tmp_path, MOBILE, "app-release.apk", b"old", signed=False)
    new = _artifact(tmp_path, MOBILE, "app-universal-release.apk", b"new")

    publisher.publish(TAG, draft=True, artifacts=[old], failures={})
    result = publisher.publish(TAG, draft=True, artifacts=[new], failures={})

    assert isinstance(result, Ok)
    assert channel.method_calls("delete_asset") == [("delete_asset", TAG, "app-release.apk")]
    assert list(channel.releases[TAG].assets) == ["app-universal-release.apk"]


def test_changed_package_on_published_release_is_conflict(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    publisher = _publisher(channel)
    first = _artifact(tmp_path / "a", DESKTOP, "keep_1.0.0_amd64.deb", b"first build")
    second = _artifact(tmp_path / "b", DESKTOP, "keep_1.0.0_amd64.deb", b"second build")
    mobile = _artifact(tmp_path, MOBILE, "app-universal-release.apk", b"apk")

    publisher.publish(TAG, draft=False, artifacts=[first], failures={})
    assert channel.releases[TAG].draft is False
    mutations_before = len(channel.calls)

    result = publisher.publish(TAG, draft=False, artifacts=[second, mobile], failures={})

    assert isinstance(result, Err)
    assert result.error.reason == "conflict"
    # Nothing was touched: the mobile upload was planned but not made.
    new_calls = [c[0] for c in channel.calls[mutations_before:]]
    assert new_calls == ["find_release"]


def test_published_release_accepts_new_platform(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    publisher = _publisher(channel)
    desktop = _artifact(tmp_path, DESKTOP, "keep_1.0.0_amd64.deb", b"deb")
    mobile = _artifact(tmp_path, MOBILE, "app-universal-release.apk", b"apk")

    publisher.publish(TAG, draft=False, artifacts=[desktop], failures={MOBILE: "failed"})
    result = publisher.publish(TAG, draft=False, artifacts=[desktop, mobile], failures={})

    assert isinstance(result, Ok)
    assert result.value.draft is False
    assert channel.uploaded[-1] == "app-universal-release.apk"
    assert len(channel.method_calls("publish_release")) == 1


def test_published_release_never_reverts_to_draft(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    publisher = _publisher(channel)
    desktop = _artifact(tmp_path, DESKTOP, "keep_1.0.0_amd64.deb", b"deb")

    publisher.publish(TAG, draft=False, artifacts=[desktop], failures={})
    result = publisher.publish(TAG, draft=True, artifacts=[desktop], failures={})

    assert isinstance(result, Ok)
    assert result.value.draft is False
    assert channel.releases[TAG].draft is False


def test_transport_failure(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    channel.fail_on["upload_asset"] = ReleaseError(
        kind="transport", message="failed to upload", hint="HTTP 502"
    )
    desktop = _artifact(tmp_path, DESKTOP, "keep_1.0.0_amd64.deb", b"deb")

    result = _publisher(channel).publish(TAG, draft=True, artifacts=[desktop], failures={})

    assert isinstance(result, Err)
    assert result.error.reason == "transport"
    assert result.error.hint == "HTTP 502"


def test_unmarked_remote_asset_with_same_name_is_clobbered_on_draft(tmp_path: Path) -> None:
    channel = FakeReleaseChannel()
    channel.create_release(TAG, draft=True, title="t", notes="manual", target_ref=None)
    channel.releases[TAG].assets["keep_1.0.0_amd64.deb"] = 1
    desktop = _artifact(tmp_path, DESKTOP, "keep_1.0.0_amd64.deb", b"deb")

    result = _publisher(channel).publish(TAG, draft=True, artifacts=[desktop], failures={})

    assert isinstance(result, Ok)
    assert channel.releases[TAG].assets["keep_1.0.0_amd64.deb"] == 3
