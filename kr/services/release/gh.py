"""Release channel backed by the GitHub CLI.

`ReleaseChannel` is the narrow API the publisher needs. `GhReleaseChannel`
implements it with `gh release ...`; idempotent reads retry transient
failures, writes never do.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from time import sleep
from typing import Protocol

from kr.core.result import Err, Ok, Result
from kr.core.structured import as_obj_list, as_str_dict, get_bool, get_int, get_str
from kr.platform.process import CancelToken, CommandRunner, DefaultCommandRunner, ProcessError
from kr.services.release.errors import ReleaseError
from kr.services.release.model import RemoteAsset, RemoteRelease
from kr.services.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)

__all__ = ["GhReleaseChannel", "ReleaseChannel", "ensure_gh_available"]

_VIEW_FIELDS = "tagName,isDraft,body,url,assets"


class ReleaseChannel(Protocol):
    def find_release(self, tag: str) -> Result[RemoteRelease | None, ReleaseError]: ...

    def create_release(
        self,
        tag: str,
        *,
        draft: bool,
        title: str,
        notes: str,
        target_ref: str | None,
    ) -> Result[RemoteRelease, ReleaseError]: ...

    def upload_asset(
        self, tag: str, path: Path, *, clobber: bool
    ) -> Result[None, ReleaseError]: ...

    def delete_asset(self, tag: str, name: str) -> Result[None, ReleaseError]: ...

    def edit_notes(self, tag: str, notes: str) -> Result[None, ReleaseError]: ...

    def publish_release(self, tag: str) -> Result[None, ReleaseError]: ...


def _is_transient_gh_error(error: ProcessError) -> bool:
    if error.timed_out:
        return True
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "release not found" in text or "http 404" in text


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def parse_release_view(raw: str) -> Result[RemoteRelease, ReleaseError]:
    """Parse `gh release view --json tagName,isDraft,body,url,assets` output."""
    try:
        obj: object = json.loads(raw)
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="invalid_input", message=f"gh returned invalid JSON: {e}"))

    data = as_str_dict(obj)
    if data is None:
        return Err(ReleaseError(kind="invalid_input", message="unexpected release payload"))

    tag = get_str(data, "tagName")
    draft = get_bool(data, "isDraft")
    if tag is None or draft is None:
        return Err(ReleaseError(kind="invalid_input", message="release payload misses tag/draft"))

    assets: list[RemoteAsset] = []
    for item in as_obj_list(data.get("assets")) or []:
        d = as_str_dict(item)
        if d is None:
            continue
        name = get_str(d, "name")
        if name is None:
            continue
        assets.append(RemoteAsset(name=name, size=get_int(d, "size") or 0))

    body = data.get("body")
    return Ok(
        RemoteRelease(
            tag=tag,
            draft=draft,
            body=body if isinstance(body, str) else "",
            url=get_str(data, "url"),
            assets=tuple(assets),
        )
    )


class GhReleaseChannel:
    def __init__(
        self,
        *,
        work_dir: Path,
        repo: str | None = None,
        runner: CommandRunner | None = None,
        retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
        retry_delay: float = GH_READ_RETRY_DELAY_SECONDS,
        cancel: CancelToken | None = None,
    ) -> None:
        self._work_dir = work_dir
        self._repo = repo
        self._runner = runner or DefaultCommandRunner()
        self._retry_attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay
        self._cancel = cancel

    def find_release(self, tag: str) -> Result[RemoteRelease | None, ReleaseError]:
        cmd = self._cmd("release", "view", tag, "--json", _VIEW_FIELDS)
        for attempt in range(self._retry_attempts):
            result = self._gh(cmd, timeout=GH_TIMEOUT_SECONDS)
            if isinstance(result, Ok):
                return parse_release_view(result.value)

            error = result.error
            if _is_not_found(error):
                return Ok(None)
            if attempt < self._retry_attempts - 1 and _is_transient_gh_error(error):
                sleep(self._retry_delay * (attempt + 1))
                continue
            return Err(self._transport("failed to query release", tag, error))

        return Err(ReleaseError(kind="transport", message=f"failed to query release {tag}"))

    def create_release(
        self,
        tag: str,
        *,
        draft: bool,
        title: str,
        notes: str,
        target_ref: str | None,
    ) -> Result[RemoteRelease, ReleaseError]:
        args = ["release", "create", tag, "--title", title, "--notes", notes]
        if draft:
            args.append("--draft")
        if target_ref is not None:
            args += ["--target", target_ref]
        result = self._gh(self._cmd(*args), timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(self._transport("failed to create release", tag, result.error))

        # Re-read so callers see the channel's view (url, draft state).
        found = self.find_release(tag)
        if isinstance(found, Err):
            return found
        if found.value is None:
            return Err(
                ReleaseError(kind="transport", message=f"release {tag} missing after creation")
            )
        return Ok(found.value)

    def upload_asset(self, tag: str, path: Path, *, clobber: bool) -> Result[None, ReleaseError]:
        args = ["release", "upload", tag, str(path)]
        if clobber:
            args.append("--clobber")
        result = self._gh(self._cmd(*args), timeout=GH_UPLOAD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(self._transport(f"failed to upload {path.name}", tag, result.error))
        return Ok(None)

    def delete_asset(self, tag: str, name: str) -> Result[None, ReleaseError]:
        result = self._gh(
            self._cmd("release", "delete-asset", tag, name, "--yes"),
            timeout=GH_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(self._transport(f"failed to delete {name}", tag, result.error))
        return Ok(None)

    def edit_notes(self, tag: str, notes: str) -> Result[None, ReleaseError]:
        result = self._gh(
            self._cmd("release", "edit", tag, "--notes", notes),
            timeout=GH_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(self._transport("failed to update release notes", tag, result.error))
        return Ok(None)

    def publish_release(self, tag: str) -> Result[None, ReleaseError]:
        result = self._gh(
            self._cmd("release", "edit", tag, "--draft=false"),
            timeout=GH_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(self._transport("failed to publish release", tag, result.error))
        return Ok(None)

    def _gh(self, cmd: list[str], *, timeout: float) -> Result[str, ProcessError]:
        return self._runner.run(cmd, self._work_dir, timeout=timeout, cancel=self._cancel)

    def _cmd(self, *args: str) -> list[str]:
        cmd = ["gh", *args]
        if self._repo is not None:
            cmd += ["--repo", self._repo]
        return cmd

    def _transport(self, message: str, tag: str, error: ProcessError) -> ReleaseError:
        if error.cancelled:
            return ReleaseError(kind="transport", message=f"{message} ({tag}): cancelled")
        stderr = error.stderr.strip()
        if "gh auth login" in stderr:
            return ReleaseError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login",
            )
        return ReleaseError(
            kind="transport",
            message=f"{message} ({tag})",
            hint=stderr or str(error),
        )
