"""Release publisher.

Creates the release for a tag, or reuses it when an earlier (partial or
retried) run already created it, and uploads the located artifacts in
platform declaration order. Assets are replaced per platform, never
duplicated:

- same name and checksum as recorded in the body: skipped
- different package on a draft release: replaced
- different package on a published release: conflict, nothing is touched

Every mutation is planned before the first one is made, so a conflict
leaves the release as it was.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from kr.core.result import Err, Ok, Result
from kr.core.targets import PlatformTarget
from kr.output.console import ConsoleProtocol, Style
from kr.services.errors import PublishError
from kr.services.model import Artifact, ReleaseRecord
from kr.services.release.errors import ReleaseError
from kr.services.release.gh import ReleaseChannel
from kr.services.release.model import RemoteRelease
from kr.services.release.notes import AssetEntry, parse_asset_entries, render_notes

__all__ = ["ReleasePublisher"]


@dataclass(frozen=True, slots=True)
class _Upload:
    path: Path
    clobber: bool


@dataclass(frozen=True, slots=True)
class _Plan:
    deletes: tuple[str, ...]
    uploads: tuple[_Upload, ...]
    skipped: tuple[str, ...]


def _transport(error: ReleaseError) -> PublishError:
    return PublishError(reason="transport", message=error.message, hint=error.hint)


def _files(artifact: Artifact) -> list[Path]:
    files = [artifact.path]
    if artifact.signature_path is not None:
        files.append(artifact.signature_path)
    return files


class ReleasePublisher:
    def __init__(
        self,
        *,
        channel: ReleaseChannel,
        console: ConsoleProtocol,
        title: str = "{tag}",
        user_notes: str | None = None,
    ) -> None:
        self._channel = channel
        self._console = console
        self._title = title
        self._user_notes = user_notes

    def publish(
        self,
        tag: str,
        *,
        draft: bool,
        artifacts: Sequence[Artifact],
        failures: Mapping[PlatformTarget, str],
        target_ref: str | None = None,
    ) -> Result[ReleaseRecord, PublishError]:
        """Upload `artifacts` to the release of `tag`.

        Args:
            tag: Release tag (key of the release record).
            draft: Leave the release as a draft instead of finalizing it.
            artifacts: One artifact per succeeded platform.
            failures: Reason per failed platform, listed in the body.
            target_ref: Branch the tag is created from when it does not exist yet.
        """
        if not artifacts:
            return Err(
                PublishError(reason="no_artifacts", message=f"nothing to publish for {tag}")
            )

        ordered = sorted(artifacts, key=lambda a: a.target.rank)
        title = self._title.format(tag=tag)

        found = self._channel.find_release(tag)
        if isinstance(found, Err):
            return Err(_transport(found.error))

        release = found.value
        previous: dict[PlatformTarget, AssetEntry] = {}
        if release is not None:
            previous = parse_asset_entries(release.body)
            self._console.print(
                f"reuse release {tag} ({'draft' if release.draft else 'published'})", Style.DIM
            )

        plan = self._plan(tag, release, previous, ordered)
        if isinstance(plan, Err):
            return plan

        entries = dict(previous)
        for artifact in ordered:
            entries[artifact.target] = AssetEntry.of(artifact)
        public_key = next((a.public_key for a in ordered if a.public_key), None)
        notes = render_notes(
            title=title,
            entries=entries,
            failures=failures,
            public_key=public_key,
            user_notes=self._user_notes,
        )

        if release is None:
            # Always created as a draft: it only becomes public once complete.
            self._console.print(f"create release {tag} (draft)", Style.DIM)
            created = self._channel.create_release(
                tag, draft=True, title=title, notes=notes, target_ref=target_ref
            )
            if isinstance(created, Err):
                return Err(_transport(created.error))
            release = created.value

        executed = self._execute(tag, plan.value)
        if isinstance(executed, Err):
            return executed

        edited = self._channel.edit_notes(tag, notes)
        if isinstance(edited, Err):
            return Err(_transport(edited.error))

        is_draft = release.draft
        if is_draft and not draft:
            self._console.print(f"publish release {tag}", Style.DIM)
            published = self._channel.publish_release(tag)
            if isinstance(published, Err):
                return Err(_transport(published.error))
            is_draft = False

        return Ok(
            ReleaseRecord(
                tag_name=tag,
                draft=is_draft,
                artifacts=tuple(ordered),
                notes=notes,
                url=release.url,
            )
        )

    def _plan(
        self,
        tag: str,
        release: RemoteRelease | None,
        previous: Mapping[PlatformTarget, AssetEntry],
        ordered: Sequence[Artifact],
    ) -> Result[_Plan, PublishError]:
        if release is None:
            uploads = tuple(_Upload(p, clobber=False) for a in ordered for p in _files(a))
            return Ok(_Plan(deletes=(), uploads=uploads, skipped=()))

        remote = release.asset_names
        published = not release.draft
        deletes: list[str] = []
        uploads: list[_Upload] = []
        skipped: list[str] = []

        for artifact in ordered:
            prev = previous.get(artifact.target)
            name = artifact.name
            unchanged = prev is not None and prev.name == name and prev.sha256 == artifact.checksum

            if unchanged and name in remote:
                skipped.append(name)
                sig = artifact.signature_path
                if sig is not None and sig.name not in remote:
                    uploads.append(_Upload(sig, clobber=False))
                continue

            replaces_other = prev is not None and prev.name != name and prev.name in remote
            overwrites = name in remote
            if published and (replaces_other or overwrites):
                shown = prev.name if prev is not None and replaces_other else name
                return Err(
                    PublishError(
                        reason="conflict",
                        message=(
                            f"release {tag} is already published with a different "
                            f"{artifact.target} package ({shown})"
                        ),
                        hint="bump the version, or delete the asset manually before re-running",
                    )
                )

            if replaces_other and prev is not None:
                deletes.append(prev.name)
                old_sig = f"{prev.name}.sig"
                if old_sig in remote:
                    deletes.append(old_sig)

            for path in _files(artifact):
                uploads.append(_Upload(path, clobber=path.name in remote))

        return Ok(_Plan(deletes=tuple(deletes), uploads=tuple(uploads), skipped=tuple(skipped)))

    def _execute(self, tag: str, plan: _Plan) -> Result[None, PublishError]:
        for name in plan.skipped:
            self._console.print(f"unchanged: {name}", Style.DIM)

        for name in plan.deletes:
            self._console.print(f"delete asset {name}", Style.DIM)
            deleted = self._channel.delete_asset(tag, name)
            if isinstance(deleted, Err):
                return Err(_transport(deleted.error))

        for upload in plan.uploads:
            verb = "replace" if upload.clobber else "upload"
            self._console.print(f"{verb} {upload.path.name}", Style.DIM)
            uploaded = self._channel.upload_asset(tag, upload.path, clobber=upload.clobber)
            if isinstance(uploaded, Err):
                return Err(_transport(uploaded.error))

        return Ok(None)
