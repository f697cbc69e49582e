"""Release trigger evaluation.

A run starts either from a pushed version tag or from a manual invocation
naming a branch. Manual runs may carry a tag; when they don't, the release
tag is derived from the application version declared in `src-tauri`.
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from kr.core.result import Err, Ok, Result
from kr.core.structured import as_str_dict, get_str, get_table
from kr.services.errors import InvalidTrigger
from kr.services.release.semver import parse_stable_tag, parse_version

__all__ = ["TriggerKind", "ReleaseTrigger", "make_trigger", "resolve_release_tag"]

_TAG_HINT = "tags must look like v<major>.<minor>.<patch>, e.g. v1.0.0"


class TriggerKind(StrEnum):
    TAG = "tag"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class ReleaseTrigger:
    kind: TriggerKind
    tag_name: str | None
    ref_branch: str

    def validate(self) -> Result[ReleaseTrigger, InvalidTrigger]:
        """Check the trigger invariants.

        A tag trigger needs a strict `vX.Y.Z` tag; a manual trigger needs an
        explicit branch, and its optional tag is held to the same pattern.
        """
        match self.kind:
            case TriggerKind.TAG:
                if self.tag_name is None:
                    return Err(InvalidTrigger(message="tag trigger without a tag", hint=_TAG_HINT))
            case TriggerKind.MANUAL:
                if not self.ref_branch.strip():
                    return Err(
                        InvalidTrigger(
                            message="manual trigger requires a branch",
                            hint="pass --branch <name>",
                        )
                    )

        if self.tag_name is not None and parse_stable_tag(self.tag_name) is None:
            return Err(
                InvalidTrigger(message=f"invalid version tag: {self.tag_name!r}", hint=_TAG_HINT)
            )
        return Ok(self)


def make_trigger(*, tag: str | None, branch: str | None) -> Result[ReleaseTrigger, InvalidTrigger]:
    """Build and validate a trigger from CLI-style inputs.

    `--tag` alone is a tag push (the tag is its own ref); `--branch` with or
    without a tag is a manual invocation.
    """
    if branch is not None:
        trigger = ReleaseTrigger(kind=TriggerKind.MANUAL, tag_name=tag, ref_branch=branch)
    elif tag is not None:
        trigger = ReleaseTrigger(kind=TriggerKind.TAG, tag_name=tag, ref_branch=tag)
    else:
        return Err(
            InvalidTrigger(
                message="no trigger given",
                hint="pass --tag vX.Y.Z or --branch <name>",
            )
        )
    return trigger.validate()


def _version_from_tauri_conf(path: Path) -> str | None:
    try:
        obj: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    data = as_str_dict(obj)
    if data is None:
        return None
    return get_str(data, "version")


def _version_from_cargo_toml(path: Path) -> str | None:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return None
    package = get_table(data, "package")
    if package is None:
        return None
    return get_str(package, "version")


def resolve_release_tag(
    trigger: ReleaseTrigger, *, tauri_dir: Path
) -> Result[str, InvalidTrigger]:
    """Return the tag the release is keyed by."""
    if trigger.tag_name is not None:
        return Ok(trigger.tag_name)

    version = _version_from_tauri_conf(tauri_dir / "tauri.conf.json") or _version_from_cargo_toml(
        tauri_dir / "Cargo.toml"
    )
    if version is None:
        return Err(
            InvalidTrigger(
                message="cannot derive a release tag for a manual run",
                hint=f"no version in {tauri_dir / 'tauri.conf.json'} or Cargo.toml; pass --tag",
            )
        )

    semver = parse_version(version)
    if semver is None:
        return Err(
            InvalidTrigger(
                message=f"application version {version!r} is not X.Y.Z",
                hint=_TAG_HINT,
            )
        )
    return Ok(semver.to_tag())
