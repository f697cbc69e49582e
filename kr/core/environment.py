"""Process environment inputs.

Toolchain roots and the package identifier are read once at startup.
Signing secrets are deliberately not part of `BuildEnvironment`; they are
loaded separately into `SigningMaterial` and stripped from every build
child environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

__all__ = ["BuildEnvironment", "SIGNING_ENV_VARS", "PACKAGE_ID_ENV"]

PACKAGE_ID_ENV = "KR_PACKAGE_ID"
RELEASE_REPO_ENV = "KR_RELEASE_REPO"

SIGNING_KEY_ENV = "TAURI_SIGNING_PRIVATE_KEY"
SIGNING_PASSWORD_ENV = "TAURI_SIGNING_PRIVATE_KEY_PASSWORD"
SIGNING_PUBLIC_KEY_ENV = "TAURI_SIGNING_PUBLIC_KEY"
SIGNING_ENV_VARS = (SIGNING_KEY_ENV, SIGNING_PASSWORD_ENV, SIGNING_PUBLIC_KEY_ENV)


def _path_or_none(value: str | None) -> Path | None:
    if value is None or not value.strip():
        return None
    return Path(value.strip()).expanduser()


def _without_signing(environ: Mapping[str, str]) -> dict[str, str]:
    return {k: v for k, v in environ.items() if k not in SIGNING_ENV_VARS}


def _copy_environ() -> dict[str, str]:
    return _without_signing(os.environ)


@dataclass(frozen=True, slots=True)
class BuildEnvironment:
    """Read-only view of the environment inputs of a run."""

    android_home: Path | None = None
    ndk_home: Path | None = None
    java_home: Path | None = None
    package_id: str | None = None
    release_repo: str | None = None
    base: Mapping[str, str] = field(default_factory=_copy_environ, repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BuildEnvironment:
        env = dict(os.environ if environ is None else environ)
        return cls(
            android_home=_path_or_none(env.get("ANDROID_HOME") or env.get("ANDROID_SDK_ROOT")),
            ndk_home=_path_or_none(env.get("NDK_HOME") or env.get("ANDROID_NDK_HOME")),
            java_home=_path_or_none(env.get("JAVA_HOME")),
            package_id=(env.get(PACKAGE_ID_ENV) or "").strip() or None,
            release_repo=(env.get(RELEASE_REPO_ENV) or "").strip() or None,
            base=_without_signing(env),
        )

    def child_env(self) -> dict[str, str]:
        """Environment for toolchain subprocesses, without signing secrets."""
        env = {k: v for k, v in self.base.items() if k not in SIGNING_ENV_VARS}
        if self.package_id is not None:
            env[PACKAGE_ID_ENV] = self.package_id
        return env
