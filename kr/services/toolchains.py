"""Toolchain provisioner.

Verifies, per target profile, that every toolchain requirement is present
before a build starts. Presence is always checked first; only a missing
requirement with a known install command (rustup targets, cargo-installed
CLIs) is installed, and it is verified again afterwards. SDK roots are never
installed. Provisioning does not retry: a failure is returned to the owning
build job as is.
"""

from __future__ import annotations

import shutil
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from kr.core.environment import BuildEnvironment
from kr.core.result import Err, Ok, Result
from kr.core.targets import PlatformTarget
from kr.output.console import ConsoleProtocol, Style
from kr.platform.process import CancelToken, CommandRunner, ProcessError
from kr.services.checks import CheckResult
from kr.services.errors import Cancelled, PhaseTimeout, ProvisionError
from kr.services.model import Ready
from kr.services.profiles import (
    BinaryRequirement,
    Requirement,
    RustTargetRequirement,
    SdkRootRequirement,
    TargetProfile,
)

__all__ = ["ToolchainProvisioner"]

ProvisionFailure = ProvisionError | PhaseTimeout | Cancelled


@dataclass(frozen=True, slots=True)
class _Missing:
    message: str
    hint: str | None = None


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return "ok"


class ToolchainProvisioner:
    """Idempotent `ensure(profile)` shared by all build jobs of a run."""

    def __init__(
        self,
        *,
        work_dir: Path,
        environment: BuildEnvironment,
        runner: CommandRunner,
        console: ConsoleProtocol,
        which: Callable[[str], str | None] = shutil.which,
        allow_install: bool = True,
    ) -> None:
        self._work_dir = work_dir
        self._env = environment
        self._runner = runner
        self._console = console
        self._which = which
        self._allow_install = allow_install
        self._ready: dict[PlatformTarget, Ready] = {}
        self._ready_lock = threading.Lock()
        # Desktop and mobile share most of the Rust toolchain; installs of a
        # shared requirement must not race.
        self._install_lock = threading.Lock()

    def ensure(
        self, profile: TargetProfile, *, cancel: CancelToken | None = None
    ) -> Result[Ready, ProvisionFailure]:
        """Make sure every requirement of `profile` is present.

        Returns:
            Ok(Ready) when all requirements are verified,
            Err(ProvisionError) for a missing or uninstallable requirement,
            Err(PhaseTimeout) / Err(Cancelled) when interrupted.
        """
        with self._ready_lock:
            cached = self._ready.get(profile.target)
        if cached is not None:
            return Ok(cached)

        target = profile.target
        deadline = time.monotonic() + profile.timeouts.provision
        checked: list[str] = []

        for req in profile.requirements:
            verified = self._verify(req, deadline=deadline, cancel=cancel)
            if isinstance(verified, Ok):
                checked.append(f"{req.id}: {verified.value}")
                continue

            missing = verified.error
            if isinstance(missing, ProcessError):
                return Err(self._interrupted(profile, missing))

            install = self._install_command(req)
            if install is None:
                return Err(
                    ProvisionError(
                        target=target,
                        requirement=req.id,
                        message=f"{req.id}: {missing.message}",
                        hint=missing.hint,
                    )
                )

            installed = self._install(req, install, profile, deadline=deadline, cancel=cancel)
            if isinstance(installed, Err):
                return installed
            checked.append(f"{req.id}: {installed.value}")

        ready = Ready(target=target, checked=tuple(checked))
        with self._ready_lock:
            self._ready[target] = ready
        self._console.print(f"[{target}] toolchains ready ({len(checked)} checked)", Style.DIM)
        return Ok(ready)

    def check(self, profile: TargetProfile) -> list[CheckResult]:
        """Report every requirement of `profile` without installing anything."""
        deadline = time.monotonic() + profile.timeouts.provision
        results: list[CheckResult] = []
        for req in profile.requirements:
            verified = self._verify(req, deadline=deadline, cancel=None)
            match verified:
                case Ok(version):
                    results.append(CheckResult.success(req.id, version))
                case Err(ProcessError() as e):
                    results.append(CheckResult.error(req.id, str(e)))
                case Err(_Missing() as m):
                    hint = m.hint
                    install = self._install_command(req)
                    if install is not None:
                        hint = f"kr installs it on demand: {' '.join(install)}"
                    results.append(CheckResult.error(req.id, m.message, hint=hint))
        return results

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _install_command(self, req: Requirement) -> tuple[str, ...] | None:
        if not self._allow_install:
            return None
        match req:
            case BinaryRequirement(install=install):
                return install
            case RustTargetRequirement():
                return req.install
            case SdkRootRequirement():
                return None

    def _install(
        self,
        req: Requirement,
        install: tuple[str, ...],
        profile: TargetProfile,
        *,
        deadline: float,
        cancel: CancelToken | None,
    ) -> Result[str, ProvisionFailure]:
        target = profile.target
        with self._install_lock:
            # A sibling job may have installed it while we waited for the lock.
            again = self._verify(req, deadline=deadline, cancel=cancel)
            if isinstance(again, Ok):
                return again

            self._console.print(f"[{target}] {' '.join(install)}", Style.DIM)
            result = self._runner.run(
                list(install),
                self._work_dir,
                self._env.child_env(),
                timeout=_remaining(deadline),
                cancel=cancel,
                merge_output=True,
            )
            if isinstance(result, Err):
                e = result.error
                if e.timed_out or e.cancelled:
                    return Err(self._interrupted(profile, e))
                return Err(
                    ProvisionError(
                        target=target,
                        requirement=req.id,
                        message=f"{req.id}: install failed (exit {e.returncode})",
                        hint=e.tail(5) or None,
                    )
                )

        verified = self._verify(req, deadline=deadline, cancel=cancel)
        match verified:
            case Ok(version):
                return Ok(version)
            case Err(ProcessError() as e):
                return Err(self._interrupted(profile, e))
            case Err(_Missing() as m):
                return Err(
                    ProvisionError(
                        target=target,
                        requirement=req.id,
                        message=f"{req.id}: still missing after install ({m.message})",
                        hint=m.hint,
                    )
                )
        raise AssertionError("unreachable")

    def _verify(
        self, req: Requirement, *, deadline: float, cancel: CancelToken | None
    ) -> Result[str, _Missing | ProcessError]:
        """Check one requirement.

        Returns Ok(version), Err(_Missing) when absent, or Err(ProcessError)
        only when the probe itself timed out or was cancelled.
        """
        match req:
            case SdkRootRequirement():
                root = getattr(self._env, req.attr)
                if root is None:
                    return Err(_Missing(f"{req.env_var} is not set", hint=req.hint))
                if not root.is_dir():
                    return Err(_Missing(f"{req.env_var} does not exist: {root}", hint=req.hint))
                if not (root / req.marker).exists():
                    return Err(_Missing(f"{req.marker} not found under {root}", hint=req.hint))
                return Ok(str(root))

            case BinaryRequirement():
                if self._which(req.probe[0]) is None:
                    return Err(_Missing("missing", hint=req.hint))
                probed = self._probe(list(req.probe), deadline=deadline, cancel=cancel)
                if isinstance(probed, Err):
                    e = probed.error
                    if e.timed_out or e.cancelled:
                        return Err(e)
                    return Err(_Missing(str(e), hint=req.hint))
                return probed.map(_first_line)

            case RustTargetRequirement():
                if self._which("rustup") is None:
                    return Err(_Missing("rustup missing", hint="Install Rust: https://rustup.rs/"))
                listed = self._probe(
                    ["rustup", "target", "list", "--installed"], deadline=deadline, cancel=cancel
                )
                if isinstance(listed, Err):
                    e = listed.error
                    if e.timed_out or e.cancelled:
                        return Err(e)
                    return Err(_Missing(str(e)))
                installed = {line.strip() for line in listed.value.splitlines()}
                if req.triple not in installed:
                    return Err(_Missing("not installed"))
                return Ok("installed")

        raise AssertionError(f"unexpected requirement: {req!r}")

    def _probe(
        self, cmd: list[str], *, deadline: float, cancel: CancelToken | None
    ) -> Result[str, ProcessError]:
        return self._runner.run(
            cmd,
            self._work_dir,
            self._env.child_env(),
            timeout=_remaining(deadline),
            cancel=cancel,
            merge_output=True,
        )

    def _interrupted(self, profile: TargetProfile, error: ProcessError) -> PhaseTimeout | Cancelled:
        if error.cancelled:
            return Cancelled(phase="provision")
        return PhaseTimeout(
            target=profile.target, phase="provision", seconds=profile.timeouts.provision
        )


def _remaining(deadline: float) -> float:
    return max(deadline - time.monotonic(), 0.0)
