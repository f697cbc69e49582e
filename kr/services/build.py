"""Platform builder.

Runs the two build phases of one platform:

- frontend: `trunk build --release` compiles the Leptos frontend to `dist/`
- native: the Tauri CLI packages that bundle for the platform

The builder only guarantees that both commands exited successfully and
returns the nominal output root of the platform. Where exactly the package
lands under that root depends on the toolchain version; finding it is the
locator's job.
"""

from __future__ import annotations

import json
import time
from pathlib import Path

from kr.core.config import Config
from kr.core.environment import BuildEnvironment
from kr.core.result import Err, Ok, Result
from kr.output.console import ConsoleProtocol, Style
from kr.platform.process import CancelToken, CommandRunner
from kr.services.errors import BuildFailure, Cancelled, Phase, PhaseTimeout
from kr.services.model import BuildOutcome
from kr.services.profiles import TargetProfile

__all__ = ["PlatformBuilder", "FRONTEND_COMMAND"]

FRONTEND_COMMAND = ("trunk", "build", "--release")

# The frontend phase already produced dist/; stop Tauri from rebuilding it.
_SKIP_BEFORE_BUILD = json.dumps({"build": {"beforeBuildCommand": ""}}, separators=(",", ":"))

BuildError = BuildFailure | PhaseTimeout | Cancelled


class PlatformBuilder:
    def __init__(
        self,
        *,
        config: Config,
        environment: BuildEnvironment,
        runner: CommandRunner,
        console: ConsoleProtocol,
    ) -> None:
        self._config = config
        self._env = environment
        self._runner = runner
        self._console = console

    def build(
        self, profile: TargetProfile, work_dir: Path, *, cancel: CancelToken | None = None
    ) -> Result[BuildOutcome, BuildError]:
        """Build one platform package.

        Returns:
            Ok(BuildOutcome) with the platform's nominal output root,
            Err(BuildFailure) carrying the tail of the failing phase's output,
            Err(PhaseTimeout) when the build budget is exhausted,
            Err(Cancelled) when the run was aborted.
        """
        deadline = time.monotonic() + profile.timeouts.build
        frontend_dir = work_dir / self._config.paths.frontend
        tauri_dir = work_dir / self._config.paths.tauri

        phases: tuple[tuple[Phase, list[str], Path], ...] = (
            ("frontend", list(FRONTEND_COMMAND), frontend_dir),
            ("native", [*profile.native_command, "--config", _SKIP_BEFORE_BUILD], work_dir),
        )
        for phase, cmd, cwd in phases:
            result = self._run_phase(profile, phase, cmd, cwd, deadline=deadline, cancel=cancel)
            if isinstance(result, Err):
                return result

        return Ok(BuildOutcome(target=profile.target, output_dir=tauri_dir / profile.output_root))

    def _run_phase(
        self,
        profile: TargetProfile,
        phase: Phase,
        cmd: list[str],
        cwd: Path,
        *,
        deadline: float,
        cancel: CancelToken | None,
    ) -> Result[None, BuildError]:
        target = profile.target
        self._console.print(f"[{target}] {phase}: {' '.join(cmd)}", Style.DIM)
        started = time.monotonic()

        result = self._runner.run(
            cmd,
            cwd,
            self._env.child_env(),
            timeout=max(deadline - started, 0.0),
            cancel=cancel,
            merge_output=True,
        )
        if isinstance(result, Ok):
            elapsed = time.monotonic() - started
            self._console.print(f"[{target}] {phase} done in {elapsed:.0f}s", Style.DIM)
            return Ok(None)

        e = result.error
        if e.cancelled:
            return Err(Cancelled(phase=phase))
        if e.timed_out:
            return Err(PhaseTimeout(target=target, phase=phase, seconds=profile.timeouts.build))
        return Err(
            BuildFailure(
                target=target,
                phase=phase,
                returncode=e.returncode,
                log_excerpt=e.tail(self._config.log_excerpt_lines),
            )
        )
