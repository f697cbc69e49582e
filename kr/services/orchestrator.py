"""Release orchestrator.

One run turns a trigger into a release:

    trigger -> one build job per platform (in parallel)
            -> barrier on all jobs
            -> publish the succeeded artifacts

Each job runs provision -> build -> locate -> (sign) on its own worker
thread and ends in a terminal state; a failing platform never stops its
siblings. Publishing happens only when at least one platform succeeded.
A run timeout or Ctrl-C cancels the shared token: children are killed,
workers unwind, and nothing is published.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path

from kr.core.config import Config
from kr.core.environment import BuildEnvironment
from kr.core.result import Err, Ok, Result
from kr.core.targets import PlatformTarget, ordered_targets
from kr.output.console import ConsoleProtocol, Style
from kr.output.errors import describe_failure
from kr.platform.detection import Platform
from kr.platform.process import CancelToken, CommandRunner
from kr.services.build import PlatformBuilder
from kr.services.errors import Cancelled, InvalidTrigger, JobError, PublishError
from kr.services.locator import ArtifactLocator
from kr.services.model import BuildJob, PlatformOutcome, ReleaseRecord, RunResult
from kr.services.profiles import TargetProfile, profile_for
from kr.services.release.gh import ReleaseChannel
from kr.services.release.publisher import ReleasePublisher
from kr.services.signing import Signer, SigningMaterial
from kr.services.toolchains import ToolchainProvisioner
from kr.services.trigger import ReleaseTrigger, TriggerKind, resolve_release_tag

__all__ = ["Orchestrator"]

# Packages modified before the build started are leftovers of earlier
# builds. Filesystem timestamps may be coarse.
_MTIME_SLACK_SECONDS = 2.0

UNSIGNED_WARNING = "unsigned: no signing key configured (TAURI_SIGNING_PRIVATE_KEY)"


class Orchestrator:
    """Runs one release from trigger to published release."""

    def __init__(
        self,
        *,
        work_dir: Path,
        config: Config,
        environment: BuildEnvironment,
        platform: Platform,
        console: ConsoleProtocol,
        runner: CommandRunner,
        channel: ReleaseChannel,
        signing: SigningMaterial | None = None,
        cancel: CancelToken | None = None,
        provisioner: ToolchainProvisioner | None = None,
        user_notes: str | None = None,
    ) -> None:
        self._work_dir = work_dir
        self._config = config
        self._platform = platform
        self._console = console
        self._signing = signing
        # Shared with the release channel so an aborted publish kills gh too.
        self._cancel = cancel or CancelToken()
        self._provisioner = provisioner or ToolchainProvisioner(
            work_dir=work_dir, environment=environment, runner=runner, console=console
        )
        self._builder = PlatformBuilder(
            config=config, environment=environment, runner=runner, console=console
        )
        self._locator = ArtifactLocator()
        self._signer = Signer(
            work_dir=work_dir, environment=environment, runner=runner, console=console
        )
        self._publisher = ReleasePublisher(
            channel=channel,
            console=console,
            title=config.release.title,
            user_notes=user_notes,
        )

    @property
    def cancel_token(self) -> CancelToken:
        return self._cancel

    def run(
        self,
        trigger: ReleaseTrigger,
        targets: Iterable[PlatformTarget],
        *,
        draft: bool | None = None,
        run_timeout: float | None = None,
    ) -> RunResult:
        """Build every requested platform and publish what succeeded.

        Args:
            trigger: Tag push or manual invocation.
            targets: Platforms to release; duplicates are ignored.
            draft: Keep the release as a draft (defaults to the config).
            run_timeout: Global budget in seconds (defaults to the config).
        """
        validated = trigger.validate()
        if isinstance(validated, Err):
            return RunResult(tag_name=trigger.tag_name, outcomes=(), error=validated.error)

        tauri_dir = self._work_dir / self._config.paths.tauri
        tag = resolve_release_tag(trigger, tauri_dir=tauri_dir)
        if isinstance(tag, Err):
            return RunResult(tag_name=None, outcomes=(), error=tag.error)
        tag_name = tag.value

        ordered = ordered_targets(targets)
        if not ordered:
            return RunResult(
                tag_name=tag_name,
                outcomes=(),
                error=InvalidTrigger(message="no platform requested", hint="pass --platform"),
            )

        self._console.header(f"Release {tag_name} ({trigger.kind} on {trigger.ref_branch})")
        if self._signing is None:
            self._console.warning("no signing key configured: desktop packages stay unsigned")

        jobs = {target: BuildJob(target=target) for target in ordered}
        timeout = run_timeout if run_timeout is not None else self._config.timeouts.run
        interrupted = self._run_jobs(jobs, timeout)

        outcomes = tuple(jobs[t].snapshot() for t in ordered)
        if interrupted is not None:
            return RunResult(tag_name=tag_name, outcomes=outcomes, error=interrupted)

        succeeded = [o for o in outcomes if o.succeeded]
        if not succeeded:
            self._console.error("every platform failed; nothing to publish")
            return RunResult(tag_name=tag_name, outcomes=outcomes)

        published = self._publish(
            tag_name,
            outcomes,
            draft=self._config.release.draft if draft is None else draft,
            target_ref=trigger.ref_branch if trigger.kind == TriggerKind.MANUAL else None,
        )
        match published:
            case Ok(record):
                return RunResult(tag_name=tag_name, outcomes=outcomes, release=record)
            case Err(error):
                return RunResult(tag_name=tag_name, outcomes=outcomes, error=error)

    # -------------------------------------------------------------------------
    # Fan-out / barrier
    # -------------------------------------------------------------------------

    def _run_jobs(
        self, jobs: dict[PlatformTarget, BuildJob], timeout: float | None
    ) -> Cancelled | None:
        executor = ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="kr-job")
        futures: list[Future[None]] = []
        interrupted: Cancelled | None = None
        try:
            for target, job in jobs.items():
                profile = profile_for(target, config=self._config, platform=self._platform)
                futures.append(executor.submit(self._run_job, job, profile))

            _, pending = wait(futures, timeout=timeout)
            if pending:
                interrupted = Cancelled(message=f"release run timed out after {timeout:g}s")
                self._cancel.cancel()
                wait(futures)
        except KeyboardInterrupt:
            interrupted = Cancelled(message="release run interrupted")
            self._cancel.cancel()
            wait(futures)
        finally:
            executor.shutdown(wait=True)

        # Unexpected worker exceptions are bugs: surface them.
        for future in futures:
            future.result()

        if interrupted is None and self._cancel.cancelled:
            interrupted = Cancelled()
        return interrupted

    def _run_job(self, job: BuildJob, profile: TargetProfile) -> None:
        target = job.target
        cancel = self._cancel
        job.start()
        self._console.print(f"[{target}] started", Style.DIM)

        ready = self._provisioner.ensure(profile, cancel=cancel)
        if isinstance(ready, Err):
            self._fail(job, ready.error)
            return

        newer_than = time.time() - _MTIME_SLACK_SECONDS
        built = self._builder.build(profile, self._work_dir, cancel=cancel)
        if isinstance(built, Err):
            self._fail(job, built.error)
            return
        job.output_dir = built.value.output_dir

        located = self._locator.locate(
            target, profile.search, built.value.output_dir, newer_than=newer_than
        )
        if isinstance(located, Err):
            self._fail(job, located.error)
            return
        artifact = located.value

        if profile.signing_supported:
            if self._signing is None:
                job.warnings.append(UNSIGNED_WARNING)
            else:
                signed = self._signer.sign(
                    artifact, self._signing, timeout=profile.timeouts.sign, cancel=cancel
                )
                if isinstance(signed, Err):
                    self._fail(job, signed.error)
                    return
                artifact = signed.value

        job.succeed(artifact)
        self._console.success(f"[{target}] {artifact.name}")

    def _fail(self, job: BuildJob, error: JobError) -> None:
        detail = describe_failure(error)
        job.fail(error, detail)
        if not isinstance(error, Cancelled):
            self._console.error(f"[{job.target}] {detail}")

    # -------------------------------------------------------------------------
    # Publish
    # -------------------------------------------------------------------------

    def _publish(
        self,
        tag: str,
        outcomes: tuple[PlatformOutcome, ...],
        *,
        draft: bool,
        target_ref: str | None,
    ) -> Result[ReleaseRecord, PublishError | Cancelled]:
        artifacts = [o.artifact for o in outcomes if o.artifact is not None]
        failures = {
            o.target: describe_failure(o.error)
            for o in outcomes
            if not o.succeeded and o.error is not None
        }

        budget = self._config.timeouts.publish
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kr-publish")
        future = executor.submit(
            self._publisher.publish,
            tag,
            draft=draft,
            artifacts=artifacts,
            failures=failures,
            target_ref=target_ref,
        )
        try:
            done, _ = wait([future], timeout=budget)
            if not done:
                self._cancel.cancel()
                wait([future])
                return Err(
                    PublishError(
                        reason="transport",
                        message=f"publishing {tag} timed out after {budget:g}s",
                        hint="re-run the release; uploads already made are kept",
                    )
                )
        except KeyboardInterrupt:
            self._cancel.cancel()
            wait([future])
            return Err(Cancelled(message="release run interrupted", phase="publish"))
        finally:
            executor.shutdown(wait=True)

        return future.result()
