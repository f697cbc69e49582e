"""run-release command - build every platform and publish the release."""

from __future__ import annotations

import os
from pathlib import Path

import typer

from kr.cli.commands._helpers import exit_on_error, exit_with_code, selected_targets
from kr.cli.context import build_context
from kr.core.targets import PlatformTarget
from kr.output.report import print_outcomes, write_report
from kr.platform.process import CancelToken, DefaultCommandRunner
from kr.services.orchestrator import Orchestrator
from kr.services.release.gh import GhReleaseChannel, ensure_gh_available
from kr.services.release.notes import load_notes_file
from kr.services.signing import load_signing_material
from kr.services.trigger import make_trigger


def run_release(
    tag: str | None = typer.Option(None, "--tag", help="Version tag (vX.Y.Z)"),
    branch: str | None = typer.Option(
        None, "--branch", help="Branch for a manual run", show_default=False
    ),
    platform: list[PlatformTarget] | None = typer.Option(
        None, "--platform", help="Platform to release (repeatable; default: all)"
    ),
    draft: bool | None = typer.Option(
        None, "--draft/--no-draft", help="Keep the release as a draft (default: from config)"
    ),
    notes_file: Path | None = typer.Option(None, "--notes-file", help="Extra markdown notes"),
    report: Path | None = typer.Option(None, "--report", help="Write a JSON run report"),
    run_timeout: float | None = typer.Option(
        None, "--run-timeout", help="Global budget in seconds", show_default=False
    ),
) -> None:
    """Build desktop and mobile packages and publish them to a GitHub release."""
    ctx = build_context()

    trigger = exit_on_error(make_trigger(tag=tag, branch=branch), ctx)
    exit_on_error(ensure_gh_available(), ctx)

    user_notes: str | None = None
    if notes_file is not None:
        user_notes = exit_on_error(load_notes_file(notes_file), ctx)

    signing = load_signing_material(os.environ)
    if signing is not None:
        ctx.console.info("signing key configured")

    cancel = CancelToken()
    runner = DefaultCommandRunner()
    channel = GhReleaseChannel(
        work_dir=ctx.work_dir, repo=ctx.release_repo, runner=runner, cancel=cancel
    )
    orchestrator = Orchestrator(
        work_dir=ctx.work_dir,
        config=ctx.config,
        environment=ctx.environment,
        platform=ctx.platform,
        console=ctx.console,
        runner=runner,
        channel=channel,
        signing=signing,
        cancel=cancel,
        user_notes=user_notes,
    )

    result = orchestrator.run(
        trigger, selected_targets(platform), draft=draft, run_timeout=run_timeout
    )
    print_outcomes(result, ctx.console)

    if report is not None:
        written = write_report(report, result)
        ctx.console.info(f"report written to {written}")

    exit_with_code(int(result.exit_code))
