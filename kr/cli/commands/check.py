from __future__ import annotations

import os

import typer

from kr.cli.commands._helpers import selected_targets
from kr.cli.context import CLIContext, build_context
from kr.core.errors import ErrorCode
from kr.core.result import Err
from kr.core.targets import PlatformTarget
from kr.output.console import Style
from kr.platform.process import DefaultCommandRunner
from kr.services.checks import CheckResult, CheckStatus
from kr.services.profiles import profile_for
from kr.services.release.gh import ensure_gh_available
from kr.services.signing import load_signing_material
from kr.services.toolchains import ToolchainProvisioner


def check(
    platform: list[PlatformTarget] | None = typer.Option(
        None, "--platform", help="Platform to check (repeatable; default: all)"
    ),
) -> None:
    """Check release toolchains without installing anything."""
    ctx = build_context()

    provisioner = ToolchainProvisioner(
        work_dir=ctx.work_dir,
        environment=ctx.environment,
        runner=DefaultCommandRunner(),
        console=ctx.console,
        allow_install=False,
    )

    ctx.console.print(f"work dir: {ctx.work_dir}", Style.DIM)
    ctx.console.print(f"platform: {ctx.platform}", Style.DIM)

    has_errors = False
    for target in selected_targets(platform):
        profile = profile_for(target, config=ctx.config, platform=ctx.platform)
        results = provisioner.check(profile)
        _print_group(ctx, target.capitalize(), results)
        has_errors = has_errors or any(not r.ok for r in results)

    release: list[CheckResult] = []
    gh = ensure_gh_available()
    if isinstance(gh, Err):
        release.append(CheckResult.error("gh", gh.error.message, hint=gh.error.hint))
        has_errors = True
    else:
        release.append(CheckResult.success("gh", "found"))
    repo = ctx.release_repo or "(checkout default remote)"
    release.append(CheckResult.success("repo", repo))
    signing = load_signing_material(os.environ)
    release.append(
        CheckResult.success("signing", "configured" if signing is not None else "not configured")
    )
    _print_group(ctx, "Release", release)

    if has_errors:
        raise typer.Exit(code=int(ErrorCode.FAILURE))


def _print_group(ctx: CLIContext, title: str, results: list[CheckResult]) -> None:
    console = ctx.console
    console.header(title)
    for r in results:
        style = Style.SUCCESS if r.status == CheckStatus.OK else Style.ERROR
        console.print(f"{r.name}: {r.message}", style)
        if r.hint and r.status != CheckStatus.OK:
            console.print(f"hint: {r.hint}", Style.DIM)
