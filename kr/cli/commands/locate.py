"""locate command - find a platform's package in an existing build output."""

from __future__ import annotations

from pathlib import Path

import typer

from kr.cli.context import build_context
from kr.core.errors import ErrorCode
from kr.core.result import Err, Ok
from kr.core.targets import PlatformTarget
from kr.output.console import Style
from kr.output.errors import print_run_error
from kr.services.locator import ArtifactLocator
from kr.services.profiles import profile_for


def locate(
    platform: PlatformTarget = typer.Argument(..., help="Platform whose package to find"),
    output_dir: Path | None = typer.Option(
        None,
        "--output-dir",
        help="Build output root (default: the platform's nominal root)",
        show_default=False,
    ),
) -> None:
    """Locate the single package a build produced."""
    ctx = build_context()
    profile = profile_for(platform, config=ctx.config, platform=ctx.platform)
    root = output_dir if output_dir is not None else ctx.tauri_dir / profile.output_root

    ctx.console.print(f"searching {root}", Style.DIM)
    for pattern in profile.search.patterns:
        ctx.console.print(f"  {pattern}", Style.DIM)

    match ArtifactLocator().locate(platform, profile.search, root):
        case Ok(artifact):
            ctx.console.success(str(artifact.path))
            ctx.console.print(f"size: {artifact.size_bytes} bytes", Style.DIM)
            ctx.console.print(f"sha256: {artifact.checksum}", Style.DIM)
        case Err(error):
            print_run_error(error, ctx.console)
            for candidate in error.candidates:
                ctx.console.print(f"  candidate: {candidate}", Style.DIM)
            raise typer.Exit(code=int(ErrorCode.FAILURE))
