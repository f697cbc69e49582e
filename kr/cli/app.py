from __future__ import annotations

import os
from pathlib import Path

import typer

from kr import __version__
from kr.cli.commands.check import check
from kr.cli.commands.locate import locate
from kr.cli.commands.run_release import run_release
from kr.cli.context import WORKDIR_ENV
from kr.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command("run-release")(run_release)
app.command()(check)
app.command()(locate)


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    workdir: Path | None = typer.Option(
        None,
        "--workdir",
        help="Application checkout (default: current directory)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if workdir is not None:
        try:
            root = workdir.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --workdir: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.FAILURE))

        if not root.is_dir():
            typer.echo(f"error: --workdir '{root}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.FAILURE))

        os.environ[WORKDIR_ENV] = str(root)


def main() -> None:
    app()
