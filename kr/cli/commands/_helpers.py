"""Shared helpers for CLI commands."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, NoReturn

import typer

from kr.core.errors import ErrorCode
from kr.core.result import Err, Result
from kr.core.targets import PlatformTarget, ordered_targets
from kr.output.console import Style

if TYPE_CHECKING:
    from kr.cli.context import CLIContext


def exit_on_error[T, E](
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.FAILURE,
) -> T:
    """Return the value of an Ok result, or print the error and exit.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))
    return result.value


def selected_targets(platforms: Sequence[PlatformTarget] | None) -> tuple[PlatformTarget, ...]:
    """Requested platforms in upload order; all of them when none is given."""
    if not platforms:
        return tuple(PlatformTarget)
    return ordered_targets(platforms)


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)
