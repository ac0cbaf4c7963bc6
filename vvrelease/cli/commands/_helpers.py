"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from vvrelease.core.errors import ErrorCode
from vvrelease.core.result import Ok, Result
from vvrelease.output.console import Style
from vvrelease.release.trigger import Trigger, load_github_trigger

if TYPE_CHECKING:
    from vvrelease.cli.context import CLIContext


T = TypeVar("T")
E = TypeVar("E")


def unwrap_or_exit(
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.USER_ERROR,
) -> T:
    """Return the Ok value, or print the error and exit.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Ok):
        return result.value
    error = result.error
    message: str = getattr(error, "message", str(error))
    hint: str | None = getattr(error, "hint", None)
    ctx.console.error(message)
    if hint:
        ctx.console.print(f"hint: {hint}", Style.DIM)
    raise typer.Exit(code=int(error_code))


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


def trigger_from_options(
    *,
    version: str | None,
    tag: str | None,
    code_signing: bool,
    github_event: bool,
) -> Trigger:
    """Build the run trigger from CLI options.

    ``--github-event`` reads the Actions event instead; otherwise ``--tag``
    acts as a release trigger and ``--version`` as a manual one.
    """
    if github_event:
        return load_github_trigger()
    if tag:
        return Trigger.release(tag)
    if version or code_signing:
        return Trigger.manual(version, code_signing=code_signing)
    return Trigger()
