from __future__ import annotations

import typer

from vvrelease.cli.commands._helpers import exit_with_code, trigger_from_options
from vvrelease.core.errors import ErrorCode
from vvrelease.core.result import Err
from vvrelease.release.version import resolve_version


def version(
    version: str | None = typer.Option(None, "--version", help="A.BB.C or A.BB.C-preview.D"),
    tag: str | None = typer.Option(None, "--tag", help="Release tag (release trigger)"),
    github_event: bool = typer.Option(
        False, "--github-event", help="Read the trigger from GITHUB_EVENT_NAME/PATH"
    ),
) -> None:
    """Print the version a run with these inputs would use."""
    trigger = trigger_from_options(
        version=version, tag=tag, code_signing=False, github_event=github_event
    )
    resolved = resolve_version(trigger)
    if isinstance(resolved, Err):
        typer.echo(f"error: {resolved.error.pretty()}", err=True)
        exit_with_code(int(ErrorCode.USER_ERROR))
    typer.echo(resolved.value.value)
