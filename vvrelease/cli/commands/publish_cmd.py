from __future__ import annotations

import os
from pathlib import Path

import typer

from vvrelease.cli.commands._helpers import exit_with_code, trigger_from_options, unwrap_or_exit
from vvrelease.cli.context import build_context
from vvrelease.core.errors import ErrorCode
from vvrelease.release.trigger import RunFlags, Secrets
from vvrelease.release.version import resolve_version
from vvrelease.services.publisher import ReleasePublisher


def publish_downloader(
    version: str | None = typer.Option(None, "--version", help="A.BB.C or A.BB.C-preview.D"),
    tag: str | None = typer.Option(None, "--tag", help="Release tag (release trigger)"),
    github_event: bool = typer.Option(
        False, "--github-event", help="Read the trigger from GITHUB_EVENT_NAME/PATH"
    ),
    repo: str | None = typer.Option(None, "--repo", help="Release repository (OWNER/NAME)"),
    source: Path | None = typer.Option(None, "--source", help="Cargo workspace root"),
) -> None:
    """Upload the downloader files to the release, without building anything."""
    ctx = build_context(source)
    trigger = trigger_from_options(
        version=version, tag=tag, code_signing=False, github_event=github_event
    )
    resolved = unwrap_or_exit(resolve_version(trigger), ctx)
    flags = RunFlags.evaluate(resolved, trigger, Secrets.from_env())

    publisher = ReleasePublisher(
        cwd=ctx.source.root,
        console=ctx.console,
        repo=repo or ctx.config.release.repo,
        target_commitish=ctx.config.release.target_commitish or os.environ.get("GITHUB_SHA"),
    )
    outcomes, errors = publisher.publish_downloader(
        ctx.source.resolve(ctx.config.paths.downloads), resolved, flags
    )
    for o in outcomes:
        if o.status == "uploaded":
            ctx.console.success(o.filename)
        else:
            ctx.console.info(f"{o.filename}: skipped ({o.reason})")
    for e in errors:
        ctx.console.error(e.pretty())
    if errors:
        exit_with_code(int(ErrorCode.NETWORK_ERROR))
