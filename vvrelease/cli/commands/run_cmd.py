from __future__ import annotations

import os
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from vvrelease.cli.commands._helpers import exit_with_code, trigger_from_options, unwrap_or_exit
from vvrelease.cli.context import build_context
from vvrelease.core.errors import ErrorCode
from vvrelease.output.console import Style
from vvrelease.release.targets import DEFAULT_CATALOG, select_targets, validate_catalog
from vvrelease.release.trigger import RunFlags, Secrets
from vvrelease.release.version import resolve_version
from vvrelease.services.pipeline import ReleasePipeline, RunReport
from vvrelease.services.publisher import ReleasePublisher

_console = Console()

_STATUS_STYLE = {"succeeded": "green", "failed": "red bold", "skipped": "dim"}


def run(
    version: str | None = typer.Option(None, "--version", help="A.BB.C or A.BB.C-preview.D"),
    tag: str | None = typer.Option(None, "--tag", help="Release tag (release trigger)"),
    code_signing: bool = typer.Option(
        False, "--code-signing", help="Sign Windows libraries (needs CERT_BASE64/CERT_PASSWORD)"
    ),
    github_event: bool = typer.Option(
        False, "--github-event", help="Read the trigger from GITHUB_EVENT_NAME/PATH"
    ),
    target: list[str] | None = typer.Option(
        None, "--target", "-t", help="Artifact name to build (repeatable; default: host targets)"
    ),
    jobs: int | None = typer.Option(None, "--jobs", "-j", min=1, help="Parallel build units"),
    repo: str | None = typer.Option(None, "--repo", help="Release repository (OWNER/NAME)"),
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Per-target workspaces"),
    no_downloader: bool = typer.Option(
        False, "--no-downloader", help="Do not publish the downloader files"
    ),
    source: Path | None = typer.Option(None, "--source", help="Cargo workspace root"),
) -> None:
    """Build, bundle, archive and (optionally) publish every selected target."""
    ctx = build_context(source)

    trigger = trigger_from_options(
        version=version, tag=tag, code_signing=code_signing, github_event=github_event
    )
    resolved = unwrap_or_exit(resolve_version(trigger), ctx)
    catalog = unwrap_or_exit(validate_catalog(DEFAULT_CATALOG), ctx)
    selection = unwrap_or_exit(select_targets(catalog, names=target or (), host=ctx.host), ctx)

    secrets = Secrets.from_env()
    flags = RunFlags.evaluate(resolved, trigger, secrets)

    ctx.console.header(f"{ctx.config.product.name} {resolved}")
    ctx.console.print(f"source: {ctx.source}", Style.DIM)
    ctx.console.print(
        f"targets: {', '.join(t.artifact_name for t in selection.selected)}", Style.DIM
    )
    if not flags.publish:
        reason = "DEBUG version" if resolved.is_debug else "SKIP_UPLOADING_RELEASE_ASSET != 0"
        ctx.console.info(f"publishing disabled ({reason})")
    if flags.sign:
        ctx.console.info("code signing requested for Windows targets")

    unit_root = (work_dir or ctx.source.resolve(ctx.config.paths.work_dir)).resolve()
    try:
        unit_root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        ctx.console.error(f"cannot create work directory {unit_root}: {e}")
        exit_with_code(int(ErrorCode.IO_ERROR))

    publisher = ReleasePublisher(
        cwd=ctx.source.root,
        console=ctx.console,
        repo=repo or ctx.config.release.repo,
        target_commitish=ctx.config.release.target_commitish or os.environ.get("GITHUB_SHA"),
    )
    pipeline = ReleasePipeline(
        source=ctx.source,
        config=ctx.config,
        console=ctx.console,
        version=resolved,
        flags=flags,
        secrets=secrets,
        publisher=publisher,
        work_dir=unit_root,
    )

    try:
        report = pipeline.run(selection, max_workers=jobs, include_downloader=not no_downloader)
    except KeyboardInterrupt:
        ctx.console.error("interrupted")
        exit_with_code(int(ErrorCode.BUILD_ERROR))

    print_report(report)
    for note in report.notes:
        ctx.console.warning(note)
    if not report.ok:
        exit_with_code(int(report.exit_code))


def print_report(report: RunReport) -> None:
    table = Table(title=f"Release {report.version}")
    table.add_column("target")
    table.add_column("status")
    table.add_column("detail")
    table.add_column("published")
    for t in report.targets:
        style = _STATUS_STYLE.get(t.status, "")
        if t.status == "succeeded":
            detail = t.archive.name if t.archive is not None else ""
            if t.warnings:
                detail += f" ({len(t.warnings)} warning(s))"
        else:
            detail = f"{t.stage}: {t.message}" if t.stage else (t.message or "")
        published = ", ".join(f"{o.filename} [{o.status}]" for o in t.published)
        if t.publish_errors:
            published += f" {len(t.publish_errors)} failed"
        table.add_row(t.artifact_name, t.status, detail, published or "-", style=style)
    _console.print(table, markup=False)

    for o in report.downloader:
        _console.print(f"downloader: {o.filename} [{o.status}]", markup=False)
    for e in report.publish_errors:
        _console.print(f"publish failed: {e.pretty()}", style="red", markup=False)
