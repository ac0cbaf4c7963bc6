from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from vvrelease.cli.commands._helpers import unwrap_or_exit
from vvrelease.cli.context import build_context
from vvrelease.release.targets import DEFAULT_CATALOG, validate_catalog

_console = Console()


def targets(
    source: Path | None = typer.Option(None, "--source", help="Cargo workspace root"),
) -> None:
    """List the build targets and which of them this host builds."""
    ctx = build_context(source)
    catalog = unwrap_or_exit(validate_catalog(DEFAULT_CATALOG), ctx)

    table = Table(title="Build targets")
    table.add_column("artifact")
    table.add_column("os")
    table.add_column("triple")
    table.add_column("backend")
    table.add_column("features")
    table.add_column("cross compiler")
    table.add_column("this host")
    for t in catalog:
        table.add_row(
            t.artifact_name,
            str(t.os),
            t.triple,
            str(t.backend),
            t.features or "-",
            " ".join(t.cross_compiler_packages) or "-",
            "yes" if ctx.host == t.os else "no",
        )
    _console.print(table)
