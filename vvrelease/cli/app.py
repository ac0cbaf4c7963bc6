from __future__ import annotations

import typer

from vvrelease import __version__
from vvrelease.cli.commands.publish_cmd import publish_downloader
from vvrelease.cli.commands.run_cmd import run
from vvrelease.cli.commands.targets_cmd import targets
from vvrelease.cli.commands.version_cmd import version

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command()(run)
app.command()(targets)
app.command()(version)
app.command("publish-downloader")(publish_downloader)


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    show_version: bool = typer.Option(False, "--tool-version", help="Show vvrelease version."),
) -> None:
    if show_version:
        typer.echo(__version__)
        raise typer.Exit(code=0)


def main() -> None:
    app()
