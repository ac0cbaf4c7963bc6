from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from vvrelease.core.config import Config, load_config_or_default
from vvrelease.core.errors import ErrorCode
from vvrelease.core.result import Err
from vvrelease.core.source import SourceTree, detect_source_tree
from vvrelease.output.console import ConsoleProtocol, RichConsole
from vvrelease.platform.detection import OsFamily, detect_os_family


@dataclass(frozen=True, slots=True)
class CLIContext:
    source: SourceTree
    config: Config
    host: OsFamily | None
    console: ConsoleProtocol


def build_context(source: Path | None = None) -> CLIContext:
    console = RichConsole()

    source_result = detect_source_tree(explicit=source)
    if isinstance(source_result, Err):
        console.error(source_result.error.message)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
    tree = source_result.value

    config_result = load_config_or_default(tree.config_path)
    if isinstance(config_result, Err):
        console.error(config_result.error.message)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(
        source=tree,
        config=config_result.value,
        host=detect_os_family(),
        console=console,
    )
