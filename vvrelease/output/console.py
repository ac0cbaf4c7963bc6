"""Console output abstraction.

Services print through ``ConsoleProtocol`` so they can run against Rich in
the CLI and against ``MockConsole`` in tests. Build units run on worker
threads; ``PrefixedConsole`` tags their lines with the artifact name.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
    "PrefixedConsole",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    BOLD = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Interface for styled console output."""

    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def newline(self) -> None: ...


class RichConsole:
    """Production console backed by Rich.

    Messages are escaped, so file names such as ``lib[x].so`` print literally.
    """

    def __init__(self) -> None:
        from rich.console import Console

        self._console = Console()
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.BOLD: "bold",
            Style.HEADER: "blue bold",
        }

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        rich_style = self._style_map.get(style, "")
        if rich_style:
            self._console.print(message, style=rich_style, markup=False, highlight=False)
        else:
            self._console.print(message, markup=False, highlight=False)

    def _tagged(self, tag: str, message: str) -> None:
        from rich.markup import escape

        self._console.print(f"{tag} {escape(message)}", highlight=False)

    def success(self, message: str) -> None:
        self._tagged("[green]OK[/green]", message)

    def error(self, message: str) -> None:
        self._tagged("[red bold]error:[/red bold]", message)

    def warning(self, message: str) -> None:
        self._tagged("[yellow]warning:[/yellow]", message)

    def info(self, message: str) -> None:
        self._tagged("[cyan]info:[/cyan]", message)

    def header(self, message: str) -> None:
        from rich.markup import escape

        self._console.print(f"\n[blue bold]{escape(message)}[/blue bold]")

    def newline(self) -> None:
        self._console.print()


@dataclass(frozen=True, slots=True)
class PrefixedConsole:
    """Console wrapper that prefixes every line with ``<prefix>: ``."""

    inner: ConsoleProtocol
    prefix: str

    def _p(self, message: str) -> str:
        return f"{self.prefix}: {message}"

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.inner.print(self._p(message), style)

    def success(self, message: str) -> None:
        self.inner.success(self._p(message))

    def error(self, message: str) -> None:
        self.inner.error(self._p(message))

    def warning(self, message: str) -> None:
        self.inner.warning(self._p(message))

    def info(self, message: str) -> None:
        self.inner.info(self._p(message))

    def header(self, message: str) -> None:
        self.inner.header(self._p(message))

    def newline(self) -> None:
        self.inner.newline()


@dataclass
class OutputRecord:
    """A single output record for MockConsole."""

    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console that captures output for tests.

    Appends are guarded by a lock because build units print from worker
    threads.
    """

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def _add(self, message: str, style: Style) -> None:
        with self._lock:
            self.outputs.append(OutputRecord(message, style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._add(message, style)

    def success(self, message: str) -> None:
        self._add(f"OK {message}", Style.SUCCESS)

    def error(self, message: str) -> None:
        self._add(f"error: {message}", Style.ERROR)

    def warning(self, message: str) -> None:
        self._add(f"warning: {message}", Style.WARNING)

    def info(self, message: str) -> None:
        self._add(f"info: {message}", Style.INFO)

    def header(self, message: str) -> None:
        self._add(message, Style.HEADER)

    def newline(self) -> None:
        self._add("", Style.DEFAULT)

    # Test helpers

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]
