"""Console output."""

from vvrelease.output.console import (
    ConsoleProtocol,
    MockConsole,
    PrefixedConsole,
    RichConsole,
    Style,
)

__all__ = ["ConsoleProtocol", "MockConsole", "PrefixedConsole", "RichConsole", "Style"]
