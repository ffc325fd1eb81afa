"""Output abstraction layer."""

from .console import (
    ConsoleProtocol,
    JobConsole,
    MockConsole,
    RichConsole,
    Style,
)

__all__ = [
    "ConsoleProtocol",
    "JobConsole",
    "MockConsole",
    "RichConsole",
    "Style",
]
