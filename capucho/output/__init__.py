"""Output abstraction layer."""

from .console import (
    ConsoleProtocol,
    MockConsole,
    RichConsole,
    Style,
)
from .progress import ConsoleProgress, MockProgress, ProgressReporter

__all__ = [
    "ConsoleProgress",
    "ConsoleProtocol",
    "MockConsole",
    "MockProgress",
    "ProgressReporter",
    "RichConsole",
    "Style",
]
