"""Step progress reporting for multi-stage commands.

The deploy pipeline announces each stage as ``[n/total] message``. The
reporter is a collaborator so the pipeline stays independent from how (or
whether) progress is rendered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .console import ConsoleProtocol, Style

__all__ = ["ProgressReporter", "ConsoleProgress", "MockProgress"]


class ProgressReporter(Protocol):
    def start(self, total_steps: int, message: str) -> None: ...

    def next_step(self, message: str) -> None: ...

    def update(self, message: str) -> None: ...

    def finish(self, message: str) -> None: ...

    def fail(self, message: str) -> None: ...


class ConsoleProgress:
    """Renders steps as console lines."""

    def __init__(self, console: ConsoleProtocol) -> None:
        self._console = console
        self._total = 0
        self._current = 0

    @property
    def current_step(self) -> int:
        return self._current

    def start(self, total_steps: int, message: str) -> None:
        self._total = total_steps
        self._current = 1
        self._console.print(self._label(message), Style.STEP)

    def next_step(self, message: str) -> None:
        self._current = min(self._current + 1, self._total)
        self._console.print(self._label(message), Style.STEP)

    def update(self, message: str) -> None:
        self._console.print(f"  {message}", Style.DIM)

    def finish(self, message: str) -> None:
        self._console.newline()
        self._console.success(message)

    def fail(self, message: str) -> None:
        self._console.newline()
        self._console.error(message)

    def _label(self, message: str) -> str:
        return f"[{self._current}/{self._total}] {message}"


@dataclass
class MockProgress:
    """Records reporter calls as ``(event, message)`` tuples."""

    events: list[tuple[str, str]] = field(default_factory=list)
    total_steps: int = 0

    def start(self, total_steps: int, message: str) -> None:
        self.total_steps = total_steps
        self.events.append(("start", message))

    def next_step(self, message: str) -> None:
        self.events.append(("step", message))

    def update(self, message: str) -> None:
        self.events.append(("update", message))

    def finish(self, message: str) -> None:
        self.events.append(("finish", message))

    def fail(self, message: str) -> None:
        self.events.append(("fail", message))

    @property
    def steps(self) -> list[str]:
        return [message for event, message in self.events if event in {"start", "step"}]

    @property
    def failed(self) -> bool:
        return any(event == "fail" for event, _ in self.events)

    @property
    def finished(self) -> bool:
        return any(event == "finish" for event, _ in self.events)
