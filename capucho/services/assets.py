"""Publishing the web build to a static-hosting branch."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Protocol

from capucho.core.result import Result

from .steps import StepFailure, StepRunner, publish_assets_command

__all__ = ["AssetPublisher", "GhPagesPublisher"]


class AssetPublisher(Protocol):
    def publish(self, dist_dir: Path, repo_url: str) -> Result[None, StepFailure]: ...


class GhPagesPublisher:
    """Pushes ``dist/`` to the ``assets`` branch of a git repo via ``gh-pages``."""

    def __init__(self, runner: StepRunner, *, now: datetime | None = None) -> None:
        self._runner = runner
        self._now = now

    def publish(self, dist_dir: Path, repo_url: str) -> Result[None, StepFailure]:
        cmd = publish_assets_command(dist_dir, repo_url, now=self._now)
        return self._runner.run(cmd, cwd=dist_dir.parent).map(lambda _: None)
