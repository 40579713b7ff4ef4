from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Stage(Enum):
    INIT = "init"
    RESOLVE_PARAMETERS = "resolve-parameters"
    VERSION_BUMP = "version-bump"
    VERSION_SYNC = "version-sync"
    BUILD_STEPS = "build-steps"
    PACKAGE = "package"
    ASSET_PUBLISH = "asset-publish"
    UPLOAD = "upload"
    DONE = "done"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class DeployFailure:
    """Fatal pipeline error.

    Attributes:
        stage: Stage that failed.
        step: Command line or sub-step name, when there is one.
        message: What went wrong, ready for display.
        log_path: Diagnostic log holding the failed command's output.
        hint: Suggested next action.
    """

    stage: Stage
    message: str
    step: str | None = None
    log_path: Path | None = None
    hint: str | None = None
