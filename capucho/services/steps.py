"""External build steps and the diagnostic log.

Each step is one command run to completion through
``capucho.platform.process``. When a step fails, its command, working
directory, error and full output are appended to ``capucho-deploy.log`` so the
user can inspect what the toolchain printed.

The command builders below are the contract with the project's own npm/pnpm
scripts and the native toolchain.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from capucho.core.result import Err, Ok, Result
from capucho.platform.paths import is_windows
from capucho.platform.process import ProcessError, run as run_process

if TYPE_CHECKING:
    from capucho.output.console import ConsoleProtocol

__all__ = [
    "BumpKind",
    "BuildStepRunner",
    "StepFailure",
    "StepRunner",
    "asset_generation_command",
    "bundle_zip_command",
    "env_build_command",
    "format_log_block",
    "gradle_command",
    "gradle_task",
    "native_sync_command",
    "publish_assets_command",
    "templating_command",
    "version_bump_command",
]


class BumpKind(StrEnum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


_HEAVY = "=" * 40
_LIGHT = "-" * 40


@dataclass(frozen=True, slots=True)
class StepFailure:
    """A build step that exited non-zero or could not be started."""

    command: tuple[str, ...]
    cwd: Path
    message: str
    returncode: int
    log_path: Path | None = None

    @property
    def command_line(self) -> str:
        return " ".join(self.command)


class StepRunner(Protocol):
    def run(
        self, cmd: list[str], cwd: Path, *, silent: bool = True
    ) -> Result[str, StepFailure]: ...


def format_log_block(*, command: str, cwd: Path, error: str, stdout: str, stderr: str) -> str:
    lines = [
        _HEAVY,
        f"COMMAND: {command}",
        f"CWD: {cwd}",
        f"ERROR: {error}",
        _LIGHT,
        "STDOUT:",
        stdout.rstrip("\n"),
        _LIGHT,
        "STDERR:",
        stderr.rstrip("\n"),
        _HEAVY,
    ]
    return "\n".join(lines) + "\n"


class BuildStepRunner:
    def __init__(self, log_path: Path, console: ConsoleProtocol | None = None) -> None:
        self._log_path = log_path
        self._console = console

    @property
    def log_path(self) -> Path:
        return self._log_path

    def run(self, cmd: list[str], cwd: Path, *, silent: bool = True) -> Result[str, StepFailure]:
        result = run_process(cmd, cwd=cwd)
        if isinstance(result, Err):
            return Err(self._record_failure(result.error, cwd))

        if not silent and self._console is not None and result.value.strip():
            self._console.print(result.value.rstrip("\n"))
        return Ok(result.value)

    def _record_failure(self, error: ProcessError, cwd: Path) -> StepFailure:
        command = " ".join(error.command)
        block = format_log_block(
            command=command,
            cwd=cwd,
            error=str(error),
            stdout=error.stdout,
            stderr=error.stderr,
        )
        log_path: Path | None = self._log_path
        try:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._log_path.open("a", encoding="utf-8") as f:
                f.write(block)
        except OSError:
            log_path = None

        return StepFailure(
            command=error.command,
            cwd=cwd,
            message=str(error),
            returncode=error.returncode,
            log_path=log_path,
        )


# -----------------------------------------------------------------------------
# Command builders
# -----------------------------------------------------------------------------


def asset_generation_command(environment: str) -> list[str]:
    return ["npm", "run", f"assets:{environment}"]


def env_build_command(environment: str) -> list[str]:
    return ["pnpm", f"build:{environment}"]


def templating_command(environment: str) -> list[str]:
    return ["pnpm", f"trapeze:{environment}"]


def native_sync_command(platform: str) -> list[str]:
    return ["npx", "cap", "sync", platform]


def gradle_task(environment: str) -> tuple[str, str]:
    """(gradle task, apk variant) for an environment; only prod builds release."""
    if environment == "prod":
        return "assembleRelease", "release"
    return "assembleDebug", "debug"


def gradle_command(environment: str, *, windows: bool | None = None) -> list[str]:
    if windows is None:
        windows = is_windows()
    task, _ = gradle_task(environment)
    wrapper = "gradlew.bat" if windows else "./gradlew"
    return [wrapper, task]


def bundle_zip_command(app_id: str, version: str) -> list[str]:
    return ["npx", "@capgo/cli", "bundle", "zip", app_id, "--bundle", version, "--json"]


def version_bump_command(kind: BumpKind) -> list[str]:
    return ["npm", "version", kind.value, "--no-git-tag-version"]


def publish_assets_command(
    dist_dir: Path, repo_url: str, *, now: datetime | None = None
) -> list[str]:
    stamp = (now or datetime.now(UTC)).isoformat()
    return [
        "npx",
        "gh-pages",
        "-d",
        str(dist_dir),
        "-b",
        "assets",
        "-r",
        repo_url,
        "-t",
        "-m",
        f"Auto-deploy assets: {stamp}",
    ]
