"""Subprocess execution with Result-based error handling.

This is the only module that calls ``subprocess`` directly. Output is always
captured so a failed build step can be written to the diagnostic log in
full.

Usage:
    result = run(["pnpm", "build:staging"], cwd=project_root)
    match result:
        case Ok(stdout):
            print(stdout)
        case Err(error):
            print(f"Failed: {error.stderr}")
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from capucho.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, or -1 when the process could not be started.
        stdout: Captured standard output (may be empty).
        stderr: Captured standard error.
        message: One-line description of what went wrong.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    message: str = ""

    def __str__(self) -> str:
        if self.message:
            return self.message
        return f"{' '.join(self.command)} failed (exit {self.returncode})"


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command to completion and return its stdout.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(stdout) on exit code 0, Err(ProcessError) otherwise.
    """
    command = tuple(cmd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout if isinstance(e.stdout, str) else ""
        return Err(
            ProcessError(
                command=command,
                returncode=-1,
                stdout=stdout,
                stderr="",
                message=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(
            ProcessError(
                command=command,
                returncode=-1,
                stdout="",
                stderr=str(e),
                message=str(e),
            )
        )

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=command,
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
                message=f"Command failed: {' '.join(command)} (exit {proc.returncode})",
            )
        )

    return Ok(proc.stdout)
