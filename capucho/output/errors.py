"""Error presentation utilities.

Centralized failure formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from capucho.core.errors import ErrorCode
from capucho.output.console import Style
from capucho.services.deploy_errors import DeployFailure, Stage

if TYPE_CHECKING:
    from capucho.output.console import ConsoleProtocol

__all__ = ["print_deploy_failure", "deploy_failure_exit_code"]


def print_deploy_failure(failure: DeployFailure, console: ConsoleProtocol) -> None:
    """Print a pipeline failure with its step, log location and hint."""
    console.error(f"{failure.stage} failed: {failure.message}")
    if failure.step:
        console.print(f"step: {failure.step}", Style.DIM)
    if failure.log_path is not None:
        console.print(f"details: {failure.log_path}", Style.DIM)
    if failure.hint:
        console.print(f"hint: {failure.hint}", Style.DIM)


def deploy_failure_exit_code(failure: DeployFailure) -> int:
    """Get exit code for a pipeline failure."""
    match failure.stage:
        case Stage.INIT | Stage.RESOLVE_PARAMETERS:
            return int(ErrorCode.ENV_ERROR)
        case Stage.VERSION_BUMP | Stage.BUILD_STEPS | Stage.PACKAGE | Stage.ASSET_PUBLISH:
            return int(ErrorCode.BUILD_ERROR)
        case Stage.VERSION_SYNC:
            return int(ErrorCode.IO_ERROR)
        case Stage.UPLOAD:
            return int(ErrorCode.NETWORK_ERROR)
        case Stage.DONE:
            return int(ErrorCode.IO_ERROR)
    return int(ErrorCode.USER_ERROR)
