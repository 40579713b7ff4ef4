"""Shared helpers for CLI commands."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, TypeVar

import typer

from capucho.core.errors import ErrorCode
from capucho.core.result import Err, Result
from capucho.output.console import Style

if TYPE_CHECKING:
    from capucho.cli.context import CLIContext

T = TypeVar("T")
E = TypeVar("E")


class Environment(StrEnum):
    dev = "dev"
    staging = "staging"
    prod = "prod"


def exit_on_error(
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.BUILD_ERROR,
) -> T:
    """Return the Ok value, or print the error and exit.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))
    return result.value


def parse_config_value(raw: str) -> object:
    """``true``/``false`` and integers become JSON scalars; everything else stays text."""
    lowered = raw.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if raw.strip().lstrip("-").isdigit():
        return int(raw)
    return raw


def mask_secret(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"
