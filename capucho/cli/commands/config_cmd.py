"""Config commands - read and write the global and project layers."""

from __future__ import annotations

import json

import typer

from capucho.cli.commands._helpers import exit_on_error, mask_secret, parse_config_value
from capucho.cli.context import build_context
from capucho.core.errors import ErrorCode
from capucho.output.console import Style

config_app = typer.Typer(add_completion=False, no_args_is_help=True)

_SECRET_KEYS = frozenset({"apiKey"})


@config_app.command("set")
def set_value(
    key: str = typer.Argument(..., help="Config key (e.g. endpoint, apiKey, channel)"),
    value: str = typer.Argument(..., help="Value to store"),
    global_: bool = typer.Option(False, "--global", "-g", help="Write the global config"),
) -> None:
    """Set one config key."""
    ctx = build_context()
    parsed = parse_config_value(value)
    result = (
        ctx.resolver.set_global_config(key, parsed)
        if global_
        else ctx.resolver.set_project_config(key, parsed)
    )
    path = exit_on_error(result, ctx, ErrorCode.IO_ERROR)
    ctx.console.success(f"{key} saved to {path}")


@config_app.command("unset")
def unset_value(
    key: str = typer.Argument(..., help="Config key to remove"),
    global_: bool = typer.Option(False, "--global", "-g", help="Write the global config"),
) -> None:
    """Remove one config key."""
    ctx = build_context()
    result = (
        ctx.resolver.set_global_config(key, None)
        if global_
        else ctx.resolver.set_project_config(key, None)
    )
    path = exit_on_error(result, ctx, ErrorCode.IO_ERROR)
    ctx.console.success(f"{key} removed from {path}")


@config_app.command("list")
def list_values(
    environment: str | None = typer.Option(
        None, "--environment", "-e", help="Include this environment's env file"
    ),
) -> None:
    """Show the effective configuration."""
    ctx = build_context()
    config = ctx.resolver.resolve({"environment": environment})

    ctx.console.header("Effective config")
    ctx.console.print(f"global:  {ctx.resolver.global_config_path}", Style.DIM)
    ctx.console.print(f"project: {ctx.resolver.project_config_path}", Style.DIM)
    if not config:
        ctx.console.print("(empty)", Style.DIM)
        return
    for key in sorted(config):
        value = config[key]
        if key in _SECRET_KEYS and isinstance(value, str):
            rendered = mask_secret(value)
        elif isinstance(value, str):
            rendered = value
        else:
            rendered = json.dumps(value)
        ctx.console.print(f"{key} = {rendered}")
