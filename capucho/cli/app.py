from __future__ import annotations

import os
from pathlib import Path

import typer

from capucho import __version__
from capucho.cli.commands.config_cmd import config_app
from capucho.cli.commands.deploy_cmd import deploy_app
from capucho.cli.commands.project_cmd import channels, init
from capucho.cli.commands.version_cmd import version_app
from capucho.cli.context import PROJECT_ROOT_ENV
from capucho.core.errors import ErrorCode

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    invoke_without_command=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(init)
app.command()(channels)

# Sub-apps
app.add_typer(deploy_app, name="deploy", help="Build, package and upload a release.")
app.add_typer(version_app, name="version", help="Version and build counter management.")
app.add_typer(config_app, name="config", help="Global and project configuration.")


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    project: Path | None = typer.Option(
        None,
        "--project",
        help="Project root (default: current directory)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if project is not None:
        try:
            root = project.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --project: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not root.is_dir():
            typer.echo(f"error: --project '{root}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ[PROJECT_ROOT_ENV] = str(root)


def main() -> None:
    app()
