from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from capucho.core.config import ConfigResolver
from capucho.core.errors import ErrorCode
from capucho.core.project import ProjectDescriptor, ProjectPaths, require_descriptor
from capucho.core.result import Err
from capucho.output.console import ConsoleProtocol, RichConsole, Style

PROJECT_ROOT_ENV = "CAPUCHO_PROJECT_ROOT"


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    resolver: ConfigResolver
    console: ConsoleProtocol

    @property
    def paths(self) -> ProjectPaths:
        return self.resolver.paths


def project_root() -> Path:
    override = os.environ.get(PROJECT_ROOT_ENV)
    if override:
        return Path(override)
    return Path.cwd()


def build_context() -> CLIContext:
    root = project_root()
    if not root.is_dir():
        typer.echo(f"error: project root '{root}' is not a directory", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    console = RichConsole()
    return CLIContext(
        root=root,
        resolver=ConfigResolver(root, console=console),
        console=console,
    )


def require_project(ctx: CLIContext) -> ProjectDescriptor:
    result = require_descriptor(ctx.paths)
    if isinstance(result, Err):
        ctx.console.error(result.error.message)
        if result.error.hint:
            ctx.console.print(f"hint: {result.error.hint}", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
    return result.value
