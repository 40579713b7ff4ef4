"""Version commands - keep env files and build counters in sync."""

from __future__ import annotations

import typer

from capucho.cli.commands._helpers import Environment, exit_on_error
from capucho.cli.context import CLIContext, build_context
from capucho.core.errors import ErrorCode
from capucho.services.steps import BuildStepRunner, BumpKind, version_bump_command
from capucho.services.version import VersionInfo, VersionSyncer

version_app = typer.Typer(add_completion=False, no_args_is_help=True)


def _report(ctx: CLIContext, syncer: VersionSyncer, infos: list[VersionInfo]) -> None:
    for message in syncer.warnings:
        ctx.console.warning(message)
    for info in infos:
        ctx.console.success(f"{info.environment}: {info.version} ({info.version_code})")


@version_app.command("sync")
def sync(
    environment: Environment | None = typer.Option(
        None,
        "--environment",
        "-e",
        help="Environment to sync (default: all)",
        show_default=False,
    ),
    bump: bool = typer.Option(False, "--bump", help="Increment the build counter"),
) -> None:
    """Copy package.json version and build counters into the env files."""
    ctx = build_context()
    syncer = VersionSyncer(ctx.root)

    if environment is not None:
        info = exit_on_error(syncer.sync(environment.value, bump=bump), ctx, ErrorCode.IO_ERROR)
        _report(ctx, syncer, [info])
        return

    infos = exit_on_error(syncer.sync_all(bump=bump), ctx, ErrorCode.IO_ERROR)
    _report(ctx, syncer, infos)


@version_app.command("bump")
def bump(
    kind: BumpKind = typer.Argument(..., help="major, minor or patch"),
) -> None:
    """Bump the semantic version, then sync every environment with new counters."""
    ctx = build_context()
    runner = BuildStepRunner(ctx.paths.deploy_log_path, console=ctx.console)
    exit_on_error(runner.run(version_bump_command(kind), ctx.root), ctx, ErrorCode.BUILD_ERROR)

    syncer = VersionSyncer(ctx.root)
    infos = exit_on_error(syncer.sync_all(bump=True), ctx, ErrorCode.IO_ERROR)
    _report(ctx, syncer, infos)
