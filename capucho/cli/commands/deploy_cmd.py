"""Deploy commands - build, package and upload a release."""

from __future__ import annotations

import asyncio
from enum import StrEnum

import typer

from capucho.cli.commands._helpers import Environment
from capucho.cli.context import CLIContext, build_context
from capucho.cloud.remote_config import RemoteConfigCache
from capucho.cloud.upload import UploadClient
from capucho.core.result import Err, Ok
from capucho.output.console import Style
from capucho.output.errors import deploy_failure_exit_code, print_deploy_failure
from capucho.output.progress import ConsoleProgress
from capucho.services.artifacts import ArtifactKind
from capucho.services.deploy import DeployJob, DeployPipeline, DeployReport
from capucho.services.steps import BuildStepRunner, BumpKind
from capucho.services.version import VersionSyncer

deploy_app = typer.Typer(add_completion=False, no_args_is_help=True)


class Platform(StrEnum):
    android = "android"
    ios = "ios"


def _pipeline(ctx: CLIContext) -> DeployPipeline:
    runner = BuildStepRunner(ctx.paths.deploy_log_path, console=ctx.console)
    return DeployPipeline(
        resolver=ctx.resolver,
        runner=runner,
        syncer=VersionSyncer(ctx.root),
        uploader=UploadClient(),
        remote_config=RemoteConfigCache(ctx.resolver),
        progress=ConsoleProgress(ctx.console),
        console=ctx.console,
    )


def _run_job(ctx: CLIContext, job: DeployJob) -> None:
    result = asyncio.run(_pipeline(ctx).run(job))
    match result:
        case Ok(report):
            _print_report(ctx, report)
        case Err(failure):
            print_deploy_failure(failure, ctx.console)
            raise typer.Exit(code=deploy_failure_exit_code(failure))


def _print_report(ctx: CLIContext, report: DeployReport) -> None:
    ctx.console.print(f"App:         {report.app_id}", Style.DIM)
    ctx.console.print(f"Version:     {report.version} ({report.version_code})", Style.DIM)
    ctx.console.print(f"Environment: {report.environment}", Style.DIM)
    ctx.console.print(f"Channel:     {report.channel}", Style.DIM)
    ctx.console.print(f"Artifact:    {report.artifact.name}", Style.DIM)


@deploy_app.command("ota")
def ota(
    environment: Environment | None = typer.Option(
        None, "--environment", "-e", help="Target environment", show_default=False
    ),
    channel: str | None = typer.Option(None, "--channel", "-c", help="Release channel"),
    version_bump: BumpKind | None = typer.Option(
        None, "--version-bump", "-v", help="Semantic version bump", show_default=False
    ),
    note: str | None = typer.Option(None, "--note", "-n", help="Release notes"),
    required: bool = typer.Option(True, "--required/--no-required", help="Mark as required"),
    active: bool = typer.Option(True, "--active/--no-active", help="Activate immediately"),
    skip_build: bool = typer.Option(False, "--skip-build", help="Skip the web build steps"),
    skip_asset: bool = typer.Option(False, "--skip-asset", "-s", help="Skip asset generation"),
    endpoint: str | None = typer.Option(None, "--endpoint", help="Server URL override"),
    api_key: str | None = typer.Option(None, "--api-key", help="API key override"),
) -> None:
    """Deploy an over-the-air bundle."""
    ctx = build_context()
    job = DeployJob(
        kind=ArtifactKind.OTA,
        environment=environment.value if environment else None,
        channel=channel,
        note=note,
        active=active,
        required=required,
        version_bump=version_bump,
        skip_build=skip_build,
        skip_asset=skip_asset,
        overrides={"endpoint": endpoint, "apiKey": api_key},
    )
    _run_job(ctx, job)


@deploy_app.command("native")
def native(
    environment: Environment | None = typer.Option(
        None, "--environment", "-e", help="Target environment", show_default=False
    ),
    platform: Platform = typer.Option(Platform.android, "--platform", "-p", help="Platform"),
    flavor: str | None = typer.Option(None, "--flavor", "-f", help="Client flavor"),
    channel: str | None = typer.Option(None, "--channel", "-c", help="Release channel"),
    version_bump: BumpKind | None = typer.Option(
        None, "--version-bump", "-v", help="Semantic version bump", show_default=False
    ),
    note: str | None = typer.Option(None, "--note", "-n", help="Release notes"),
    required: bool = typer.Option(True, "--required/--no-required", help="Mark as required"),
    active: bool = typer.Option(True, "--active/--no-active", help="Activate immediately"),
    skip_build: bool = typer.Option(False, "--skip-build", help="Skip the web build steps"),
    skip_asset: bool = typer.Option(False, "--skip-asset", "-s", help="Skip asset generation"),
    endpoint: str | None = typer.Option(None, "--endpoint", help="Server URL override"),
    api_key: str | None = typer.Option(None, "--api-key", help="API key override"),
) -> None:
    """Compile and deploy a native binary."""
    ctx = build_context()
    job = DeployJob(
        kind=ArtifactKind.NATIVE,
        environment=environment.value if environment else None,
        channel=channel,
        platform=platform.value,
        flavor=flavor,
        note=note,
        active=active,
        required=required,
        version_bump=version_bump,
        skip_build=skip_build,
        skip_asset=skip_asset,
        overrides={"endpoint": endpoint, "apiKey": api_key},
    )
    _run_job(ctx, job)
