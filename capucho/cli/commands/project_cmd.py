"""Project commands - link the project to the cloud and inspect it."""

from __future__ import annotations

import asyncio

import typer

from capucho.cli.commands._helpers import exit_on_error
from capucho.cli.context import CLIContext, build_context, require_project
from capucho.cloud.models import CloudApp
from capucho.cloud.service import CloudService
from capucho.core.errors import ErrorCode
from capucho.core.project import ProjectDescriptor, load_descriptor, save_descriptor
from capucho.core.result import Err, Ok
from capucho.output.console import Style


def _service(ctx: CLIContext) -> CloudService:
    return CloudService.from_config(ctx.resolver.resolve())


def _print_channels(ctx: CLIContext, service: CloudService, cloud_app_id: str) -> bool:
    result = asyncio.run(service.get_channels(cloud_app_id))
    match result:
        case Ok(channels):
            if not channels:
                ctx.console.print("No channels configured yet.", Style.DIM)
                return True
            for channel in channels:
                visibility = "public" if channel.public else "private"
                env = f" [{channel.environment}]" if channel.environment else ""
                ctx.console.print(f"  {channel.name} ({visibility}){env}")
            return True
        case Err(error):
            ctx.console.warning(f"Could not fetch channels: {error}")
            return False


def channels() -> None:
    """List the release channels of this project's cloud app."""
    ctx = build_context()
    descriptor = require_project(ctx)
    service = _service(ctx)
    if not service.authenticated:
        ctx.console.error("Not authenticated")
        ctx.console.print("hint: capucho config set endpoint <url> --global", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    ctx.console.header(f"Channels for {descriptor.app_name}")
    if not _print_channels(ctx, service, descriptor.cloud_app_id):
        raise typer.Exit(code=int(ErrorCode.NETWORK_ERROR))


def init(
    cloud_app_id: str | None = typer.Option(
        None, "--cloud-app-id", help="Link an existing cloud app by id"
    ),
    org: str | None = typer.Option(None, "--org", help="Organization to create the app in"),
    name: str | None = typer.Option(None, "--name", help="App name (create mode)"),
    bundle_id: str | None = typer.Option(
        None, "--bundle-id", help="Bundle identifier, e.g. com.company.app (create mode)"
    ),
    pages_repo: str | None = typer.Option(
        None, "--pages-repo", help="Git repo receiving published web assets"
    ),
    force: bool = typer.Option(False, "--force", help="Replace an existing project link"),
) -> None:
    """Link this project to a cloud app (existing or newly created)."""
    ctx = build_context()

    existing = load_descriptor(ctx.paths)
    if existing is not None and not force:
        ctx.console.warning(
            f"Project already initialized: {existing.app_name} ({existing.cloud_app_id})"
        )
        ctx.console.print("hint: pass --force to re-initialize", Style.DIM)
        return

    if cloud_app_id is None and org is None:
        ctx.console.error("Pass --cloud-app-id to link an app or --org to create one")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    service = _service(ctx)
    check = asyncio.run(service.verify_credentials())
    if not check.valid:
        ctx.console.error(f"Authentication failed: {check.reason}")
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
    if check.user is not None:
        ctx.console.print(f"Logged in as: {check.user.email}", Style.DIM)

    if cloud_app_id is not None:
        app = _find_app(ctx, service, cloud_app_id)
    else:
        app = _create_app(ctx, service, org or "", name, bundle_id)

    descriptor = ProjectDescriptor.new(
        bundle_id=app.app_id,
        cloud_app_id=app.id,
        app_name=app.name,
        pages_repo_url=pages_repo,
    )
    path = exit_on_error(save_descriptor(ctx.paths, descriptor), ctx, ErrorCode.IO_ERROR)

    ctx.console.success(f"Linked {app.name} ({app.app_id})")
    ctx.console.print(f"Cloud ID: {app.id}", Style.DIM)
    ctx.console.print(f"Config:   {path}", Style.DIM)
    _print_channels(ctx, service, app.id)
    ctx.console.print("Next: capucho deploy ota", Style.DIM)


def _find_app(ctx: CLIContext, service: CloudService, cloud_app_id: str) -> CloudApp:
    apps = exit_on_error(asyncio.run(service.get_apps()), ctx, ErrorCode.NETWORK_ERROR)
    for app in apps:
        if cloud_app_id in (app.id, app.app_id):
            return app
    ctx.console.error(f"No cloud app with id {cloud_app_id}")
    if apps:
        ctx.console.print(
            f"Available: {', '.join(f'{a.name} ({a.id})' for a in apps)}", Style.DIM
        )
    raise typer.Exit(code=int(ErrorCode.USER_ERROR))


def _create_app(
    ctx: CLIContext,
    service: CloudService,
    org: str,
    name: str | None,
    bundle_id: str | None,
) -> CloudApp:
    if not name or not bundle_id:
        ctx.console.error("--name and --bundle-id are required to create an app")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    orgs = exit_on_error(asyncio.run(service.get_organizations()), ctx, ErrorCode.NETWORK_ERROR)
    target = next((o for o in orgs if org in (o.id, o.slug)), None)
    if target is None:
        ctx.console.error(f"Unknown organization: {org}")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    if not target.can_create_apps:
        ctx.console.error(f"Role '{target.role}' cannot create apps in {target.name}")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    result = asyncio.run(
        service.create_app(name=name, bundle_id=bundle_id, organization_id=target.id)
    )
    return exit_on_error(result, ctx, ErrorCode.NETWORK_ERROR)
