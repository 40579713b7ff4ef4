"""Deploy pipeline: from project sources to an uploaded release.

Stages run strictly in order::

    Init -> ResolveParameters -> [VersionBump] -> VersionSync -> [BuildSteps]
         -> Package -> [AssetPublish] -> Upload -> Done

Every fatal problem ends the run with ``Err(DeployFailure)`` naming the stage
that failed. Asset publishing is the only stage whose failure is downgraded to
a warning. Commands run one at a time; only the remote config fetch and the
upload are awaited.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from capucho.core.project import ProjectDescriptor, ProjectPaths, require_descriptor
from capucho.core.result import Err, Ok, Result

from .artifacts import ArtifactKind, find_native_artifact, find_ota_bundle
from .assets import AssetPublisher, GhPagesPublisher
from .deploy_errors import DeployFailure, Stage
from .steps import (
    BumpKind,
    StepFailure,
    StepRunner,
    asset_generation_command,
    bundle_zip_command,
    env_build_command,
    gradle_command,
    gradle_task,
    native_sync_command,
    templating_command,
    version_bump_command,
)

if TYPE_CHECKING:
    from capucho.cloud.models import CloudProjectConfig
    from capucho.cloud.remote_config import RemoteConfigCache
    from capucho.cloud.upload import UploadClient, UploadResult
    from capucho.core.config import ConfigResolver, EffectiveConfig
    from capucho.output.console import ConsoleProtocol
    from capucho.output.progress import ProgressReporter

    from .version import VersionInfo, VersionSyncer

__all__ = [
    "DEFAULT_CHANNELS",
    "DeployJob",
    "DeployPipeline",
    "DeployReport",
    "default_channel",
    "resolve_app_id",
]

DEFAULT_CHANNELS: dict[str, str] = {
    "dev": "development",
    "staging": "beta",
    "prod": "stable",
}

NATIVE_UPLOAD_PATH = "/api/admin/native-upload"
OTA_UPLOAD_PATH = "/api/admin/upload"


def default_channel(environment: str) -> str:
    return DEFAULT_CHANNELS.get(environment, "production")


def resolve_app_id(
    config: EffectiveConfig, descriptor: ProjectDescriptor, environment: str
) -> str:
    """Per-environment app id.

    An explicit ``environments.<env>.appId`` wins; otherwise the base id gets
    a ``.<env>`` suffix for every environment except ``prod``.
    """
    explicit = config.environment_app_id(environment)
    if explicit:
        return explicit
    base = config.app_id or descriptor.bundle_id
    return base if environment == "prod" else f"{base}.{environment}"


@dataclass(frozen=True, slots=True)
class DeployJob:
    kind: ArtifactKind
    environment: str | None = None
    channel: str | None = None
    platform: str = "android"
    flavor: str | None = None
    note: str | None = None
    active: bool = True
    required: bool = True
    version_bump: BumpKind | None = None
    skip_build: bool = False
    skip_asset: bool = False
    overrides: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DeployReport:
    kind: ArtifactKind
    environment: str
    channel: str
    app_id: str
    version: str
    version_code: int
    artifact: Path
    upload_status: int
    warnings: tuple[str, ...] = ()


@dataclass(slots=True)
class _Resolved:
    descriptor: ProjectDescriptor
    config: EffectiveConfig
    environment: str
    channel: str
    app_id: str
    endpoint: str
    api_key: str


class DeployPipeline:
    """Runs one deploy job against one project.

    Collaborators are injected so tests can replace the command runner, the
    uploader transport and the progress reporter.
    """

    def __init__(
        self,
        *,
        resolver: ConfigResolver,
        runner: StepRunner,
        syncer: VersionSyncer,
        uploader: UploadClient,
        remote_config: RemoteConfigCache,
        progress: ProgressReporter,
        console: ConsoleProtocol,
        publisher: AssetPublisher | None = None,
        windows: bool | None = None,
    ) -> None:
        self._resolver = resolver
        self._paths: ProjectPaths = resolver.paths
        self._runner = runner
        self._syncer = syncer
        self._uploader = uploader
        self._remote_config = remote_config
        self._progress = progress
        self._console = console
        self._publisher = publisher if publisher is not None else GhPagesPublisher(runner)
        self._windows = windows
        self._warnings: list[str] = []

    async def run(self, job: DeployJob) -> Result[DeployReport, DeployFailure]:
        self._warnings = []
        result = await self._run(job)
        match result:
            case Ok(report):
                self._progress.finish(
                    f"Deployed {report.kind} v{report.version} ({report.version_code}) "
                    f"to {report.environment}/{report.channel}"
                )
            case Err(failure):
                self._progress.fail(f"{failure.stage}: {failure.message}")
        return result

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _run(self, job: DeployJob) -> Result[DeployReport, DeployFailure]:
        self._progress.start(_total_steps(job), "Loading project")

        descriptor = require_descriptor(self._paths)
        if isinstance(descriptor, Err):
            return _fail(Stage.INIT, descriptor.error.message, hint=descriptor.error.hint)

        base_config = self._resolver.resolve({**job.overrides, "environment": job.environment})
        cloud_config = await self._remote_config.fetch_project_config(base_config)

        self._progress.next_step("Resolving deploy parameters")
        resolved = self._resolve(job, descriptor.value, base_config, cloud_config)
        if isinstance(resolved, Err):
            return resolved
        params = resolved.value

        if job.version_bump is not None:
            self._progress.next_step(f"Bumping version ({job.version_bump})")
            bumped = self._step(
                Stage.VERSION_BUMP, version_bump_command(job.version_bump), self._paths.root
            )
            if isinstance(bumped, Err):
                return bumped

        self._progress.next_step(f"Syncing version to {params.environment}")
        synced = self._syncer.sync(params.environment, bump=job.version_bump is not None)
        if isinstance(synced, Err):
            return _fail(Stage.VERSION_SYNC, synced.error.message)
        info = synced.value

        if not job.skip_build:
            built = self._build(job, params.environment)
            if isinstance(built, Err):
                return built

        packaged = self._package(job, params, info)
        if isinstance(packaged, Err):
            return packaged
        artifact = packaged.value

        if not job.skip_asset:
            self._publish_assets(params.descriptor)

        self._progress.next_step(f"Uploading {artifact.name}")
        upload = await self._upload(job, params, info, artifact)
        if isinstance(upload, Err):
            return upload

        if job.kind is ArtifactKind.OTA:
            try:
                artifact.unlink()
                self._progress.update(f"Cleaned up: {artifact.name}")
            except OSError as e:
                self._warn(f"Could not remove {artifact}: {e}")

        return Ok(
            DeployReport(
                kind=job.kind,
                environment=params.environment,
                channel=params.channel,
                app_id=params.app_id,
                version=info.version,
                version_code=info.version_code,
                artifact=artifact,
                upload_status=upload.value.status,
                warnings=tuple(self._warnings),
            )
        )

    def _resolve(
        self,
        job: DeployJob,
        descriptor: ProjectDescriptor,
        base_config: EffectiveConfig,
        cloud_config: CloudProjectConfig | None,
    ) -> Result[_Resolved, DeployFailure]:
        stage = Stage.RESOLVE_PARAMETERS
        environment = job.environment or base_config.default_environment
        if not environment:
            return _fail(
                stage,
                "No environment given",
                hint="Pass --environment or run: capucho config set defaultEnvironment <env>",
            )

        # The legacy env file of the chosen environment joins the layers
        config = self._resolver.resolve({**job.overrides, "environment": environment})

        channel = job.channel or config.channel or default_channel(environment)
        if cloud_config is not None and cloud_config.channel_names:
            if channel not in cloud_config.channel_names:
                self._warn(
                    f"Channel '{channel}' is not configured on the server "
                    f"(known: {', '.join(cloud_config.channel_names)})"
                )

        endpoint = config.endpoint
        if not endpoint:
            return _fail(
                stage,
                "API endpoint not found in configuration or env files",
                hint="Run: capucho config set endpoint <url>",
            )
        api_key = config.api_key
        if not api_key:
            return _fail(
                stage,
                "API key not configured",
                hint="Run: capucho config set apiKey <key> --global",
            )

        app_id = resolve_app_id(config, descriptor, environment)
        self._progress.update(f"Environment: {environment}  Channel: {channel}  App: {app_id}")
        return Ok(
            _Resolved(
                descriptor=descriptor,
                config=config,
                environment=environment,
                channel=channel,
                app_id=app_id,
                endpoint=endpoint,
                api_key=api_key,
            )
        )

    def _build(self, job: DeployJob, environment: str) -> Result[None, DeployFailure]:
        root = self._paths.root
        self._progress.next_step(f"Generating assets for {environment}")
        if job.skip_asset:
            self._progress.update("Skipping assets")
        else:
            result = self._step(Stage.BUILD_STEPS, asset_generation_command(environment), root)
            if isinstance(result, Err):
                return result

        steps = (
            (f"Building for {environment}", env_build_command(environment)),
            ("Running templating sync", templating_command(environment)),
            (f"Syncing native project ({job.platform})", native_sync_command(job.platform)),
        )
        for message, cmd in steps:
            self._progress.next_step(message)
            result = self._step(Stage.BUILD_STEPS, cmd, root)
            if isinstance(result, Err):
                return result
        return Ok(None)

    def _package(
        self, job: DeployJob, params: _Resolved, info: VersionInfo
    ) -> Result[Path, DeployFailure]:
        stage = Stage.PACKAGE
        match job.kind:
            case ArtifactKind.NATIVE:
                self._progress.next_step(f"Compiling native {job.platform}")
                if job.platform != "android":
                    return _fail(stage, f"Native build for {job.platform} is not supported")
                android_dir = self._paths.android_dir
                compiled = self._step(
                    stage, gradle_command(params.environment, windows=self._windows), android_dir
                )
                if isinstance(compiled, Err):
                    return compiled
                _, variant = gradle_task(params.environment)
                artifact = find_native_artifact(android_dir, variant)
                if artifact is None:
                    return _fail(
                        stage,
                        f"Native build artifact not found under "
                        f"{android_dir / 'app' / 'build' / 'outputs' / 'apk' / variant}",
                    )
            case ArtifactKind.OTA:
                self._progress.next_step("Creating OTA bundle")
                root = self._paths.root
                zipped = self._step(stage, bundle_zip_command(params.app_id, info.version), root)
                if isinstance(zipped, Err):
                    return zipped
                artifact = find_ota_bundle(root)
                if artifact is None:
                    return _fail(stage, "Bundle zip not created")

        self._progress.update(f"Artifact: {artifact.name}")
        return Ok(artifact)

    def _publish_assets(self, descriptor: ProjectDescriptor) -> None:
        repo_url = descriptor.pages_repo_url
        dist_dir = self._paths.dist_dir
        if not repo_url or not dist_dir.is_dir():
            return
        self._progress.update(f"Publishing web assets to {repo_url}")
        try:
            result = self._publisher.publish(dist_dir, repo_url)
        except Exception as e:
            self._warn(f"Asset publish failed: {e}")
            return
        if isinstance(result, Err):
            self._warn(f"Asset publish failed: {result.error.message}")

    async def _upload(
        self, job: DeployJob, params: _Resolved, info: VersionInfo, artifact: Path
    ) -> Result[UploadResult, DeployFailure]:
        fields: dict[str, object]
        match job.kind:
            case ArtifactKind.NATIVE:
                url = f"{params.endpoint}{NATIVE_UPLOAD_PATH}"
                file_field = "file"
                fields = {
                    "active": job.active,
                    "channel": params.channel,
                    "environment": params.environment,
                    "flavor": job.flavor or "",
                    "platform": job.platform,
                    "releaseNotes": job.note or "",
                    "required": job.required,
                    "version": info.version,
                    "versionCode": info.version_code,
                }
            case ArtifactKind.OTA:
                url = f"{params.endpoint}{OTA_UPLOAD_PATH}"
                file_field = "bundle"
                fields = {
                    "version": info.version,
                    "versionCode": info.version_code,
                    "platform": job.platform,
                    "channel": params.channel,
                    "environment": params.environment,
                    "appId": params.app_id,
                    "required": job.required,
                    "active": job.active,
                    "release_notes": job.note,
                }

        result = await self._uploader.upload(
            url, artifact, fields, params.api_key, file_field=file_field
        )
        if not result.accepted:
            return _fail(
                Stage.UPLOAD,
                f"Upload failed: HTTP {result.status} - {_describe_body(result.data)}",
                step=url,
            )
        self._progress.update(f"Upload accepted (HTTP {result.status})")
        return Ok(result)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _step(self, stage: Stage, cmd: list[str], cwd: Path) -> Result[None, DeployFailure]:
        result = self._runner.run(cmd, cwd, silent=True)
        if isinstance(result, Err):
            return Err(_step_failure(stage, result.error))
        return Ok(None)

    def _warn(self, message: str) -> None:
        self._warnings.append(message)
        self._console.warning(message)


def _total_steps(job: DeployJob) -> int:
    # init, resolve, sync, package, upload
    total = 5
    if job.version_bump is not None:
        total += 1
    if not job.skip_build:
        total += 4
    return total


def _fail(
    stage: Stage,
    message: str,
    *,
    step: str | None = None,
    hint: str | None = None,
) -> Err[DeployFailure]:
    return Err(DeployFailure(stage=stage, message=message, step=step, hint=hint))


def _step_failure(stage: Stage, failure: StepFailure) -> DeployFailure:
    return DeployFailure(
        stage=stage,
        message=failure.message,
        step=failure.command_line,
        log_path=failure.log_path,
    )


def _describe_body(data: object) -> str:
    if isinstance(data, str):
        return data
    try:
        return json.dumps(data)
    except (TypeError, ValueError):
        return repr(data)
