"""Tests for capucho.services.deploy module.

The pipeline runs end to end against a temporary project. External commands
go through a recording runner that fakes the files the real toolchain would
produce; HTTP goes through ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from capucho.cloud.remote_config import RemoteConfigCache
from capucho.cloud.upload import UploadClient
from capucho.core.config import ConfigResolver, EffectiveConfig
from capucho.core.project import ProjectDescriptor, ProjectPaths, save_descriptor
from capucho.core.result import Err, Ok, Result
from capucho.output.console import MockConsole
from capucho.output.progress import MockProgress
from capucho.services.artifacts import ArtifactKind
from capucho.services.deploy import (
    DeployJob,
    DeployPipeline,
    DeployReport,
    default_channel,
    resolve_app_id,
)
from capucho.services.deploy_errors import DeployFailure, Stage
from capucho.services.steps import BumpKind, StepFailure
from capucho.services.version import VersionSyncer

ENDPOINT = "https://updates.example.com"

REMOTE_CONFIG = {
    "channels": [
        {"id": "c1", "name": "beta"},
        {"id": "c2", "name": "stable"},
        {"id": "c3", "name": "development"},
    ],
    "flavors": [],
}


class FakeRunner:
    """Records commands and creates the outputs packaging commands would."""

    def __init__(self, root: Path, fail_on: str | None = None) -> None:
        self.root = root
        self.fail_on = fail_on
        self.calls: list[tuple[list[str], Path]] = []

    @property
    def commands(self) -> list[str]:
        return [" ".join(cmd) for cmd, _ in self.calls]

    def run(self, cmd: list[str], cwd: Path, *, silent: bool = True) -> Result[str, StepFailure]:
        self.calls.append((cmd, cwd))
        line = " ".join(cmd)
        if self.fail_on is not None and line.startswith(self.fail_on):
            return Err(
                StepFailure(
                    command=tuple(cmd),
                    cwd=cwd,
                    message=f"{line} failed (exit 1)",
                    returncode=1,
                    log_path=self.root / "capucho-deploy.log",
                )
            )
        if cmd[:4] == ["npx", "@capgo/cli", "bundle", "zip"]:
            (cwd / f"{cmd[4]}.zip").write_bytes(b"PK\x05\x06" + b"\x00" * 18)
        elif cmd[0] in {"./gradlew", "gradlew.bat"}:
            variant = "release" if cmd[1] == "assembleRelease" else "debug"
            apk = cwd / "app" / "build" / "outputs" / "apk" / variant / f"app-{variant}.apk"
            apk.parent.mkdir(parents=True, exist_ok=True)
            apk.write_bytes(b"apk")
        return Ok("")


class FakePublisher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[Path, str]] = []

    def publish(self, dist_dir: Path, repo_url: str) -> Result[None, StepFailure]:
        self.calls.append((dist_dir, repo_url))
        if self.fail:
            return Err(StepFailure(("npx", "gh-pages"), dist_dir.parent, "push rejected", 1))
        return Ok(None)


class CrashingPublisher(FakePublisher):
    def publish(self, dist_dir: Path, repo_url: str) -> Result[None, StepFailure]:
        self.calls.append((dist_dir, repo_url))
        raise RuntimeError("gh-pages exploded")


class Harness:
    def __init__(
        self,
        root: Path,
        home: Path,
        *,
        upload_response: httpx.Response | None = None,
        fail_on: str | None = None,
        publisher: FakePublisher | None = None,
    ) -> None:
        self.uploads: list[httpx.Request] = []
        self.upload_response = upload_response or httpx.Response(200, json={"success": True})
        self.runner = FakeRunner(root, fail_on=fail_on)
        self.progress = MockProgress()
        self.console = MockConsole()
        self.publisher = publisher or FakePublisher()
        resolver = ConfigResolver(root, home_dir=home)
        self.pipeline = DeployPipeline(
            resolver=resolver,
            runner=self.runner,
            syncer=VersionSyncer(root),
            uploader=UploadClient(transport=httpx.MockTransport(self._upload)),
            remote_config=RemoteConfigCache(
                resolver,
                transport=httpx.MockTransport(lambda _: httpx.Response(200, json=REMOTE_CONFIG)),
            ),
            progress=self.progress,
            console=self.console,
            publisher=self.publisher,
            windows=False,
        )

    def _upload(self, request: httpx.Request) -> httpx.Response:
        self.uploads.append(request)
        return self.upload_response

    def run(self, job: DeployJob) -> Result[DeployReport, DeployFailure]:
        return asyncio.run(self.pipeline.run(job))


def _write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture
def home(tmp_path: Path) -> Path:
    home = tmp_path / "home"
    _write_json(home / ".capucho" / "config.json", {"endpoint": ENDPOINT, "apiKey": "key-1"})
    return home


@pytest.fixture
def root(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    _write_json(root / "package.json", {"name": "shop", "version": "1.4.2"})
    for env in ("dev", "staging", "prod"):
        env_file = root / "build" / env / f".env.{env}"
        env_file.parent.mkdir(parents=True)
        env_file.write_text(
            f"VITE_UPDATE_API_URL={ENDPOINT}\nVITE_APP_VERSION=0.0.0\nVERSION_CODE=0\n",
            encoding="utf-8",
        )
    _save(root)
    return root


def _save(root: Path, pages_repo_url: str | None = None) -> None:
    descriptor = ProjectDescriptor(
        bundle_id="com.acme.shop",
        cloud_app_id="a1",
        app_name="Shop",
        created_at="2026-01-01T00:00:00+00:00",
        pages_repo_url=pages_repo_url,
    )
    assert isinstance(save_descriptor(ProjectPaths(root), descriptor), Ok)


def _form_field(request: httpx.Request, name: str) -> str | None:
    marker = f'name="{name}"\r\n\r\n'.encode()
    body = request.content
    start = body.find(marker)
    if start < 0:
        return None
    start += len(marker)
    return body[start : body.index(b"\r\n", start)].decode()


class TestOta:
    def test_staging_with_bump(self, root: Path, home: Path) -> None:
        harness = Harness(root, home)

        result = harness.run(
            DeployJob(kind=ArtifactKind.OTA, environment="staging", version_bump=BumpKind.PATCH)
        )

        assert isinstance(result, Ok)
        report = result.value
        assert report.app_id == "com.acme.shop.staging"
        assert report.channel == "beta"
        assert report.version == "1.4.2"
        assert report.version_code == 2
        assert report.upload_status == 200
        assert report.warnings == ()
        assert harness.runner.commands == [
            "npm version patch --no-git-tag-version",
            "npm run assets:staging",
            "pnpm build:staging",
            "pnpm trapeze:staging",
            "npx cap sync android",
            "npx @capgo/cli bundle zip com.acme.shop.staging --bundle 1.4.2 --json",
        ]
        assert all(cwd == root for _, cwd in harness.runner.calls)

        [upload] = harness.uploads
        assert str(upload.url) == f"{ENDPOINT}/api/admin/upload"
        assert upload.headers["Authorization"] == "Bearer key-1"
        assert b'name="bundle"; filename="com.acme.shop.staging.zip"' in upload.content
        assert _form_field(upload, "appId") == "com.acme.shop.staging"
        assert _form_field(upload, "versionCode") == "2"
        assert _form_field(upload, "channel") == "beta"
        assert _form_field(upload, "required") == "true"
        assert _form_field(upload, "release_notes") is None

        assert not report.artifact.exists()
        assert "VERSION_CODE=2" in (root / "build/staging/.env.staging").read_text(encoding="utf-8")

        assert harness.progress.total_steps == 10
        assert len(harness.progress.steps) == 10
        assert harness.progress.finished
        assert not harness.progress.failed

    def test_skip_build_only_packages(self, root: Path, home: Path) -> None:
        harness = Harness(root, home)

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="dev", skip_build=True))

        assert isinstance(result, Ok)
        assert result.value.app_id == "com.acme.shop.dev"
        assert result.value.channel == "development"
        assert result.value.version_code == 1
        assert harness.runner.commands == [
            "npx @capgo/cli bundle zip com.acme.shop.dev --bundle 1.4.2 --json"
        ]
        assert harness.progress.total_steps == 5

    def test_default_environment_from_config(self, root: Path, home: Path) -> None:
        _write_json(root / ".capucho" / "config.json", {"defaultEnvironment": "prod"})
        harness = Harness(root, home)

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, skip_build=True))

        assert isinstance(result, Ok)
        assert result.value.environment == "prod"
        assert result.value.app_id == "com.acme.shop"
        assert result.value.channel == "stable"


class TestNative:
    def test_prod_release_build(self, root: Path, home: Path) -> None:
        harness = Harness(root, home)

        result = harness.run(
            DeployJob(
                kind=ArtifactKind.NATIVE,
                environment="prod",
                skip_asset=True,
                note="Fixes checkout",
                flavor="clientA",
                required=False,
            )
        )

        assert isinstance(result, Ok)
        report = result.value
        assert report.artifact.name == "app-release.apk"
        assert report.artifact.exists()
        assert harness.runner.commands == [
            "pnpm build:prod",
            "pnpm trapeze:prod",
            "npx cap sync android",
            "./gradlew assembleRelease",
        ]
        assert harness.runner.calls[-1][1] == root / "android"
        assert ("update", "Skipping assets") in harness.progress.events

        [upload] = harness.uploads
        assert str(upload.url) == f"{ENDPOINT}/api/admin/native-upload"
        assert b'name="file"; filename="app-release.apk"' in upload.content
        assert _form_field(upload, "releaseNotes") == "Fixes checkout"
        assert _form_field(upload, "flavor") == "clientA"
        assert _form_field(upload, "required") == "false"
        assert _form_field(upload, "active") == "true"
        assert _form_field(upload, "version") == "1.4.2"

    def test_staging_uses_debug_variant(self, root: Path, home: Path) -> None:
        harness = Harness(root, home)

        result = harness.run(DeployJob(kind=ArtifactKind.NATIVE, environment="staging"))

        assert isinstance(result, Ok)
        assert result.value.artifact.name == "app-debug.apk"
        assert harness.runner.commands[-1] == "./gradlew assembleDebug"

    def test_ios_fails_at_package(self, root: Path, home: Path) -> None:
        harness = Harness(root, home)

        result = harness.run(
            DeployJob(kind=ArtifactKind.NATIVE, environment="prod", platform="ios", skip_asset=True)
        )

        assert isinstance(result, Err)
        assert result.error.stage is Stage.PACKAGE
        assert "npx cap sync ios" in harness.runner.commands
        assert harness.uploads == []


class TestAssets:
    def test_publishes_when_repo_and_dist_exist(self, root: Path, home: Path) -> None:
        _save(root, pages_repo_url="git@example.com:acme/assets.git")
        (root / "dist").mkdir()
        harness = Harness(root, home)

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Ok)
        assert harness.publisher.calls == [(root / "dist", "git@example.com:acme/assets.git")]

    def test_publish_failure_is_a_warning(self, root: Path, home: Path) -> None:
        _save(root, pages_repo_url="git@example.com:acme/assets.git")
        (root / "dist").mkdir()
        harness = Harness(root, home, publisher=FakePublisher(fail=True))

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Ok)
        assert any("push rejected" in w for w in result.value.warnings)
        assert harness.console.has_warning()
        assert len(harness.uploads) == 1

    def test_publisher_exception_is_a_warning(self, root: Path, home: Path) -> None:
        _save(root, pages_repo_url="git@example.com:acme/assets.git")
        (root / "dist").mkdir()
        harness = Harness(root, home, publisher=CrashingPublisher())

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Ok)
        assert any("gh-pages exploded" in w for w in result.value.warnings)
        assert len(harness.uploads) == 1
        assert harness.progress.finished

    def test_no_repo_skips_publish(self, root: Path, home: Path) -> None:
        (root / "dist").mkdir()
        harness = Harness(root, home)

        assert isinstance(harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging")), Ok)
        assert harness.publisher.calls == []


class TestFailures:
    def test_missing_descriptor_fails_at_init(self, root: Path, home: Path) -> None:
        (root / ".capucho" / "project.json").unlink()
        harness = Harness(root, home)

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Err)
        assert result.error.stage is Stage.INIT
        assert result.error.hint == "Run: capucho init"
        assert harness.runner.calls == []
        assert harness.progress.failed

    def test_missing_api_key_fails_at_resolve(self, root: Path, tmp_path: Path) -> None:
        empty_home = tmp_path / "nobody"
        empty_home.mkdir()
        harness = Harness(root, empty_home)

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Err)
        assert result.error.stage is Stage.RESOLVE_PARAMETERS
        assert result.error.message == "API key not configured"
        assert harness.runner.calls == []

    def test_missing_environment_fails_at_resolve(self, root: Path, home: Path) -> None:
        harness = Harness(root, home)

        result = harness.run(DeployJob(kind=ArtifactKind.OTA))

        assert isinstance(result, Err)
        assert result.error.stage is Stage.RESOLVE_PARAMETERS
        assert result.error.hint is not None

    def test_corrupt_counters_fail_at_sync(self, root: Path, home: Path) -> None:
        (root / "version-code.json").write_text("not json", encoding="utf-8")
        harness = Harness(root, home)

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Err)
        assert result.error.stage is Stage.VERSION_SYNC
        assert harness.runner.calls == []

    def test_build_step_failure_stops_pipeline(self, root: Path, home: Path) -> None:
        harness = Harness(root, home, fail_on="pnpm build")

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Err)
        assert result.error.stage is Stage.BUILD_STEPS
        assert result.error.step == "pnpm build:staging"
        assert result.error.log_path == root / "capucho-deploy.log"
        assert harness.runner.commands[-1] == "pnpm build:staging"
        assert harness.uploads == []

    def test_bump_failure_leaves_counters_alone(self, root: Path, home: Path) -> None:
        harness = Harness(root, home, fail_on="npm version")

        result = harness.run(
            DeployJob(kind=ArtifactKind.OTA, environment="staging", version_bump=BumpKind.MINOR)
        )

        assert isinstance(result, Err)
        assert result.error.stage is Stage.VERSION_BUMP
        assert not (root / "version-code.json").exists()

    def test_rejected_upload_fails_at_upload(self, root: Path, home: Path) -> None:
        harness = Harness(root, home, upload_response=httpx.Response(500, text="disk full"))

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Err)
        assert result.error.stage is Stage.UPLOAD
        assert result.error.message == "Upload failed: HTTP 500 - disk full"
        assert result.error.step == f"{ENDPOINT}/api/admin/upload"

    def test_success_body_overrides_status(self, root: Path, home: Path) -> None:
        harness = Harness(
            root, home, upload_response=httpx.Response(409, json={"success": True})
        )

        result = harness.run(DeployJob(kind=ArtifactKind.OTA, environment="staging"))

        assert isinstance(result, Ok)
        assert result.value.upload_status == 409


def test_unknown_channel_warns_but_deploys(root: Path, home: Path) -> None:
    harness = Harness(root, home)

    result = harness.run(
        DeployJob(kind=ArtifactKind.OTA, environment="staging", channel="nightly")
    )

    assert isinstance(result, Ok)
    assert result.value.channel == "nightly"
    assert any("nightly" in w for w in result.value.warnings)
    assert _form_field(harness.uploads[0], "channel") == "nightly"


class TestResolveAppId:
    @pytest.fixture
    def descriptor(self) -> ProjectDescriptor:
        return ProjectDescriptor("com.acme.shop", "a1", "Shop", "2026-01-01T00:00:00+00:00")

    def _config(self, tmp_path: Path, data: dict[str, object]) -> EffectiveConfig:
        _write_json(tmp_path / "p" / ".capucho" / "config.json", data)
        home = tmp_path / "h"
        home.mkdir(exist_ok=True)
        return ConfigResolver(tmp_path / "p", home_dir=home).resolve()

    def test_suffix_for_non_prod(self, tmp_path: Path, descriptor: ProjectDescriptor) -> None:
        config = self._config(tmp_path, {})

        assert resolve_app_id(config, descriptor, "staging") == "com.acme.shop.staging"
        assert resolve_app_id(config, descriptor, "prod") == "com.acme.shop"

    def test_configured_app_id_is_base(self, tmp_path: Path, descriptor: ProjectDescriptor) -> None:
        config = self._config(tmp_path, {"appId": "com.acme.other"})

        assert resolve_app_id(config, descriptor, "dev") == "com.acme.other.dev"

    def test_environment_table_wins(self, tmp_path: Path, descriptor: ProjectDescriptor) -> None:
        config = self._config(
            tmp_path, {"environments": {"staging": {"appId": "com.acme.beta"}}}
        )

        assert resolve_app_id(config, descriptor, "staging") == "com.acme.beta"


def test_default_channels() -> None:
    assert default_channel("dev") == "development"
    assert default_channel("staging") == "beta"
    assert default_channel("prod") == "stable"
    assert default_channel("qa") == "production"
