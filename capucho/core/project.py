"""Project layout and the persisted project descriptor.

A capucho project is any directory holding a ``.capucho/project.json``
descriptor, written once by ``capucho init`` and read by every deploy::

    <project>/
      .capucho/
        project.json        identity (bundle id, cloud app id, name)
        config.json         project-level config layer
        cloud-cache.json    last fetched channels/flavors
      version-code.json     per-environment build counters
      capucho-deploy.log    diagnostic blocks for failed steps
      package.json          authoritative semantic version
      build/<env>/.env.<env>
      android/
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from capucho.platform.files import write_json
from capucho.platform.paths import CONFIG_DIR_NAME

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str

__all__ = [
    "KNOWN_ENVIRONMENTS",
    "ProjectPaths",
    "ProjectDescriptor",
    "ProjectError",
    "load_descriptor",
    "require_descriptor",
    "save_descriptor",
]

KNOWN_ENVIRONMENTS: tuple[str, ...] = ("dev", "staging", "prod")


@dataclass(frozen=True, slots=True)
class ProjectPaths:
    """Well-known locations under a project root."""

    root: Path

    @property
    def state_dir(self) -> Path:
        return self.root / CONFIG_DIR_NAME

    @property
    def config_path(self) -> Path:
        return self.state_dir / "config.json"

    @property
    def descriptor_path(self) -> Path:
        return self.state_dir / "project.json"

    @property
    def cloud_cache_path(self) -> Path:
        return self.state_dir / "cloud-cache.json"

    @property
    def version_codes_path(self) -> Path:
        return self.root / "version-code.json"

    @property
    def deploy_log_path(self) -> Path:
        return self.root / "capucho-deploy.log"

    @property
    def package_json_path(self) -> Path:
        return self.root / "package.json"

    @property
    def android_dir(self) -> Path:
        return self.root / "android"

    @property
    def dist_dir(self) -> Path:
        """Web build output published as static assets."""
        return self.root / "dist"

    def env_file(self, environment: str) -> Path:
        """Per-environment variable file: ``build/<env>/.env.<env>``."""
        return self.root / "build" / environment / f".env.{environment}"


@dataclass(frozen=True)
class ProjectError:
    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class ProjectDescriptor:
    """Identity of the project in the cloud.

    Attributes:
        bundle_id: Platform bundle identifier, e.g. ``com.example.app``.
        cloud_app_id: Server-side app id (uuid).
        app_name: Human readable name.
        pages_repo_url: Optional git repo that receives published web assets.
        created_at: ISO timestamp of ``capucho init``.
    """

    bundle_id: str
    cloud_app_id: str
    app_name: str
    created_at: str
    pages_repo_url: str | None = None

    @classmethod
    def new(
        cls,
        *,
        bundle_id: str,
        cloud_app_id: str,
        app_name: str,
        pages_repo_url: str | None = None,
    ) -> ProjectDescriptor:
        return cls(
            bundle_id=bundle_id,
            cloud_app_id=cloud_app_id,
            app_name=app_name,
            created_at=datetime.now(UTC).isoformat(),
            pages_repo_url=pages_repo_url,
        )

    @classmethod
    def from_dict(cls, data: StrDict) -> ProjectDescriptor | None:
        bundle_id = get_str(data, "appId")
        cloud_app_id = get_str(data, "cloudAppId")
        app_name = get_str(data, "appName")
        if bundle_id is None or cloud_app_id is None or app_name is None:
            return None
        return cls(
            bundle_id=bundle_id,
            cloud_app_id=cloud_app_id,
            app_name=app_name,
            created_at=get_str(data, "createdAt") or "",
            pages_repo_url=get_str(data, "ghPagesRepo"),
        )

    def to_dict(self) -> StrDict:
        out: StrDict = {
            "appId": self.bundle_id,
            "cloudAppId": self.cloud_app_id,
            "appName": self.app_name,
        }
        if self.pages_repo_url:
            out["ghPagesRepo"] = self.pages_repo_url
        out["createdAt"] = self.created_at
        return out


def load_descriptor(paths: ProjectPaths) -> ProjectDescriptor | None:
    """Read ``.capucho/project.json``; None when absent or unreadable."""
    path = paths.descriptor_path
    try:
        data = as_str_dict(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None
    if data is None:
        return None
    return ProjectDescriptor.from_dict(data)


def require_descriptor(paths: ProjectPaths) -> Result[ProjectDescriptor, ProjectError]:
    descriptor = load_descriptor(paths)
    if descriptor is None:
        return Err(
            ProjectError(
                "Project not initialized",
                path=paths.descriptor_path,
                hint="Run: capucho init",
            )
        )
    return Ok(descriptor)


def save_descriptor(
    paths: ProjectPaths, descriptor: ProjectDescriptor
) -> Result[Path, ProjectError]:
    path = paths.descriptor_path
    try:
        write_json(path, descriptor.to_dict())
    except OSError as e:
        return Err(ProjectError(f"Could not write {path}: {e}", path=path))
    return Ok(path)
