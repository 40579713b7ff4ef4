"""Version metadata synchronisation.

``package.json`` holds the semantic version. ``version-code.json`` holds one
integer build counter per environment. ``sync`` copies both into the
environment's variable file (``build/<env>/.env.<env>``) so the web build and
the native project pick them up.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path

from capucho.core.project import KNOWN_ENVIRONMENTS, ProjectPaths
from capucho.core.result import Err, Ok, Result
from capucho.core.structured import as_str_dict, get_int, get_str
from capucho.platform.files import atomic_write_text, write_json

__all__ = [
    "VersionInfo",
    "VersionSyncError",
    "VersionSyncer",
    "read_app_version",
    "substitute_version_vars",
]


@dataclass(frozen=True, slots=True)
class VersionInfo:
    environment: str
    version: str
    version_code: int
    env_file: Path


@dataclass(frozen=True, slots=True)
class VersionSyncError:
    message: str
    path: Path | None = None


def _assignment_re(name: str) -> re.Pattern[str]:
    return re.compile(rf"^(?P<prefix>[ \t]*(?:export[ \t]+)?{name}=)[^\r\n]*", re.MULTILINE)


_VERSION_RE = _assignment_re("VITE_APP_VERSION")
_VERSION_CODE_RE = _assignment_re("VERSION_CODE")
_BUILD_NUMBER_RE = _assignment_re("BUILD_NUMBER")


def substitute_version_vars(content: str, *, version: str, version_code: int) -> str:
    """Rewrite every existing version assignment; absent variables stay absent."""
    content = _VERSION_RE.sub(lambda m: f"{m['prefix']}{version}", content)
    content = _VERSION_CODE_RE.sub(lambda m: f"{m['prefix']}{version_code}", content)
    content = _BUILD_NUMBER_RE.sub(lambda m: f"{m['prefix']}{version_code}", content)
    return content


def read_app_version(paths: ProjectPaths) -> Result[str, VersionSyncError]:
    path = paths.package_json_path
    try:
        data = as_str_dict(json.loads(path.read_text(encoding="utf-8")))
    except FileNotFoundError:
        return Err(VersionSyncError("package.json not found", path=path))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(VersionSyncError(f"Could not read package.json: {e}", path=path))

    version = get_str(data or {}, "version")
    if version is None:
        return Err(VersionSyncError("package.json has no version", path=path))
    return Ok(version)


class VersionSyncer:
    """Keeps env files and build counters in step with ``package.json``."""

    def __init__(self, project_root: Path) -> None:
        self._paths = ProjectPaths(project_root)
        self.warnings: list[str] = []

    def sync(
        self, environment: str, *, bump: bool = False
    ) -> Result[VersionInfo, VersionSyncError]:
        """Sync one environment, incrementing its counter when ``bump``.

        Nothing is written when the version, the counters or the env file
        cannot be read.
        """
        version = read_app_version(self._paths)
        if isinstance(version, Err):
            return version

        codes = self._read_codes()
        if isinstance(codes, Err):
            return codes

        env_path = self._env_file(environment)
        if isinstance(env_path, Err):
            return env_path

        info = self._apply(environment, env_path.value, version.value, codes.value, bump=bump)
        if isinstance(info, Err):
            return info

        saved = self._write_codes(codes.value)
        if isinstance(saved, Err):
            return saved
        return info

    def sync_all(self, *, bump: bool = False) -> Result[list[VersionInfo], VersionSyncError]:
        """Sync every known environment whose env file exists.

        Environments without an env file are skipped with a warning; the
        counters file is written once at the end.
        """
        version = read_app_version(self._paths)
        if isinstance(version, Err):
            return version

        codes = self._read_codes()
        if isinstance(codes, Err):
            return codes

        synced: list[VersionInfo] = []
        for environment in KNOWN_ENVIRONMENTS:
            env_path = self._env_file(environment)
            if isinstance(env_path, Err):
                self.warnings.append(env_path.error.message)
                continue
            info = self._apply(environment, env_path.value, version.value, codes.value, bump=bump)
            if isinstance(info, Err):
                return info
            synced.append(info.value)

        saved = self._write_codes(codes.value)
        if isinstance(saved, Err):
            return saved
        return Ok(synced)

    def read_codes(self) -> Result[dict[str, int], VersionSyncError]:
        return self._read_codes()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _apply(
        self,
        environment: str,
        env_path: Path,
        version: str,
        codes: dict[str, int],
        *,
        bump: bool,
    ) -> Result[VersionInfo, VersionSyncError]:
        if bump:
            codes[environment] = codes.get(environment, 0) + 1
        else:
            codes.setdefault(environment, 1)
        version_code = codes[environment]

        try:
            with env_path.open(encoding="utf-8", newline="") as handle:
                content = handle.read()
            updated = substitute_version_vars(content, version=version, version_code=version_code)
            if updated != content:
                atomic_write_text(env_path, updated)
        except (OSError, UnicodeDecodeError) as e:
            return Err(VersionSyncError(f"Could not update {env_path}: {e}", path=env_path))

        return Ok(
            VersionInfo(
                environment=environment,
                version=version,
                version_code=version_code,
                env_file=env_path,
            )
        )

    def _env_file(self, environment: str) -> Result[Path, VersionSyncError]:
        if environment not in KNOWN_ENVIRONMENTS:
            return Err(VersionSyncError(f"Unknown environment: {environment}"))
        path = self._paths.env_file(environment)
        if not path.is_file():
            message = f"Env file for {environment} not found at {path}"
            return Err(VersionSyncError(message, path=path))
        return Ok(path)

    def _read_codes(self) -> Result[dict[str, int], VersionSyncError]:
        path = self._paths.version_codes_path
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Ok({environment: 1 for environment in KNOWN_ENVIRONMENTS})
        except OSError as e:
            return Err(VersionSyncError(f"Could not read {path}: {e}", path=path))

        try:
            data = as_str_dict(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError):
            data = None
        if data is None:
            return Err(VersionSyncError(f"Invalid version codes file: {path}", path=path))

        codes: dict[str, int] = {}
        for key in data:
            value = get_int(data, key)
            if value is None:
                message = f"Version code for {key!r} is not an integer"
                return Err(VersionSyncError(message, path=path))
            codes[key] = value
        return Ok(codes)

    def _write_codes(self, codes: dict[str, int]) -> Result[None, VersionSyncError]:
        path = self._paths.version_codes_path
        try:
            write_json(path, codes)
        except OSError as e:
            return Err(VersionSyncError(f"Could not write {path}: {e}", path=path))
        return Ok(None)
