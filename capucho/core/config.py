"""Layered configuration resolution.

Configuration is merged from independent sources, lowest precedence first:

1. Global config   ``<home>/.capucho/config.json``
2. Project config  ``<project>/.capucho/config.json``
3. Legacy env file ``<project>/build/<env>/.env.<env>`` (only when an
   ``environment`` override is given)
4. Explicit overrides (already-parsed command line values)

The merge is shallow: a key present in a higher layer replaces the lower value
entirely, nested tables included. A missing or unparsable file contributes an
empty layer and a warning; resolution itself never fails.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from capucho.platform.files import write_json
from capucho.platform.paths import global_config_path

from .project import ProjectPaths
from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_table

if TYPE_CHECKING:
    from capucho.output.console import ConsoleProtocol

__all__ = [
    "LEGACY_ALIASES",
    "ConfigError",
    "ConfigResolver",
    "EffectiveConfig",
]

# Well-known key -> legacy keys consulted (in order) when the key is unset.
# Older projects keep the API URL and build counter in their .env files.
LEGACY_ALIASES: dict[str, tuple[str, ...]] = {
    "endpoint": ("VITE_UPDATE_API_URL",),
    "versionCode": ("VERSION_CODE", "BUILD_NUMBER"),
}


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when a config layer cannot be written."""

    message: str
    path: Path | None = None


@dataclass(frozen=True)
class EffectiveConfig(Mapping[str, object]):
    """Read-only merged view of all config layers.

    Behaves as a plain mapping; the properties below are the supported way to
    read well-known keys because they apply the legacy alias table.
    """

    data: StrDict = field(default_factory=dict)

    def __getitem__(self, key: str) -> object:
        return self.data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def lookup(self, key: str) -> str | None:
        """String value of ``key``, falling back to its legacy aliases."""
        value = get_str(self.data, key)
        if value is not None:
            return value
        for alias in LEGACY_ALIASES.get(key, ()):
            value = get_str(self.data, alias)
            if value is not None:
                return value
        return None

    @property
    def api_key(self) -> str | None:
        return self.lookup("apiKey")

    @property
    def endpoint(self) -> str | None:
        value = self.lookup("endpoint")
        return value.rstrip("/") if value else None

    @property
    def app_id(self) -> str | None:
        return self.lookup("appId")

    @property
    def app_name(self) -> str | None:
        return self.lookup("appName")

    @property
    def default_environment(self) -> str | None:
        return self.lookup("defaultEnvironment")

    @property
    def channel(self) -> str | None:
        return self.lookup("channel")

    @property
    def version_code(self) -> int | None:
        value = get_int(self.data, "versionCode")
        if value is not None:
            return value
        for alias in LEGACY_ALIASES["versionCode"]:
            value = get_int(self.data, alias)
            if value is not None:
                return value
        return None

    def environment_app_id(self, environment: str) -> str | None:
        """``environments.<env>.appId`` when configured."""
        environments = get_table(self.data, "environments") or {}
        env_table = get_table(environments, environment) or {}
        return get_str(env_table, "appId")

    def has_credentials(self) -> bool:
        return self.endpoint is not None and self.api_key is not None


def _parse_env_lines(text: str) -> StrDict:
    data: StrDict = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


class ConfigResolver:
    """Resolves the effective configuration for one project.

    Constructed per invocation with an explicit project root; holds no state
    besides the warnings gathered while reading layers.
    """

    def __init__(
        self,
        project_root: Path,
        *,
        home_dir: Path | None = None,
        console: ConsoleProtocol | None = None,
    ) -> None:
        self._paths = ProjectPaths(project_root)
        self._global_path = global_config_path(home_dir)
        self._console = console
        self.warnings: list[str] = []

    @property
    def paths(self) -> ProjectPaths:
        return self._paths

    @property
    def global_config_path(self) -> Path:
        return self._global_path

    @property
    def project_config_path(self) -> Path:
        return self._paths.config_path

    def resolve(self, overrides: Mapping[str, object] | None = None) -> EffectiveConfig:
        """Merge all layers; keys in ``overrides`` always win.

        ``None`` override values are dropped so an unset flag never masks a
        configured value.
        """
        explicit: StrDict = {k: v for k, v in (overrides or {}).items() if v is not None}

        merged: StrDict = {}
        merged.update(self._read_layer(self._global_path))
        merged.update(self._read_layer(self._paths.config_path))

        environment = get_str(explicit, "environment")
        if environment is not None:
            merged.update(self._read_legacy_env(environment))

        merged.update(explicit)
        return EffectiveConfig(merged)

    def set_global_config(self, key: str, value: object) -> Result[Path, ConfigError]:
        return self._set_key(self._global_path, key, value)

    def set_project_config(self, key: str, value: object) -> Result[Path, ConfigError]:
        return self._set_key(self._paths.config_path, key, value)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _set_key(self, path: Path, key: str, value: object) -> Result[Path, ConfigError]:
        """Read the whole file, change one key, write the whole file back.

        A ``None`` value removes the key.
        """
        data = self._read_layer(path)
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        try:
            write_json(path, data)
        except OSError as e:
            return Err(ConfigError(f"Could not write {path}: {e}", path=path))
        return Ok(path)

    def _read_layer(self, path: Path) -> StrDict:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            self._warn(f"Could not read config file at {path}: {e}")
            return {}

        try:
            data = as_str_dict(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError):
            data = None
        if data is None:
            self._warn(f"Failed to parse config file at {path}")
            return {}
        return data

    def _read_legacy_env(self, environment: str) -> StrDict:
        env_path = self._paths.env_file(environment)
        if not env_path.exists():
            # Commands are sometimes run from a sub-folder of the app (e.g. a cli/ checkout).
            env_path = ProjectPaths(self._paths.root.parent).env_file(environment)
        if not env_path.exists():
            return {}
        try:
            return _parse_env_lines(env_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            self._warn(f"Could not read env file at {env_path}: {e}")
            return {}

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        if self._console is not None:
            self._console.warning(message)
