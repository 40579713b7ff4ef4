"""Remote project config (channels, flavors) with an on-disk fallback.

The server is asked for the current config on every run. A successful answer
is mirrored to ``.capucho/cloud-cache.json``; anything else (no credentials,
non-200 status, transport error, garbage body) silently returns the last
mirrored copy so commands keep working offline.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx

from capucho.core.result import Err
from capucho.core.structured import as_str_dict
from capucho.platform.files import write_json

from .http import build_async_client, get_json
from .models import CloudProjectConfig

if TYPE_CHECKING:
    from capucho.core.config import ConfigResolver, EffectiveConfig

__all__ = ["PROJECT_CONFIG_PATH", "RemoteConfigCache"]

PROJECT_CONFIG_PATH = "/api/project/config"


class RemoteConfigCache:
    def __init__(
        self,
        resolver: ConfigResolver,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._resolver = resolver
        self._cache_path = resolver.paths.cloud_cache_path
        self._transport = transport

    async def fetch_project_config(
        self, config: EffectiveConfig | None = None
    ) -> CloudProjectConfig | None:
        """Fetch and mirror the remote config; fall back to the mirror.

        ``config`` defaults to the resolver's view without overrides.
        """
        if config is None:
            config = self._resolver.resolve()
        endpoint = config.endpoint
        api_key = config.api_key
        if not endpoint or not api_key:
            return self.load_cache()

        async with build_async_client(api_key=api_key, transport=self._transport) as client:
            result = await get_json(client, f"{endpoint}{PROJECT_CONFIG_PATH}")

        if isinstance(result, Err):
            return self.load_cache()
        data = as_str_dict(result.value)
        if data is None:
            return self.load_cache()

        cloud_config = CloudProjectConfig.from_dict(data)
        self._save_cache(cloud_config)
        return cloud_config

    def load_cache(self) -> CloudProjectConfig | None:
        try:
            data = as_str_dict(json.loads(self._cache_path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError):
            return None
        if data is None:
            return None
        return CloudProjectConfig.from_dict(data)

    def _save_cache(self, cloud_config: CloudProjectConfig) -> None:
        try:
            write_json(self._cache_path, cloud_config.to_dict())
        except OSError:
            # Best-effort: the fetched value is still returned
            pass
