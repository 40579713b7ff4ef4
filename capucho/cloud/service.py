"""Authenticated access to the capucho server API.

``CloudService`` wraps the JSON endpoints used by ``init``, ``channels`` and
``whoami``. Every call checks the status explicitly and returns a ``Result``;
nothing here raises on an HTTP error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from capucho.core.result import Err, Ok, Result
from capucho.core.structured import as_obj_list, as_str_dict

from .http import HttpError, build_async_client, get_json, post_json
from .models import CloudApp, CloudChannel, CloudOrganization, UserProfile

if TYPE_CHECKING:
    from capucho.core.config import EffectiveConfig

__all__ = ["CloudService", "CredentialCheck", "NOT_AUTHENTICATED"]

NOT_AUTHENTICATED = "Not authenticated. Set endpoint and apiKey: capucho config set --global"


@dataclass(frozen=True, slots=True)
class CredentialCheck:
    valid: bool
    user: UserProfile | None = None
    reason: str | None = None


class CloudService:
    def __init__(
        self,
        endpoint: str | None,
        api_key: str | None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/") if endpoint else None
        self._api_key = api_key
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: EffectiveConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> CloudService:
        return cls(config.endpoint, config.api_key, transport=transport)

    @property
    def authenticated(self) -> bool:
        return bool(self._endpoint and self._api_key)

    async def fetch_user_profile(self) -> Result[UserProfile, HttpError]:
        result = await self._get("/api/auth/me")
        if isinstance(result, Err):
            return result
        profile = UserProfile.from_dict(as_str_dict(result.value) or {})
        if profile is None:
            return Err(HttpError(url="/api/auth/me", status=200, message="Malformed profile"))
        return Ok(profile)

    async def verify_credentials(self) -> CredentialCheck:
        """Check the stored key against ``/api/auth/me``.

        Missing credentials short-circuit without touching the network.
        """
        if not self.authenticated:
            return CredentialCheck(valid=False, reason=NOT_AUTHENTICATED)
        result = await self.fetch_user_profile()
        if isinstance(result, Err):
            return CredentialCheck(valid=False, reason=str(result.error))
        return CredentialCheck(valid=True, user=result.value)

    async def get_organizations(self) -> Result[list[CloudOrganization], HttpError]:
        result = await self._get("/api/organizations")
        if isinstance(result, Err):
            return result
        orgs = (CloudOrganization.from_dict(t) for t in _table_list(result.value))
        return Ok([o for o in orgs if o is not None])

    async def get_apps(self) -> Result[list[CloudApp], HttpError]:
        result = await self._get("/api/apps")
        if isinstance(result, Err):
            return result
        apps = (CloudApp.from_dict(t) for t in _table_list(result.value))
        return Ok([a for a in apps if a is not None])

    async def create_app(
        self,
        *,
        name: str,
        bundle_id: str,
        organization_id: str,
        platform: str = "android",
    ) -> Result[CloudApp, HttpError]:
        payload: dict[str, object] = {
            "name": name,
            # The backend names the bundle identifier app_id
            "app_id": bundle_id,
            "platform": platform,
            "organization_id": organization_id,
        }
        result = await self._post("/api/apps", payload)
        if isinstance(result, Err):
            return result
        app = CloudApp.from_dict(as_str_dict(result.value) or {})
        if app is None:
            return Err(HttpError(url="/api/apps", status=200, message="Malformed app payload"))
        return Ok(app)

    async def get_channels(self, cloud_app_id: str) -> Result[list[CloudChannel], HttpError]:
        result = await self._get(f"/api/apps/{cloud_app_id}/channels")
        if isinstance(result, Err):
            return result
        channels = (CloudChannel.from_dict(t) for t in _table_list(result.value))
        return Ok([c for c in channels if c is not None])

    async def get_releases(
        self, cloud_app_id: str, channel: str | None = None
    ) -> Result[list[dict[str, object]], HttpError]:
        params = {"channel": channel} if channel else None
        result = await self._get(f"/api/apps/{cloud_app_id}/releases", params=params)
        if isinstance(result, Err):
            return result
        return Ok(_table_list(result.value))

    async def validate_channel(self, cloud_app_id: str, name: str) -> Result[bool, HttpError]:
        result = await self.get_channels(cloud_app_id)
        if isinstance(result, Err):
            return result
        return Ok(any(c.name == name for c in result.value))

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _get(
        self, path: str, *, params: dict[str, str] | None = None
    ) -> Result[object, HttpError]:
        if not self.authenticated:
            return Err(HttpError(url=path, status=0, message=NOT_AUTHENTICATED))
        async with build_async_client(
            base_url=self._endpoint or "",
            api_key=self._api_key,
            transport=self._transport,
        ) as client:
            return await get_json(client, path, params=params)

    async def _post(self, path: str, payload: dict[str, object]) -> Result[object, HttpError]:
        if not self.authenticated:
            return Err(HttpError(url=path, status=0, message=NOT_AUTHENTICATED))
        async with build_async_client(
            base_url=self._endpoint or "",
            api_key=self._api_key,
            transport=self._transport,
        ) as client:
            return await post_json(client, path, payload)


def _table_list(data: object) -> list[dict[str, object]]:
    out: list[dict[str, object]] = []
    for item in as_obj_list(data) or []:
        table = as_str_dict(item)
        if table is not None:
            out.append(table)
    return out
