"""Tests for capucho.cloud.service module."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx

from capucho.cloud.http import HttpError
from capucho.cloud.service import NOT_AUTHENTICATED, CloudService
from capucho.core.result import Err, Ok

ENDPOINT = "https://updates.example.com"


def _service(handler: Callable[[httpx.Request], httpx.Response]) -> CloudService:
    return CloudService(ENDPOINT, "key-1", transport=httpx.MockTransport(handler))


def test_fetch_user_profile() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/auth/me"
        assert request.headers["Authorization"] == "Bearer key-1"
        return httpx.Response(
            200,
            json={
                "user": {"id": "u1", "email": "dev@example.com"},
                "organizations": [{"id": "o1", "name": "Acme", "role": "owner"}],
            },
        )

    result = asyncio.run(_service(handler).fetch_user_profile())

    assert isinstance(result, Ok)
    assert result.value.email == "dev@example.com"
    assert result.value.organizations[0].can_create_apps


def test_verify_credentials_without_key_skips_network() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    service = CloudService(ENDPOINT, None, transport=httpx.MockTransport(handler))
    check = asyncio.run(service.verify_credentials())

    assert not check.valid
    assert check.reason == NOT_AUTHENTICATED
    assert calls == []


def test_verify_credentials_rejected() -> None:
    service = _service(lambda _: httpx.Response(401, json={"error": "invalid key"}))

    check = asyncio.run(service.verify_credentials())

    assert not check.valid
    assert check.user is None


def test_get_apps_skips_malformed_entries() -> None:
    payload = [
        {"id": "a1", "name": "Shop", "app_id": "com.acme.shop", "platform": "android"},
        {"id": "a2"},
        "garbage",
    ]
    result = asyncio.run(_service(lambda _: httpx.Response(200, json=payload)).get_apps())

    assert isinstance(result, Ok)
    assert [a.app_id for a in result.value] == ["com.acme.shop"]


def test_create_app_posts_backend_field_names() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            201, json={"id": "a9", "name": "Shop", "app_id": "com.acme.shop"}
        )

    result = asyncio.run(
        _service(handler).create_app(name="Shop", bundle_id="com.acme.shop", organization_id="o1")
    )

    assert isinstance(result, Ok)
    assert result.value.id == "a9"
    assert seen["method"] == "POST"
    assert seen["body"] == {
        "name": "Shop",
        "app_id": "com.acme.shop",
        "platform": "android",
        "organization_id": "o1",
    }


def test_get_channels_and_validate() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/apps/a1/channels"
        return httpx.Response(200, json=[{"id": "c1", "name": "beta", "public": True}])

    service = _service(handler)

    assert asyncio.run(service.validate_channel("a1", "beta")) == Ok(True)
    assert asyncio.run(service.validate_channel("a1", "stable")) == Ok(False)


def test_get_releases_passes_channel_filter() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["channel"] == "beta"
        return httpx.Response(200, json=[{"version": "1.0.0"}])

    result = asyncio.run(_service(handler).get_releases("a1", "beta"))

    assert result == Ok([{"version": "1.0.0"}])


def test_http_error_is_returned() -> None:
    result = asyncio.run(
        _service(lambda _: httpx.Response(404, json={"error": "nope"})).get_organizations()
    )

    assert isinstance(result, Err)
    assert isinstance(result.error, HttpError)
    assert result.error.status == 404
    assert result.error.body == {"error": "nope"}


def test_unauthenticated_calls_fail_fast() -> None:
    service = CloudService(None, None)

    result = asyncio.run(service.get_apps())

    assert isinstance(result, Err)
    assert result.error.status == 0
