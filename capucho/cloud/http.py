"""HTTP plumbing shared by every cloud call.

All requests go through an ``httpx.AsyncClient`` built here so timeouts,
the User-Agent and bearer authentication are set in one place. Tests pass an
``httpx.MockTransport`` through ``transport`` instead of patching the network.

Non-2xx responses are never raised: callers get a ``Result`` and decide
whether a status is fatal.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

import httpx

from capucho import __version__
from capucho.core.result import Err, Ok, Result

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "HttpError",
    "auth_headers",
    "build_async_client",
    "decode_body",
    "describe_transport_error",
    "get_json",
    "post_json",
]

DEFAULT_TIMEOUT_SECONDS = 30.0
USER_AGENT = f"capucho-cli/{__version__}"


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 when no response was received)
        message: Human-readable error message
        body: Decoded response body, when there was one
    """

    url: str
    status: int
    message: str
    body: object = None

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


def auth_headers(api_key: str | None) -> dict[str, str]:
    if not api_key:
        return {}
    return {"Authorization": f"Bearer {api_key}"}


def build_async_client(
    *,
    base_url: str = "",
    api_key: str | None = None,
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` with capucho defaults.

    ``timeout=None`` disables the client-side timeout (used for uploads,
    which may legitimately take minutes).
    """
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    headers.update(auth_headers(api_key))
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        transport=transport,
    )


def decode_body(response: httpx.Response) -> object:
    """JSON body when it parses, otherwise the raw text."""
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text


def describe_transport_error(error: httpx.HTTPError | httpx.InvalidURL) -> str:
    """Non-empty message for an exception raised before any response."""
    return str(error) or type(error).__name__


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, str] | None = None,
) -> Result[object, HttpError]:
    """GET ``url`` and decode JSON; only status 200 counts as success."""
    try:
        response = await client.get(url, params=params)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return Err(HttpError(url=url, status=0, message=describe_transport_error(e)))

    body = decode_body(response)
    if response.status_code != 200:
        return Err(
            HttpError(
                url=url,
                status=response.status_code,
                message=response.reason_phrase or "request failed",
                body=body,
            )
        )
    if body is None or isinstance(body, str):
        return Err(HttpError(url=url, status=200, message="Expected JSON body", body=body))
    return Ok(body)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, object],
) -> Result[object, HttpError]:
    """POST a JSON payload; any 2xx with a JSON body counts as success."""
    try:
        response = await client.post(url, json=payload)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return Err(HttpError(url=url, status=0, message=describe_transport_error(e)))

    body = decode_body(response)
    if not response.is_success:
        return Err(
            HttpError(
                url=url,
                status=response.status_code,
                message=response.reason_phrase or "request failed",
                body=body,
            )
        )
    return Ok(body)
