"""Multipart artifact upload.

``UploadClient.upload`` never raises for HTTP or transport problems. Every
outcome becomes an ``UploadResult`` so callers report "rejected by server"
and "server unreachable" the same way while still seeing the status
(``0`` means no response was received).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import httpx

from capucho.core.structured import as_str_dict, get_bool

from .http import build_async_client, decode_body, describe_transport_error

__all__ = ["UploadClient", "UploadResult", "form_value"]


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Outcome of one upload attempt.

    Attributes:
        success: True for a 2xx response.
        status: HTTP status, or 0 when the request never got a response.
        data: Decoded response body, or the transport error message.
    """

    success: bool
    status: int
    data: object

    @property
    def accepted(self) -> bool:
        """Server accepted the artifact.

        Some deployments answer with a non-2xx status but ``{"success": true}``
        in the body; that still counts as accepted.
        """
        if self.success:
            return True
        body = as_str_dict(self.data)
        return body is not None and get_bool(body, "success") is True


def form_value(value: object) -> str:
    """Render a metadata value as a multipart text field."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class UploadClient:
    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        self._transport = transport
        self._timeout = timeout

    async def upload(
        self,
        url: str,
        file_path: Path,
        fields: Mapping[str, object],
        api_key: str | None = None,
        *,
        file_field: str = "file",
    ) -> UploadResult:
        """POST ``file_path`` and ``fields`` as ``multipart/form-data``.

        Fields whose value is None are left out. The file is streamed from
        disk; no size limit is applied.
        """
        data = {key: form_value(value) for key, value in fields.items() if value is not None}

        try:
            async with build_async_client(
                api_key=api_key,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                with file_path.open("rb") as handle:
                    response = await client.post(
                        url,
                        data=data,
                        files={file_field: (file_path.name, handle, "application/octet-stream")},
                    )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return UploadResult(success=False, status=0, data=describe_transport_error(e))
        except OSError as e:
            return UploadResult(success=False, status=0, data=str(e) or type(e).__name__)

        return UploadResult(
            success=response.is_success,
            status=response.status_code,
            data=decode_body(response),
        )
