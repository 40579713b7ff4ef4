"""Clients for the capucho update server."""

from .http import HttpError, build_async_client
from .models import CloudApp, CloudChannel, CloudFlavor, CloudOrganization, CloudProjectConfig
from .remote_config import RemoteConfigCache
from .service import CloudService, CredentialCheck
from .upload import UploadClient, UploadResult

__all__ = [
    "CloudApp",
    "CloudChannel",
    "CloudFlavor",
    "CloudOrganization",
    "CloudProjectConfig",
    "CloudService",
    "CredentialCheck",
    "HttpError",
    "RemoteConfigCache",
    "UploadClient",
    "UploadResult",
    "build_async_client",
]
