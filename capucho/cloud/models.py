"""Typed views of the capucho server's JSON payloads.

Parsing is lenient: entries missing required fields are dropped rather than
failing the whole payload, because the cloud config is advisory data.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from capucho.core.structured import StrDict, as_obj_list, as_str_dict, get_bool, get_str

__all__ = [
    "CloudApp",
    "CloudChannel",
    "CloudFlavor",
    "CloudOrganization",
    "CloudProjectConfig",
    "UserProfile",
]


def _tables(data: object) -> list[StrDict]:
    out: list[StrDict] = []
    for item in as_obj_list(data) or []:
        table = as_str_dict(item)
        if table is not None:
            out.append(table)
    return out


@dataclass(frozen=True, slots=True)
class CloudChannel:
    id: str
    name: str
    public: bool = False
    environment: str | None = None

    @classmethod
    def from_dict(cls, data: StrDict) -> CloudChannel | None:
        channel_id = get_str(data, "id")
        name = get_str(data, "name")
        if channel_id is None or name is None:
            return None
        return cls(
            id=channel_id,
            name=name,
            public=get_bool(data, "public") or False,
            environment=get_str(data, "environment"),
        )


@dataclass(frozen=True, slots=True)
class CloudFlavor:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: StrDict) -> CloudFlavor | None:
        flavor_id = get_str(data, "id")
        name = get_str(data, "name")
        if flavor_id is None or name is None:
            return None
        return cls(id=flavor_id, name=name)


@dataclass(frozen=True, slots=True)
class CloudProjectConfig:
    """Channels and flavors configured for the app on the server.

    ``raw`` keeps the payload exactly as received so the on-disk cache mirrors
    the server response, including fields this client does not model.
    """

    channels: tuple[CloudChannel, ...] = ()
    flavors: tuple[CloudFlavor, ...] = ()
    raw: StrDict = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: StrDict) -> CloudProjectConfig:
        channels = (CloudChannel.from_dict(t) for t in _tables(data.get("channels")))
        flavors = (CloudFlavor.from_dict(t) for t in _tables(data.get("flavors")))
        return cls(
            channels=tuple(c for c in channels if c is not None),
            flavors=tuple(f for f in flavors if f is not None),
            raw=dict(data),
        )

    def to_dict(self) -> StrDict:
        if self.raw:
            return dict(self.raw)
        return {
            "channels": [
                {"id": c.id, "name": c.name, "public": c.public, "environment": c.environment}
                for c in self.channels
            ],
            "flavors": [{"id": f.id, "name": f.name} for f in self.flavors],
        }

    @property
    def channel_names(self) -> list[str]:
        return [c.name for c in self.channels]

    @property
    def flavor_names(self) -> list[str]:
        return [f.name for f in self.flavors]


@dataclass(frozen=True, slots=True)
class CloudApp:
    id: str
    name: str
    app_id: str
    platform: str | None = None
    organization_id: str | None = None

    @classmethod
    def from_dict(cls, data: StrDict) -> CloudApp | None:
        cloud_id = get_str(data, "id")
        name = get_str(data, "name")
        bundle_id = get_str(data, "app_id")
        if cloud_id is None or name is None or bundle_id is None:
            return None
        return cls(
            id=cloud_id,
            name=name,
            app_id=bundle_id,
            platform=get_str(data, "platform"),
            organization_id=get_str(data, "organization_id"),
        )


@dataclass(frozen=True, slots=True)
class CloudOrganization:
    id: str
    name: str
    role: str = "member"
    slug: str | None = None

    @classmethod
    def from_dict(cls, data: StrDict) -> CloudOrganization | None:
        org_id = get_str(data, "id")
        name = get_str(data, "name")
        if org_id is None or name is None:
            return None
        return cls(
            id=org_id,
            name=name,
            role=get_str(data, "role") or "member",
            slug=get_str(data, "slug"),
        )

    @property
    def can_create_apps(self) -> bool:
        return self.role in {"owner", "admin"}


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Payload of ``GET /api/auth/me``."""

    user_id: str
    email: str
    organizations: tuple[CloudOrganization, ...] = ()
    apps: tuple[CloudApp, ...] = ()

    @classmethod
    def from_dict(cls, data: StrDict) -> UserProfile | None:
        user = as_str_dict(data.get("user")) or {}
        user_id = get_str(user, "id")
        email = get_str(user, "email")
        if user_id is None or email is None:
            return None
        orgs = (CloudOrganization.from_dict(t) for t in _tables(data.get("organizations")))
        apps = (CloudApp.from_dict(t) for t in _tables(data.get("apps")))
        return cls(
            user_id=user_id,
            email=email,
            organizations=tuple(o for o in orgs if o is not None),
            apps=tuple(a for a in apps if a is not None),
        )
