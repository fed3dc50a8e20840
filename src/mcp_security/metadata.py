# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""OAuth metadata documents shared by resource servers and clients.

- ``ProtectedResourceMetadata``: RFC 9728 document published by an MCP server
  and read back by clients during discovery.
- ``AuthorizationServerMetadata``: RFC 8414 document of an authorization
  server (token, authorization and registration endpoints).
- ``WwwAuthenticateParameters``: ``resource_metadata`` / ``scope`` pulled out
  of a ``WWW-Authenticate: Bearer`` challenge.
- ``McpMetadata``: what discovery hands to client registration.

References:
    RFC 9728: OAuth 2.0 Protected Resource Metadata
    RFC 8414: OAuth 2.0 Authorization Server Metadata
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
import re
from types import MappingProxyType
from typing import Any, Final

from pydantic import BaseModel, ConfigDict

from .exceptions import ConfigurationError
from .utils import is_valid_url


class GrantType(str, Enum):
    """OAuth 2.0 grant types understood by this library."""

    AUTHORIZATION_CODE = "authorization_code"
    CLIENT_CREDENTIALS = "client_credentials"
    REFRESH_TOKEN = "refresh_token"

    def __str__(self) -> str:
        return self.value


class ProtectedResourceMetadataClaimNames:
    """Claim names defined by RFC 9728 §2."""

    RESOURCE: Final[str] = "resource"
    AUTHORIZATION_SERVERS: Final[str] = "authorization_servers"
    JWKS_URI: Final[str] = "jwks_uri"
    SCOPES_SUPPORTED: Final[str] = "scopes_supported"
    BEARER_METHODS_SUPPORTED: Final[str] = "bearer_methods_supported"
    RESOURCE_SIGNING_ALG_VALUES_SUPPORTED: Final[str] = "resource_signing_alg_values_supported"
    RESOURCE_NAME: Final[str] = "resource_name"
    RESOURCE_DOCUMENTATION: Final[str] = "resource_documentation"


_Names = ProtectedResourceMetadataClaimNames

_KNOWN_CLAIMS: Final[frozenset[str]] = frozenset(
    {
        _Names.RESOURCE,
        _Names.AUTHORIZATION_SERVERS,
        _Names.SCOPES_SUPPORTED,
        _Names.BEARER_METHODS_SUPPORTED,
        _Names.RESOURCE_NAME,
    }
)


def _as_list_claim(name: str, value: Any, label: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigurationError(f"{name} must be of type list")
    if len(value) == 0:
        raise ConfigurationError(f"{label} cannot be empty")
    for item in value:
        if not isinstance(item, str):
            raise ConfigurationError(f"{name} must only contain strings")
    return tuple(value)


@dataclass(frozen=True, slots=True)
class ProtectedResourceMetadata:
    """RFC 9728 Protected Resource Metadata.

    ``resource`` is mandatory and must be an absolute URL. The list claims are
    optional, but when given they must be non-empty: an empty list is rejected
    rather than treated as absent.

    Example:
        >>> meta = ProtectedResourceMetadata(
        ...     resource="https://mcp.example.com/mcp",
        ...     authorization_servers=["https://as.example.com"],
        ...     bearer_methods_supported=["header"],
        ... )
        >>> meta.to_dict()["resource"]
        'https://mcp.example.com/mcp'
    """

    resource: str
    authorization_servers: Sequence[str] | None = None
    scopes_supported: Sequence[str] | None = None
    bearer_methods_supported: Sequence[str] | None = None
    resource_name: str | None = None
    claims: Mapping[str, Any] = field(default_factory=dict)
    """Additional claims, serialized after the standard ones."""

    def __post_init__(self) -> None:
        if self.resource is None:
            raise ConfigurationError("resource cannot be null")
        if not is_valid_url(self.resource):
            raise ConfigurationError("resource must be a valid URL")

        servers = _as_list_claim(_Names.AUTHORIZATION_SERVERS, self.authorization_servers, "authorization_servers")
        if servers is not None:
            for server in servers:
                if not is_valid_url(server):
                    raise ConfigurationError("authorization_server must be a valid URL")
        object.__setattr__(self, "authorization_servers", servers)
        object.__setattr__(
            self, "scopes_supported", _as_list_claim(_Names.SCOPES_SUPPORTED, self.scopes_supported, "scopes")
        )
        object.__setattr__(
            self,
            "bearer_methods_supported",
            _as_list_claim(_Names.BEARER_METHODS_SUPPORTED, self.bearer_methods_supported, "bearer methods"),
        )

        for name in self.claims:
            if not isinstance(name, str) or not name.strip():
                raise ConfigurationError("claim name cannot be empty")
            if name in _KNOWN_CLAIMS:
                raise ConfigurationError(f"claim [{name}] must be set through its dedicated field")
        object.__setattr__(self, "claims", MappingProxyType(dict(self.claims)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProtectedResourceMetadata:
        """Build from a decoded JSON document; unknown claims land in ``claims``."""
        if not isinstance(data, Mapping):
            raise ConfigurationError("protected resource metadata must be a JSON object")
        extra = {key: value for key, value in data.items() if key not in _KNOWN_CLAIMS}
        return cls(
            resource=data.get(_Names.RESOURCE),  # type: ignore[arg-type]
            authorization_servers=data.get(_Names.AUTHORIZATION_SERVERS),
            scopes_supported=data.get(_Names.SCOPES_SUPPORTED),
            bearer_methods_supported=data.get(_Names.BEARER_METHODS_SUPPORTED),
            resource_name=data.get(_Names.RESOURCE_NAME),
            claims=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {_Names.RESOURCE: self.resource}
        if self.authorization_servers is not None:
            payload[_Names.AUTHORIZATION_SERVERS] = list(self.authorization_servers)
        if self.scopes_supported is not None:
            payload[_Names.SCOPES_SUPPORTED] = list(self.scopes_supported)
        if self.bearer_methods_supported is not None:
            payload[_Names.BEARER_METHODS_SUPPORTED] = list(self.bearer_methods_supported)
        if self.resource_name is not None:
            payload[_Names.RESOURCE_NAME] = self.resource_name
        payload.update(self.claims)
        return payload

    def replace(self, **changes: Any) -> ProtectedResourceMetadata:
        """Return a copy with ``changes`` applied (and re-validated)."""
        return dataclasses.replace(self, **changes)

    def with_claim(self, name: str, value: Any) -> ProtectedResourceMetadata:
        """Return a copy carrying an additional non-standard claim."""
        if value is None:
            raise ConfigurationError("value cannot be null")
        return self.replace(claims={**self.claims, name: value})

    @property
    def primary_authorization_server(self) -> str | None:
        return self.authorization_servers[0] if self.authorization_servers else None


class AuthorizationServerMetadata(BaseModel):
    """RFC 8414 Authorization Server Metadata (the fields this library reads)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    issuer: str
    token_endpoint: str
    authorization_endpoint: str | None = None
    registration_endpoint: str | None = None
    jwks_uri: str | None = None
    scopes_supported: list[str] | None = None
    response_types_supported: list[str] | None = None
    grant_types_supported: list[str] | None = None
    token_endpoint_auth_methods_supported: list[str] | None = None
    code_challenge_methods_supported: list[str] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuthorizationServerMetadata:
        return cls.model_validate(data)

    def supports_grant_type(self, grant_type: str) -> bool:
        # Absent means "not advertised"; RFC 8414 defaults are not assumed.
        return self.grant_types_supported is not None and grant_type in self.grant_types_supported


@dataclass(frozen=True, slots=True)
class WwwAuthenticateParameters:
    """Parameters of a ``WWW-Authenticate: Bearer`` challenge relevant to discovery."""

    resource_metadata: str
    scope: str | None = None


def extract_www_authenticate_parameter(name: str, header: str) -> str | None:
    """Return the value of ``name=...`` in a challenge, quoted or bare."""
    pattern = re.compile(rf'(?<![\w-]){re.escape(name)}=(?:"([^"]+)"|([^\s,]+))')
    match = pattern.search(header)
    if match is None:
        return None
    return match.group(1) if match.group(1) is not None else match.group(2)


def parse_www_authenticate_parameters(header: str | None) -> WwwAuthenticateParameters | None:
    """Parse a challenge header; ``None`` when it carries no ``resource_metadata``."""
    if not header:
        return None
    resource_metadata = extract_www_authenticate_parameter("resource_metadata", header)
    if resource_metadata is None:
        return None
    return WwwAuthenticateParameters(
        resource_metadata=resource_metadata,
        scope=extract_www_authenticate_parameter("scope", header),
    )


@dataclass(frozen=True, slots=True)
class McpMetadata:
    """Discovery result: optional challenge parameters plus the validated PRM."""

    www_authenticate: WwwAuthenticateParameters | None
    protected_resource: ProtectedResourceMetadata


__all__ = [
    "AuthorizationServerMetadata",
    "GrantType",
    "McpMetadata",
    "ProtectedResourceMetadata",
    "ProtectedResourceMetadataClaimNames",
    "WwwAuthenticateParameters",
    "extract_www_authenticate_parameter",
    "parse_www_authenticate_parameters",
]
