# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Client-side wiring: register every configured MCP server up front."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from ...exceptions import ConfigurationError
from ...metadata import GrantType
from ...utils import is_valid_url
from .models import ClientRegistration, DynamicClientRegistrationRequest


if TYPE_CHECKING:
    from .store import McpClientRegistrationRepository


REDIRECT_PATH_TEMPLATE: Final[str] = "/authorize/oauth2/code/{registration_id}"


@dataclass(frozen=True, slots=True)
class McpClientOAuth2Config:
    """Where this client lives and which MCP servers it talks to.

    Args:
        base_url: Public base URL of this application; redirect URIs are
            built under it.
        registrations: ``registration_id -> MCP server URL``.
        client_name: ``client_name`` sent during registration.
        scope: Scope to request; blank lets discovery decide.
    """

    base_url: str
    registrations: Mapping[str, str] = field(default_factory=dict)
    client_name: str | None = None
    scope: str | None = None

    def __post_init__(self) -> None:
        if not is_valid_url(self.base_url):
            raise ConfigurationError("baseUrl must be a valid URL")
        for registration_id, url in self.registrations.items():
            if not registration_id or not registration_id.strip():
                raise ConfigurationError("registrationId cannot be empty")
            if not is_valid_url(url):
                raise ConfigurationError(f"MCP server url for [{registration_id}] must be a valid URL")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "registrations", MappingProxyType(dict(self.registrations)))

    def redirect_uri(self, registration_id: str) -> str:
        return self.base_url + REDIRECT_PATH_TEMPLATE.format(registration_id=registration_id)

    def registration_request(self, registration_id: str) -> DynamicClientRegistrationRequest:
        return DynamicClientRegistrationRequest(
            grant_types=(GrantType.AUTHORIZATION_CODE, GrantType.REFRESH_TOKEN),
            redirect_uris=(self.redirect_uri(registration_id),),
            client_name=self.client_name,
            scope=self.scope,
        )


async def register_mcp_clients(
    store: McpClientRegistrationRepository, config: McpClientOAuth2Config
) -> dict[str, ClientRegistration]:
    """Register each configured MCP server in order; the first failure propagates."""
    registered: dict[str, ClientRegistration] = {}
    for registration_id, url in config.registrations.items():
        registered[registration_id] = await store.register_mcp_client(
            registration_id, url, config.registration_request(registration_id)
        )
    return registered


__all__ = ["REDIRECT_PATH_TEMPLATE", "McpClientOAuth2Config", "register_mcp_clients"]
