# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""OAuth for MCP clients.

Register with every MCP server once, at startup:

    >>> async with httpx.AsyncClient() as http:
    ...     store = InMemoryMcpClientRegistrationStore(DynamicClientRegistrar(http))
    ...     config = McpClientOAuth2Config(
    ...         base_url="https://agent.example.com",
    ...         registrations={"weather": "https://mcp.example.com/mcp"},
    ...     )
    ...     await register_mcp_clients(store, config)

Then call the server with tokens bound to it:

    >>> auth = ClientCredentialsOAuth2Auth(ClientCredentialsTokenProvider(store, http), "weather-service")
    >>> response = await http.post("https://mcp.example.com/mcp", json=payload, auth=auth)
"""

from .config import REDIRECT_PATH_TEMPLATE, McpClientOAuth2Config, register_mcp_clients
from .discovery import (
    McpMetadataDiscovery,
    build_authorization_server_metadata_urls,
    build_protected_resource_metadata_urls,
)
from .hybrid import (
    AuthorizationCodeOAuth2Auth,
    ClientCredentialsOAuth2Auth,
    HybridOAuth2Auth,
    TransportContext,
    authorization_redirect,
    get_transport_context,
    with_transport_context,
)
from .models import (
    CLIENT_AUTH_NONE,
    CLIENT_SECRET_BASIC,
    CLIENT_SECRET_POST,
    AccessToken,
    ClientRegistration,
    DynamicClientRegistrationRequest,
    DynamicClientRegistrationResponse,
    GrantType,
    TokenResponse,
)
from .registration import DynamicClientRegistrar
from .store import InMemoryMcpClientRegistrationStore, McpClientRegistrationRepository, resolve_registration_scope
from .tokens import (
    AuthorizationCodeFlow,
    AuthorizedClientRepository,
    ClientCredentialsTokenProvider,
    InMemoryAuthorizedClientStore,
)


__all__ = [
    # Wiring
    "McpClientOAuth2Config",
    "REDIRECT_PATH_TEMPLATE",
    "register_mcp_clients",
    # Discovery and registration
    "McpMetadataDiscovery",
    "build_authorization_server_metadata_urls",
    "build_protected_resource_metadata_urls",
    "DynamicClientRegistrar",
    "InMemoryMcpClientRegistrationStore",
    "McpClientRegistrationRepository",
    "resolve_registration_scope",
    # Tokens
    "AuthorizationCodeFlow",
    "AuthorizedClientRepository",
    "ClientCredentialsTokenProvider",
    "InMemoryAuthorizedClientStore",
    # httpx auth
    "AuthorizationCodeOAuth2Auth",
    "ClientCredentialsOAuth2Auth",
    "HybridOAuth2Auth",
    "TransportContext",
    "authorization_redirect",
    "get_transport_context",
    "with_transport_context",
    # Models
    "AccessToken",
    "CLIENT_AUTH_NONE",
    "CLIENT_SECRET_BASIC",
    "CLIENT_SECRET_POST",
    "ClientRegistration",
    "DynamicClientRegistrationRequest",
    "DynamicClientRegistrationResponse",
    "GrantType",
    "TokenResponse",
]
