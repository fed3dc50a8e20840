# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""OAuth 2.1 and API key security for MCP servers and clients.

- ``mcp_security.server`` - protected resource metadata, bearer challenges,
  audience-checked JWTs, API keys
- ``mcp_security.authorization_server`` - audience-bound token issuance
- ``mcp_security.client.auth`` - discovery, dynamic registration, token
  acquisition and httpx auth handlers
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    DiscoveryError,
    McpSecurityError,
    RegistrationError,
    TokenError,
)
from .metadata import AuthorizationServerMetadata, GrantType, McpMetadata, ProtectedResourceMetadata
from .principal import AuthenticatedPrincipal, get_principal


try:
    __version__ = version("mcp-security")
except PackageNotFoundError:
    __version__ = "0.0.0+local"


__all__ = [
    "AuthenticatedPrincipal",
    "AuthenticationError",
    "AuthorizationServerMetadata",
    "ConfigurationError",
    "DiscoveryError",
    "GrantType",
    "McpMetadata",
    "McpSecurityError",
    "ProtectedResourceMetadata",
    "RegistrationError",
    "TokenError",
    "__version__",
    "get_principal",
]
