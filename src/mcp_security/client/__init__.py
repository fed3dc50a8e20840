# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Client-side helpers; see :mod:`mcp_security.client.auth`."""

from __future__ import annotations

from .auth import (
    AuthorizationCodeOAuth2Auth,
    ClientCredentialsOAuth2Auth,
    HybridOAuth2Auth,
    InMemoryMcpClientRegistrationStore,
    McpClientOAuth2Config,
    TransportContext,
    register_mcp_clients,
)


__all__ = [
    "AuthorizationCodeOAuth2Auth",
    "ClientCredentialsOAuth2Auth",
    "HybridOAuth2Auth",
    "InMemoryMcpClientRegistrationStore",
    "McpClientOAuth2Config",
    "TransportContext",
    "register_mcp_clients",
]
