# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Registration id -> (ClientRegistration, resource id) cache.

``register_mcp_client`` discovers, registers and stores at most once per
registration id. Concurrent first callers for the same id wait on the one
in-flight registration instead of racing their own. A failed registration
stores nothing, so calling again retries from scratch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import anyio

from ...exceptions import DiscoveryError
from ...metadata import McpMetadata
from ...utils import get_logger
from .discovery import McpMetadataDiscovery
from .models import ClientRegistration, DynamicClientRegistrationRequest
from .registration import DynamicClientRegistrar


_logger = get_logger("mcp_security.store")


class McpClientRegistrationRepository(Protocol):
    async def register_mcp_client(
        self, registration_id: str, mcp_server_url: str, template: DynamicClientRegistrationRequest
    ) -> ClientRegistration: ...

    async def add_pre_registered_client(self, registration: ClientRegistration, resource_id: str) -> ClientRegistration: ...

    def find_by_registration_id(self, registration_id: str) -> ClientRegistration | None: ...

    def find_resource_id_by_registration_id(self, registration_id: str) -> str | None: ...


@dataclass(frozen=True, slots=True)
class _Entry:
    registration: ClientRegistration
    resource_id: str


def resolve_registration_scope(
    template: DynamicClientRegistrationRequest, metadata: McpMetadata
) -> DynamicClientRegistrationRequest:
    """Fill a blank template scope from the challenge, else from ``scopes_supported``."""
    if template.scope and str(template.scope).strip():
        return template
    challenge = metadata.www_authenticate
    if challenge is not None and challenge.scope and challenge.scope.strip():
        return template.with_scope(challenge.scope)
    scopes_supported = metadata.protected_resource.scopes_supported
    if scopes_supported:
        return template.with_scope(list(scopes_supported))
    return template


class InMemoryMcpClientRegistrationStore:
    """In-memory ``McpClientRegistrationRepository``.

    Example:
        >>> async with httpx.AsyncClient() as http:
        ...     store = InMemoryMcpClientRegistrationStore(DynamicClientRegistrar(http))
        ...     registration = await store.register_mcp_client(
        ...         "weather", "https://mcp.example.com/mcp", DynamicClientRegistrationRequest()
        ...     )
    """

    def __init__(self, registrar: DynamicClientRegistrar, discovery: McpMetadataDiscovery | None = None) -> None:
        self._registrar = registrar
        self._discovery = discovery or registrar.discovery
        self._entries: dict[str, _Entry] = {}
        self._locks: dict[str, anyio.Lock] = {}

    async def register_mcp_client(
        self, registration_id: str, mcp_server_url: str, template: DynamicClientRegistrationRequest
    ) -> ClientRegistration:
        entry = self._entries.get(registration_id)
        if entry is not None:
            return entry.registration

        # No await between the lookup and setdefault, so every task sees the same lock.
        lock = self._locks.setdefault(registration_id, anyio.Lock())
        async with lock:
            entry = self._entries.get(registration_id)
            if entry is None:
                registered = await self._register(registration_id, mcp_server_url, template)
                # A pre-registered client stored meanwhile keeps its place.
                entry = self._entries.setdefault(registration_id, registered)
        return entry.registration

    async def add_pre_registered_client(self, registration: ClientRegistration, resource_id: str) -> ClientRegistration:
        """Store a statically known registration; an existing entry wins."""
        entry = self._entries.setdefault(registration.registration_id, _Entry(registration, resource_id))
        return entry.registration

    def find_by_registration_id(self, registration_id: str) -> ClientRegistration | None:
        entry = self._entries.get(registration_id)
        return entry.registration if entry is not None else None

    def find_resource_id_by_registration_id(self, registration_id: str) -> str | None:
        entry = self._entries.get(registration_id)
        return entry.resource_id if entry is not None else None

    async def _register(
        self, registration_id: str, mcp_server_url: str, template: DynamicClientRegistrationRequest
    ) -> _Entry:
        metadata = await self._discovery.get_mcp_metadata(mcp_server_url)
        servers = metadata.protected_resource.authorization_servers
        if not servers:
            raise DiscoveryError("cannot find authorization_servers from MCP Server's protected resource metadata")

        request = resolve_registration_scope(template, metadata)
        registration = await self._registrar.register_client(registration_id, request, servers[0])
        _logger.info(
            "registered MCP client",
            extra={
                "event": "registration.store.add",
                "registration_id": registration_id,
                "resource": metadata.protected_resource.resource,
            },
        )
        return _Entry(registration, metadata.protected_resource.resource)


__all__ = [
    "InMemoryMcpClientRegistrationStore",
    "McpClientRegistrationRepository",
    "resolve_registration_scope",
]
