# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Tests for the registration store: discovery + registration, at most once per id."""

from __future__ import annotations

import anyio
import httpx
import pytest
import respx


MCP_URL = "https://mcp.example.com/mcp"
PRM_URL = "https://mcp.example.com/.well-known/oauth-protected-resource/mcp"


def _metadata(*, scopes=("mcp:read",), challenge_scope=None, servers=("https://as.example.com",)):
    from mcp_security.metadata import McpMetadata, ProtectedResourceMetadata, WwwAuthenticateParameters

    challenge = None
    if challenge_scope is not None:
        challenge = WwwAuthenticateParameters(resource_metadata=f"{MCP_URL}/meta", scope=challenge_scope)
    return McpMetadata(
        www_authenticate=challenge,
        protected_resource=ProtectedResourceMetadata(
            resource=MCP_URL, authorization_servers=list(servers), scopes_supported=list(scopes) or None
        ),
    )


class _FakeDiscovery:
    def __init__(self, metadata):
        self.metadata = metadata

    async def get_mcp_metadata(self, url):
        return self.metadata


class _FakeRegistrar:
    """Slow registrar that counts registrations."""

    def __init__(self, metadata, *, fail_times=0):
        self.discovery = _FakeDiscovery(metadata)
        self.calls = []
        self.fail_times = fail_times

    async def register_client(self, registration_id, request, issuer):
        from mcp_security.client.auth import ClientRegistration
        from mcp_security.exceptions import RegistrationError

        self.calls.append((registration_id, request, issuer))
        await anyio.sleep(0.05)
        if self.fail_times:
            self.fail_times -= 1
            raise RegistrationError("Cannot register client")
        return ClientRegistration(
            registration_id=registration_id,
            client_id=f"client-{len(self.calls)}",
            token_endpoint="https://as.example.com/oauth2/token",
            scopes=tuple((request.scope or "").split()),
        )


# =============================================================================
# Single flight
# =============================================================================


class TestSingleFlight:
    @pytest.mark.anyio
    async def test_concurrent_callers_share_one_registration(self):
        from mcp_security.client.auth import DynamicClientRegistrationRequest, InMemoryMcpClientRegistrationStore

        registrar = _FakeRegistrar(_metadata())
        store = InMemoryMcpClientRegistrationStore(registrar)  # type: ignore[arg-type]
        results = []

        async def register():
            results.append(await store.register_mcp_client("weather", MCP_URL, DynamicClientRegistrationRequest()))

        async with anyio.create_task_group() as tg:
            for _ in range(10):
                tg.start_soon(register)

        assert len(registrar.calls) == 1
        assert len(results) == 10
        assert all(result is results[0] for result in results)

    @pytest.mark.anyio
    async def test_distinct_ids_register_separately(self):
        from mcp_security.client.auth import DynamicClientRegistrationRequest, InMemoryMcpClientRegistrationStore

        registrar = _FakeRegistrar(_metadata())
        store = InMemoryMcpClientRegistrationStore(registrar)  # type: ignore[arg-type]

        async with anyio.create_task_group() as tg:
            for registration_id in ("a", "b", "a", "b"):
                tg.start_soon(store.register_mcp_client, registration_id, MCP_URL, DynamicClientRegistrationRequest())

        assert sorted(call[0] for call in registrar.calls) == ["a", "b"]

    @pytest.mark.anyio
    async def test_failure_commits_nothing(self):
        """A failed registration can be retried from scratch."""
        from mcp_security.client.auth import DynamicClientRegistrationRequest, InMemoryMcpClientRegistrationStore
        from mcp_security.exceptions import RegistrationError

        registrar = _FakeRegistrar(_metadata(), fail_times=1)
        store = InMemoryMcpClientRegistrationStore(registrar)  # type: ignore[arg-type]

        with pytest.raises(RegistrationError):
            await store.register_mcp_client("weather", MCP_URL, DynamicClientRegistrationRequest())
        assert store.find_by_registration_id("weather") is None

        registration = await store.register_mcp_client("weather", MCP_URL, DynamicClientRegistrationRequest())

        assert registration.client_id == "client-2"
        assert store.find_resource_id_by_registration_id("weather") == MCP_URL


# =============================================================================
# Scope resolution and lookups
# =============================================================================


class TestScopeResolution:
    @pytest.mark.anyio
    async def test_template_scope_wins(self):
        from mcp_security.client.auth import DynamicClientRegistrationRequest, InMemoryMcpClientRegistrationStore

        registrar = _FakeRegistrar(_metadata(challenge_scope="from-challenge"))
        store = InMemoryMcpClientRegistrationStore(registrar)  # type: ignore[arg-type]

        registration = await store.register_mcp_client("w", MCP_URL, DynamicClientRegistrationRequest(scope="mine"))

        assert registration.scopes == ("mine",)

    @pytest.mark.anyio
    async def test_challenge_scope_before_scopes_supported(self):
        from mcp_security.client.auth import DynamicClientRegistrationRequest, InMemoryMcpClientRegistrationStore

        registrar = _FakeRegistrar(_metadata(challenge_scope="from-challenge"))
        store = InMemoryMcpClientRegistrationStore(registrar)  # type: ignore[arg-type]

        registration = await store.register_mcp_client("w", MCP_URL, DynamicClientRegistrationRequest())

        assert registration.scopes == ("from-challenge",)

    @pytest.mark.anyio
    async def test_scopes_supported_fallback(self):
        from mcp_security.client.auth import DynamicClientRegistrationRequest, InMemoryMcpClientRegistrationStore

        registrar = _FakeRegistrar(_metadata(scopes=("mcp:read", "mcp:write")))
        store = InMemoryMcpClientRegistrationStore(registrar)  # type: ignore[arg-type]

        registration = await store.register_mcp_client("w", MCP_URL, DynamicClientRegistrationRequest())

        assert registration.scopes == ("mcp:read", "mcp:write")

    @pytest.mark.anyio
    async def test_registers_with_first_authorization_server(self):
        from mcp_security.client.auth import DynamicClientRegistrationRequest, InMemoryMcpClientRegistrationStore

        registrar = _FakeRegistrar(_metadata(servers=("https://as1.example.com", "https://as2.example.com")))
        store = InMemoryMcpClientRegistrationStore(registrar)  # type: ignore[arg-type]

        await store.register_mcp_client("w", MCP_URL, DynamicClientRegistrationRequest())

        assert registrar.calls[0][2] == "https://as1.example.com"

    @pytest.mark.anyio
    async def test_missing_authorization_servers(self):
        from mcp_security.client.auth import DynamicClientRegistrationRequest, InMemoryMcpClientRegistrationStore
        from mcp_security.exceptions import DiscoveryError
        from mcp_security.metadata import McpMetadata, ProtectedResourceMetadata

        metadata = McpMetadata(www_authenticate=None, protected_resource=ProtectedResourceMetadata(resource=MCP_URL))
        store = InMemoryMcpClientRegistrationStore(_FakeRegistrar(metadata))  # type: ignore[arg-type]

        with pytest.raises(DiscoveryError, match="cannot find authorization_servers"):
            await store.register_mcp_client("w", MCP_URL, DynamicClientRegistrationRequest())


class TestPreRegisteredClients:
    @pytest.mark.anyio
    async def test_add_and_find(self):
        from mcp_security.client.auth import ClientRegistration, InMemoryMcpClientRegistrationStore

        store = InMemoryMcpClientRegistrationStore(_FakeRegistrar(_metadata()))  # type: ignore[arg-type]
        registration = ClientRegistration(
            registration_id="static", client_id="c", token_endpoint="https://as.example.com/token"
        )

        await store.add_pre_registered_client(registration, MCP_URL)

        assert store.find_by_registration_id("static") is registration
        assert store.find_resource_id_by_registration_id("static") == MCP_URL
        assert store.find_by_registration_id("unknown") is None
        assert store.find_resource_id_by_registration_id("unknown") is None

    @pytest.mark.anyio
    async def test_pre_registered_client_wins_over_registration_in_flight(self):
        """A client stored while dynamic registration runs is never overwritten."""
        from mcp_security.client.auth import (
            ClientRegistration,
            DynamicClientRegistrationRequest,
            InMemoryMcpClientRegistrationStore,
        )

        registrar = _FakeRegistrar(_metadata())
        store = InMemoryMcpClientRegistrationStore(registrar)  # type: ignore[arg-type]
        static = ClientRegistration(
            registration_id="weather", client_id="static", token_endpoint="https://as.example.com/token"
        )
        results = {}

        async def register():
            results["dynamic"] = await store.register_mcp_client(
                "weather", MCP_URL, DynamicClientRegistrationRequest()
            )

        async with anyio.create_task_group() as tg:
            tg.start_soon(register)
            await anyio.sleep(0.01)
            results["static"] = await store.add_pre_registered_client(static, "https://static.example.com/mcp")

        assert len(registrar.calls) == 1
        assert results["static"] is static
        assert results["dynamic"] is static
        assert store.find_by_registration_id("weather") is static
        assert store.find_resource_id_by_registration_id("weather") == "https://static.example.com/mcp"

    @pytest.mark.anyio
    async def test_existing_entry_wins_over_pre_registration(self):
        from mcp_security.client.auth import ClientRegistration, InMemoryMcpClientRegistrationStore

        store = InMemoryMcpClientRegistrationStore(_FakeRegistrar(_metadata()))  # type: ignore[arg-type]
        first = ClientRegistration(registration_id="w", client_id="first", token_endpoint="https://as.example.com/t")
        second = ClientRegistration(registration_id="w", client_id="second", token_endpoint="https://as.example.com/t")

        await store.add_pre_registered_client(first, MCP_URL)
        returned = await store.add_pre_registered_client(second, "https://other.example.com/mcp")

        assert returned is first
        assert store.find_resource_id_by_registration_id("w") == MCP_URL


# =============================================================================
# Over HTTP
# =============================================================================


class TestEndToEnd:
    @respx.mock
    @pytest.mark.anyio
    async def test_discovers_and_registers(self):
        import json

        from mcp_security.client.auth import (
            DynamicClientRegistrar,
            DynamicClientRegistrationRequest,
            InMemoryMcpClientRegistrationStore,
        )

        respx.post(MCP_URL).mock(
            return_value=httpx.Response(
                401,
                headers={"WWW-Authenticate": f'Bearer resource_metadata="{PRM_URL}"'},
            )
        )
        respx.get(PRM_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "resource": MCP_URL,
                    "authorization_servers": ["https://as.example.com"],
                    "scopes_supported": ["mcp:read"],
                },
            )
        )
        respx.get("https://as.example.com/.well-known/oauth-authorization-server").mock(
            return_value=httpx.Response(
                200,
                json={
                    "issuer": "https://as.example.com",
                    "token_endpoint": "https://as.example.com/oauth2/token",
                    "registration_endpoint": "https://as.example.com/oauth2/register",
                },
            )
        )
        registration_route = respx.post("https://as.example.com/oauth2/register").mock(
            return_value=httpx.Response(201, json={"client_id": "abc", "client_secret": "xyz"})
        )

        async with httpx.AsyncClient() as client:
            store = InMemoryMcpClientRegistrationStore(DynamicClientRegistrar(client))
            first = await store.register_mcp_client("weather", MCP_URL, DynamicClientRegistrationRequest())
            second = await store.register_mcp_client("weather", MCP_URL, DynamicClientRegistrationRequest())

        assert first is second
        assert registration_route.call_count == 1
        assert json.loads(registration_route.calls.last.request.content)["scope"] == "mcp:read"
        assert store.find_resource_id_by_registration_id("weather") == MCP_URL
