# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Tests for client configuration and startup registration."""

from __future__ import annotations

import pytest


class _RecordingStore:
    def __init__(self, fail_on=None):
        self.requests = []
        self.fail_on = fail_on

    async def register_mcp_client(self, registration_id, url, request):
        from mcp_security.client.auth import ClientRegistration
        from mcp_security.exceptions import RegistrationError

        if registration_id == self.fail_on:
            raise RegistrationError("Cannot register client")
        self.requests.append((registration_id, url, request))
        return ClientRegistration(
            registration_id=registration_id,
            client_id=f"{registration_id}-client",
            token_endpoint="https://as.example.com/oauth2/token",
        )


# =============================================================================
# McpClientOAuth2Config
# =============================================================================


class TestMcpClientOAuth2Config:
    def test_redirect_uri(self):
        from mcp_security.client.auth import McpClientOAuth2Config

        config = McpClientOAuth2Config(base_url="https://agent.example.com/")

        assert config.redirect_uri("weather") == "https://agent.example.com/authorize/oauth2/code/weather"

    def test_invalid_base_url(self):
        from mcp_security.client.auth import McpClientOAuth2Config
        from mcp_security.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match="baseUrl must be a valid URL"):
            McpClientOAuth2Config(base_url="agent.example.com")

    def test_blank_registration_id(self):
        from mcp_security.client.auth import McpClientOAuth2Config
        from mcp_security.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match="registrationId cannot be empty"):
            McpClientOAuth2Config(base_url="https://agent.example.com", registrations={" ": "https://mcp.example.com"})

    def test_invalid_server_url(self):
        from mcp_security.client.auth import McpClientOAuth2Config
        from mcp_security.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match=r"\[weather\] must be a valid URL"):
            McpClientOAuth2Config(base_url="https://agent.example.com", registrations={"weather": "mcp"})

    def test_registrations_are_frozen(self):
        from mcp_security.client.auth import McpClientOAuth2Config

        source = {"weather": "https://mcp.example.com/mcp"}
        config = McpClientOAuth2Config(base_url="https://agent.example.com", registrations=source)
        source["other"] = "https://other.example.com/mcp"

        assert list(config.registrations) == ["weather"]
        with pytest.raises(TypeError):
            config.registrations["x"] = "https://x.example.com"  # type: ignore[index]

    def test_registration_request(self):
        from mcp_security.client.auth import GrantType, McpClientOAuth2Config

        config = McpClientOAuth2Config(base_url="https://agent.example.com", client_name="agent", scope="mcp:read")

        request = config.registration_request("weather")

        assert request.grant_types == (GrantType.AUTHORIZATION_CODE, GrantType.REFRESH_TOKEN)
        assert request.to_dict() == {
            "grant_types": ["authorization_code", "refresh_token"],
            "redirect_uris": ["https://agent.example.com/authorize/oauth2/code/weather"],
            "response_types": ["code"],
            "client_name": "agent",
            "scope": "mcp:read",
        }


# =============================================================================
# register_mcp_clients
# =============================================================================


class TestRegisterMcpClients:
    @pytest.mark.anyio
    async def test_registers_each_server_in_order(self):
        from mcp_security.client.auth import McpClientOAuth2Config, register_mcp_clients

        store = _RecordingStore()
        config = McpClientOAuth2Config(
            base_url="https://agent.example.com",
            registrations={"weather": "https://weather.example.com/mcp", "news": "https://news.example.com/mcp"},
        )

        registered = await register_mcp_clients(store, config)  # type: ignore[arg-type]

        assert list(registered) == ["weather", "news"]
        assert registered["news"].client_id == "news-client"
        assert [(rid, url) for rid, url, _ in store.requests] == [
            ("weather", "https://weather.example.com/mcp"),
            ("news", "https://news.example.com/mcp"),
        ]
        assert store.requests[1][2].redirect_uris == ("https://agent.example.com/authorize/oauth2/code/news",)

    @pytest.mark.anyio
    async def test_first_failure_propagates(self):
        from mcp_security.client.auth import McpClientOAuth2Config, register_mcp_clients
        from mcp_security.exceptions import RegistrationError

        store = _RecordingStore(fail_on="weather")
        config = McpClientOAuth2Config(
            base_url="https://agent.example.com",
            registrations={"weather": "https://weather.example.com/mcp", "news": "https://news.example.com/mcp"},
        )

        with pytest.raises(RegistrationError):
            await register_mcp_clients(store, config)  # type: ignore[arg-type]

        assert store.requests == []
