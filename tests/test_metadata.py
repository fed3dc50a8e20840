# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Tests for the shared RFC 9728 / RFC 8414 metadata models."""

from __future__ import annotations

import pytest


# =============================================================================
# ProtectedResourceMetadata
# =============================================================================


class TestProtectedResourceMetadata:
    """Construction invariants of the protected resource metadata document."""

    def test_minimal_document(self):
        """Only ``resource`` is required."""
        from mcp_security.metadata import ProtectedResourceMetadata

        meta = ProtectedResourceMetadata(resource="https://mcp.example.com/mcp")

        assert meta.to_dict() == {"resource": "https://mcp.example.com/mcp"}

    def test_resource_is_required(self):
        from mcp_security.exceptions import ConfigurationError
        from mcp_security.metadata import ProtectedResourceMetadata

        with pytest.raises(ConfigurationError, match="resource cannot be null"):
            ProtectedResourceMetadata(resource=None)  # type: ignore[arg-type]

    def test_resource_must_be_a_url(self):
        from mcp_security.exceptions import ConfigurationError
        from mcp_security.metadata import ProtectedResourceMetadata

        with pytest.raises(ConfigurationError, match="resource must be a valid URL"):
            ProtectedResourceMetadata(resource="not a url")

    @pytest.mark.parametrize(
        ("field", "message"),
        [
            ("authorization_servers", "authorization_servers cannot be empty"),
            ("scopes_supported", "scopes cannot be empty"),
            ("bearer_methods_supported", "bearer methods cannot be empty"),
        ],
    )
    def test_empty_lists_are_rejected(self, field, message):
        """An empty list is an error, never treated as absent."""
        from mcp_security.exceptions import ConfigurationError
        from mcp_security.metadata import ProtectedResourceMetadata

        with pytest.raises(ConfigurationError, match=message):
            ProtectedResourceMetadata(resource="https://mcp.example.com/mcp", **{field: []})

    def test_authorization_servers_must_be_urls(self):
        from mcp_security.exceptions import ConfigurationError
        from mcp_security.metadata import ProtectedResourceMetadata

        with pytest.raises(ConfigurationError, match="authorization_server must be a valid URL"):
            ProtectedResourceMetadata(resource="https://mcp.example.com/mcp", authorization_servers=["nope"])

    def test_from_dict_keeps_unknown_claims(self):
        from mcp_security.metadata import ProtectedResourceMetadata

        meta = ProtectedResourceMetadata.from_dict(
            {
                "resource": "https://mcp.example.com/mcp",
                "authorization_servers": ["https://as.example.com"],
                "resource_documentation": "https://docs.example.com",
            }
        )

        assert meta.primary_authorization_server == "https://as.example.com"
        assert meta.claims == {"resource_documentation": "https://docs.example.com"}
        assert meta.to_dict()["resource_documentation"] == "https://docs.example.com"

    def test_with_claim_returns_a_copy(self):
        from mcp_security.metadata import ProtectedResourceMetadata

        meta = ProtectedResourceMetadata(resource="https://mcp.example.com/mcp")
        extended = meta.with_claim("tls_client_certificate_bound_access_tokens", True)

        assert "tls_client_certificate_bound_access_tokens" not in meta.to_dict()
        assert extended.to_dict()["tls_client_certificate_bound_access_tokens"] is True

    def test_standard_claims_cannot_hide_in_extra_claims(self):
        from mcp_security.exceptions import ConfigurationError
        from mcp_security.metadata import ProtectedResourceMetadata

        with pytest.raises(ConfigurationError, match="dedicated field"):
            ProtectedResourceMetadata(resource="https://mcp.example.com/mcp", claims={"scopes_supported": ["a"]})


# =============================================================================
# WWW-Authenticate parsing
# =============================================================================


class TestWwwAuthenticateParsing:
    """Reading discovery hints out of bearer challenges."""

    def test_quoted_values(self):
        from mcp_security.metadata import parse_www_authenticate_parameters

        params = parse_www_authenticate_parameters(
            'Bearer resource_metadata="https://mcp.example.com/.well-known/oauth-protected-resource", scope="a b"'
        )

        assert params is not None
        assert params.resource_metadata == "https://mcp.example.com/.well-known/oauth-protected-resource"
        assert params.scope == "a b"

    def test_bare_values(self):
        from mcp_security.metadata import parse_www_authenticate_parameters

        params = parse_www_authenticate_parameters("Bearer resource_metadata=https://h/.well-known/x")

        assert params is not None
        assert params.resource_metadata == "https://h/.well-known/x"
        assert params.scope is None

    def test_no_resource_metadata(self):
        from mcp_security.metadata import parse_www_authenticate_parameters

        assert parse_www_authenticate_parameters('Bearer error="invalid_token"') is None
        assert parse_www_authenticate_parameters(None) is None

    def test_parameter_name_must_match_exactly(self):
        from mcp_security.metadata import extract_www_authenticate_parameter

        assert extract_www_authenticate_parameter("scope", 'Bearer x_scope="no"') is None


# =============================================================================
# AuthorizationServerMetadata
# =============================================================================


class TestAuthorizationServerMetadata:
    def test_unknown_fields_are_ignored(self):
        from mcp_security.metadata import AuthorizationServerMetadata

        meta = AuthorizationServerMetadata.from_dict(
            {
                "issuer": "https://as.example.com",
                "token_endpoint": "https://as.example.com/token",
                "grant_types_supported": ["client_credentials"],
                "dpop_signing_alg_values_supported": ["ES256"],
            }
        )

        assert meta.supports_grant_type("client_credentials")
        assert not meta.supports_grant_type("authorization_code")

    def test_absent_grant_types_are_not_assumed(self):
        from mcp_security.metadata import AuthorizationServerMetadata

        meta = AuthorizationServerMetadata(issuer="https://as.example.com", token_endpoint="https://as.example.com/t")

        assert not meta.supports_grant_type("authorization_code")
