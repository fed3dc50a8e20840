# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Tests for bearer challenges carrying ``resource_metadata`` (RFC 9728 §5.1)."""

from __future__ import annotations

import json

from starlette.requests import Request


METADATA_URL = "https://host/.well-known/oauth-protected-resource/mcp"


def _request(root_path: str = "") -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "scheme": "https",
            "server": ("host", 443),
            "root_path": root_path,
            "path": f"{root_path}/mcp",
            "query_string": b"",
            "headers": [(b"host", b"host")],
        }
    )


# =============================================================================
# Header merge
# =============================================================================


class TestMergeResourceMetadata:
    def test_bare_bearer_gets_a_space_not_a_comma(self):
        from mcp_security.server import merge_resource_metadata

        assert merge_resource_metadata("Bearer", METADATA_URL) == f"Bearer resource_metadata={METADATA_URL}"

    def test_bare_bearer_is_case_insensitive(self):
        from mcp_security.server import merge_resource_metadata

        assert merge_resource_metadata("bearer", METADATA_URL) == f"bearer resource_metadata={METADATA_URL}"

    def test_existing_parameters_get_a_comma(self):
        from mcp_security.server import merge_resource_metadata

        merged = merge_resource_metadata('Bearer error="invalid_token"', METADATA_URL)

        assert merged == f'Bearer error="invalid_token", resource_metadata={METADATA_URL}'

    def test_existing_quoted_value_is_replaced(self):
        """The new URL appears exactly once and the old one is gone."""
        from mcp_security.server import merge_resource_metadata

        merged = merge_resource_metadata('Bearer resource_metadata="old", error="invalid_token"', METADATA_URL)

        assert merged.count("resource_metadata=") == 1
        assert METADATA_URL in merged
        assert "old" not in merged
        assert 'error="invalid_token"' in merged

    def test_existing_bare_value_is_replaced(self):
        from mcp_security.server import merge_resource_metadata

        merged = merge_resource_metadata("Bearer resource_metadata=https://old.example.com/x", METADATA_URL)

        assert merged == f"Bearer resource_metadata={METADATA_URL}"

    def test_idempotent(self):
        from mcp_security.server import merge_resource_metadata

        once = merge_resource_metadata("Bearer", METADATA_URL)

        assert merge_resource_metadata(once, METADATA_URL) == once


# =============================================================================
# Builder
# =============================================================================


class TestBearerChallengeBuilder:
    def test_plain_challenge(self):
        from mcp_security.server import BearerChallengeBuilder, ResourceIdentifier

        builder = BearerChallengeBuilder(ResourceIdentifier("/mcp"))

        assert builder.build(_request()) == f"Bearer resource_metadata={METADATA_URL}"

    def test_context_path(self):
        from mcp_security.server import BearerChallengeBuilder, ResourceIdentifier

        builder = BearerChallengeBuilder(ResourceIdentifier("/mcp"))

        assert (
            builder.build(_request("/ctx"))
            == "Bearer resource_metadata=https://host/ctx/.well-known/oauth-protected-resource/mcp"
        )

    def test_error_parameters(self):
        from mcp_security.server import BearerChallengeBuilder, ResourceIdentifier

        builder = BearerChallengeBuilder(ResourceIdentifier("/mcp"))

        header = builder.build(_request(), error="invalid_token", error_description='bad "aud"')

        assert header == (
            f'Bearer error="invalid_token", error_description="bad \\"aud\\"", resource_metadata={METADATA_URL}'
        )

    def test_existing_header_is_merged(self):
        from mcp_security.server import BearerChallengeBuilder, ResourceIdentifier

        builder = BearerChallengeBuilder(ResourceIdentifier("/mcp"))

        header = builder.build(_request(), 'Bearer realm="mcp"')

        assert header == f'Bearer realm="mcp", resource_metadata={METADATA_URL}'

    def test_challenge_response(self):
        from mcp_security.server import BearerChallengeBuilder, ResourceIdentifier

        builder = BearerChallengeBuilder(ResourceIdentifier("/mcp"))

        response = builder.challenge_response(_request(), "missing bearer token")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == f"Bearer resource_metadata={METADATA_URL}"
        assert json.loads(response.body) == {"error": "unauthorized", "detail": "missing bearer token"}
