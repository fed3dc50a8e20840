# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Tests for resource identifier resolution against inbound requests."""

from __future__ import annotations

import pytest
from starlette.requests import Request


def _request(
    path: str = "/mcp",
    *,
    root_path: str = "",
    scheme: str = "https",
    host: str = "host",
    port: int = 443,
    headers: dict[str, str] | None = None,
) -> Request:
    raw_headers = [(b"host", host.encode())]
    raw_headers += [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()]
    return Request(
        {
            "type": "http",
            "method": "GET",
            "scheme": scheme,
            "server": (host.split(":")[0], port),
            "root_path": root_path,
            "path": root_path + path,
            "query_string": b"",
            "headers": raw_headers,
        }
    )


# =============================================================================
# Construction
# =============================================================================


class TestResourceIdentifierConstruction:
    @pytest.mark.parametrize(
        ("path", "message"),
        [
            ("", "path cannot be empty"),
            ("   ", "path cannot be empty"),
            ("mcp", "must start with '/'"),
            ("/mcp?x=1", "query or fragment"),
            ("/mcp#frag", "query or fragment"),
        ],
    )
    def test_invalid_paths(self, path, message):
        from mcp_security.exceptions import ConfigurationError
        from mcp_security.server import ResourceIdentifier

        with pytest.raises(ConfigurationError, match=message):
            ResourceIdentifier(path)

    def test_equality(self):
        from mcp_security.server import ResourceIdentifier

        assert ResourceIdentifier("/mcp") == ResourceIdentifier("/mcp")
        assert ResourceIdentifier("/mcp") != ResourceIdentifier("/other")
        assert len({ResourceIdentifier("/mcp"), ResourceIdentifier("/mcp")}) == 1


# =============================================================================
# Rendering
# =============================================================================


class TestResourceIdentifierRendering:
    def test_resource_without_root_path(self):
        from mcp_security.server import ResourceIdentifier

        assert ResourceIdentifier("/mcp").resource(_request()) == "https://host/mcp"

    def test_resource_includes_root_path(self):
        """The mount prefix is part of the identifier."""
        from mcp_security.server import ResourceIdentifier

        request = _request("/mcp", root_path="/ctx")

        assert ResourceIdentifier("/mcp").resource(request) == "https://host/ctx/mcp"

    def test_metadata_url_includes_root_path(self):
        from mcp_security.server import ResourceIdentifier

        request = _request("/mcp", root_path="/ctx")

        assert (
            ResourceIdentifier("/mcp").metadata_url(request)
            == "https://host/ctx/.well-known/oauth-protected-resource/mcp"
        )

    def test_non_default_port_is_kept(self):
        from mcp_security.server import ResourceIdentifier

        request = _request(scheme="http", host="localhost:8080", port=8080)

        assert ResourceIdentifier("/mcp").resource(request) == "http://localhost:8080/mcp"

    def test_default_port_is_dropped(self):
        from mcp_security.server import ResourceIdentifier

        request = _request(host="host:443")

        assert ResourceIdentifier("/mcp").resource(request) == "https://host/mcp"

    def test_forwarded_headers(self):
        """Behind a proxy, the public scheme and host win."""
        from mcp_security.server import ResourceIdentifier

        request = _request(
            scheme="http",
            host="internal:8000",
            port=8000,
            headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "mcp.example.com, proxy.local"},
        )

        assert ResourceIdentifier("/mcp").resource(request) == "https://mcp.example.com/mcp"

    def test_query_is_never_rendered(self):
        from mcp_security.server import ResourceIdentifier

        scope = _request().scope | {"query_string": b"session=1"}

        assert ResourceIdentifier("/mcp").resource(Request(scope)) == "https://host/mcp"

    def test_metadata_paths(self):
        from mcp_security.server import ResourceIdentifier

        assert ResourceIdentifier("/mcp").metadata_paths() == (
            "/.well-known/oauth-protected-resource/mcp",
            "/mcp/.well-known/oauth-protected-resource",
        )


class TestApplicationPath:
    def test_root_path_is_stripped(self):
        from mcp_security.server.resource import application_path

        assert application_path(_request("/mcp", root_path="/ctx")) == "/mcp"

    def test_without_root_path(self):
        from mcp_security.server.resource import application_path

        assert application_path(_request("/mcp")) == "/mcp"
