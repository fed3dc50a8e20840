# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""OAuth metadata discovery for MCP clients (RFC 9728, RFC 8414).

Given an MCP server URL, protected resource metadata is located by trying, in
order:

1. the ``resource_metadata`` URL of the ``WWW-Authenticate`` challenge
   returned by an unauthenticated ``POST``,
2. ``{origin}/.well-known/oauth-protected-resource{path}``,
3. ``{origin}/.well-known/oauth-protected-resource``.

``404`` and ``401`` move on to the next candidate; anything else stops
discovery. The document's ``resource`` must be a prefix of the server URL,
otherwise a metadata document could redirect the client to another
resource's authorization server.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Final
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx
from pydantic import ValidationError

from ...exceptions import ConfigurationError, DiscoveryError
from ...metadata import (
    AuthorizationServerMetadata,
    McpMetadata,
    ProtectedResourceMetadata,
    WwwAuthenticateParameters,
    parse_www_authenticate_parameters,
)
from ...utils import get_logger


WELL_KNOWN_PROTECTED_RESOURCE: Final[str] = "/.well-known/oauth-protected-resource"
WELL_KNOWN_AUTHORIZATION_SERVER: Final[str] = "/.well-known/oauth-authorization-server"
WELL_KNOWN_OPENID_CONFIGURATION: Final[str] = "/.well-known/openid-configuration"

_SKIPPABLE_STATUS: Final[frozenset[int]] = frozenset({401, 404})

_logger = get_logger("mcp_security.discovery")


def _origin_and_path(url: str) -> tuple[str, str]:
    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        raise DiscoveryError(f"not an absolute URL: [{url}]")
    origin = urlunsplit((parsed.scheme, parsed.netloc, "", "", ""))
    return origin, parsed.path.rstrip("/")


def _dedupe(urls: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for url in urls:
        seen.setdefault(url, None)
    return list(seen)


def build_protected_resource_metadata_urls(mcp_server_url: str) -> list[str]:
    """Well-known candidates for ``mcp_server_url``: path-aware first, then root."""
    origin, path = _origin_and_path(mcp_server_url)
    return _dedupe([f"{origin}{WELL_KNOWN_PROTECTED_RESOURCE}{path}", f"{origin}{WELL_KNOWN_PROTECTED_RESOURCE}"])


def build_authorization_server_metadata_urls(issuer: str) -> list[str]:
    """RFC 8414 §3.1 candidates for ``issuer``, then OpenID Connect fallbacks.

    For ``https://as.example.com/tenant``:

        https://as.example.com/.well-known/oauth-authorization-server/tenant
        https://as.example.com/.well-known/openid-configuration/tenant
        https://as.example.com/tenant/.well-known/openid-configuration
    """
    origin, path = _origin_and_path(issuer)
    return _dedupe(
        [
            f"{origin}{WELL_KNOWN_AUTHORIZATION_SERVER}{path}",
            f"{origin}{WELL_KNOWN_OPENID_CONFIGURATION}{path}",
            f"{origin}{path}{WELL_KNOWN_OPENID_CONFIGURATION}",
        ]
    )


def _json_object(response: httpx.Response, url: str) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise DiscoveryError(f"invalid JSON in metadata document [{url}]") from exc
    if not isinstance(data, dict):
        raise DiscoveryError(f"metadata document [{url}] is not a JSON object")
    return data


class McpMetadataDiscovery:
    """Discover protected resource and authorization server metadata.

    Args:
        http_client: Client used for every request. It is never closed here.
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    async def get_www_authenticate_parameters(self, mcp_server_url: str) -> WwwAuthenticateParameters | None:
        """POST to ``mcp_server_url`` without credentials and read its bearer challenge, if any."""
        _logger.debug("requesting MCP server challenge", extra={"event": "discovery.challenge", "url": mcp_server_url})
        try:
            response = await self._http.post(mcp_server_url)
        except httpx.HTTPError as exc:
            raise DiscoveryError(f"failed to reach MCP server [{mcp_server_url}]: {exc}") from exc

        if response.status_code != 401:
            return None
        parameters = parse_www_authenticate_parameters(response.headers.get("www-authenticate"))
        if parameters is None:
            _logger.debug("no resource_metadata in challenge", extra={"event": "discovery.challenge.missing"})
            return None
        # Challenges may carry a relative metadata URL.
        absolute = urljoin(mcp_server_url, parameters.resource_metadata)
        return WwwAuthenticateParameters(resource_metadata=absolute, scope=parameters.scope)

    async def get_protected_resource_metadata(self, candidate_urls: Iterable[str]) -> ProtectedResourceMetadata:
        """Return the first candidate that resolves; skip ``404`` / ``401``."""
        for url in candidate_urls:
            _logger.debug("reading protected resource metadata", extra={"event": "discovery.prm.fetch", "url": url})
            try:
                response = await self._http.get(url, headers={"Accept": "application/json"})
            except httpx.HTTPError as exc:
                raise DiscoveryError(f"failed to fetch protected resource metadata [{url}]: {exc}") from exc

            if response.status_code in _SKIPPABLE_STATUS:
                continue
            if response.status_code != 200:
                raise DiscoveryError(
                    f"protected resource metadata request [{url}] failed with status {response.status_code}"
                )
            try:
                return ProtectedResourceMetadata.from_dict(_json_object(response, url))
            except ConfigurationError as exc:
                raise DiscoveryError(f"invalid protected resource metadata [{url}]: {exc}") from exc

        raise DiscoveryError("Could not find protected resource metadata")

    async def get_mcp_metadata(self, mcp_server_url: str) -> McpMetadata:
        """Discover and validate the metadata protecting ``mcp_server_url``."""
        challenge = await self.get_www_authenticate_parameters(mcp_server_url)
        candidates = build_protected_resource_metadata_urls(mcp_server_url)
        if challenge is not None:
            candidates = _dedupe([challenge.resource_metadata, *candidates])

        metadata = await self.get_protected_resource_metadata(candidates)
        if not mcp_server_url.startswith(metadata.resource):
            raise DiscoveryError(
                f"Resource identifier [{metadata.resource}] does not match MCP Server url [{mcp_server_url}]"
            )
        return McpMetadata(www_authenticate=challenge, protected_resource=metadata)

    async def fetch_authorization_server_metadata(self, issuer: str) -> AuthorizationServerMetadata:
        """Fetch RFC 8414 metadata for ``issuer``, falling back to OpenID Connect discovery."""
        for url in build_authorization_server_metadata_urls(issuer):
            _logger.debug("reading authorization server metadata", extra={"event": "discovery.as.fetch", "url": url})
            try:
                response = await self._http.get(url, headers={"Accept": "application/json"})
            except httpx.HTTPError as exc:
                raise DiscoveryError(f"failed to fetch authorization server metadata [{url}]: {exc}") from exc

            if 400 <= response.status_code < 500:
                continue
            if response.status_code != 200:
                raise DiscoveryError(
                    f"authorization server metadata request [{url}] failed with status {response.status_code}"
                )
            try:
                metadata = AuthorizationServerMetadata.from_dict(_json_object(response, url))
            except ValidationError as exc:
                raise DiscoveryError(f"invalid authorization server metadata [{url}]: {exc}") from exc
            if metadata.issuer.rstrip("/") != issuer.rstrip("/"):
                raise DiscoveryError(
                    f"The Issuer [{metadata.issuer}] provided in the configuration metadata "
                    f"did not match the requested issuer [{issuer}]"
                )
            return metadata

        raise DiscoveryError(f"Unable to resolve the Configuration with the provided Issuer of [{issuer}]")


__all__ = [
    "McpMetadataDiscovery",
    "build_authorization_server_metadata_urls",
    "build_protected_resource_metadata_urls",
]
