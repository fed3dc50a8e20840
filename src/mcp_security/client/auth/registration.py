# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Dynamic client registration (RFC 7591)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

import httpx
from pydantic import ValidationError

from ...exceptions import ConfigurationError, RegistrationError
from ...metadata import AuthorizationServerMetadata, GrantType
from ...utils import get_logger
from .discovery import McpMetadataDiscovery
from .models import (
    CLIENT_SECRET_BASIC,
    ClientRegistration,
    DynamicClientRegistrationRequest,
    DynamicClientRegistrationResponse,
)


_logger = get_logger("mcp_security.registration")

# refresh_token only ever accompanies authorization_code.
_PRIMARY_GRANT_TYPES: Final[frozenset[GrantType]] = frozenset(
    {GrantType.AUTHORIZATION_CODE, GrantType.CLIENT_CREDENTIALS}
)


def _primary_grant_type(values: Sequence[GrantType | str] | None) -> GrantType | None:
    """First grant type this library can drive; extension grants are skipped."""
    for value in values or ():
        try:
            grant_type = GrantType(value)
        except ValueError:
            continue
        if grant_type in _PRIMARY_GRANT_TYPES:
            return grant_type
    return None


class DynamicClientRegistrar:
    """Register clients with an authorization server's registration endpoint.

    Args:
        http_client: Client used for metadata and registration requests.
        discovery: Metadata discovery sharing ``http_client`` by default.
    """

    def __init__(self, http_client: httpx.AsyncClient, discovery: McpMetadataDiscovery | None = None) -> None:
        self._http = http_client
        self.discovery = discovery or McpMetadataDiscovery(http_client)

    async def find_registration_endpoint(self, issuer: str) -> tuple[str, AuthorizationServerMetadata]:
        metadata = await self.discovery.fetch_authorization_server_metadata(issuer)
        if not metadata.registration_endpoint:
            raise RegistrationError(f"No registration endpoint found for auth server [{issuer}]")
        return metadata.registration_endpoint, metadata

    async def register(
        self, request: DynamicClientRegistrationRequest, issuer: str
    ) -> DynamicClientRegistrationResponse:
        endpoint, _ = await self.find_registration_endpoint(issuer)
        return await self._post(endpoint, request)

    async def register_client(
        self, registration_id: str, request: DynamicClientRegistrationRequest, issuer: str
    ) -> ClientRegistration:
        """Register and merge the result into a ``ClientRegistration``."""
        endpoint, metadata = await self.find_registration_endpoint(issuer)
        response = await self._post(endpoint, request)
        return self.to_client_registration(registration_id, request, response, metadata)

    async def _post(
        self, endpoint: str, request: DynamicClientRegistrationRequest
    ) -> DynamicClientRegistrationResponse:
        _logger.info("registering client", extra={"event": "registration.dcr.post", "endpoint": endpoint})
        try:
            response = await self._http.post(endpoint, json=request.to_dict(), headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise RegistrationError(f"registration request to [{endpoint}] failed: {exc}") from exc

        if not response.is_success:
            raise RegistrationError(f"Cannot register client: registration endpoint returned {response.status_code}")
        if not response.content:
            raise RegistrationError("Cannot register client")
        try:
            return DynamicClientRegistrationResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise RegistrationError(f"Cannot register client: invalid registration response: {exc}") from exc

    @staticmethod
    def to_client_registration(
        registration_id: str,
        request: DynamicClientRegistrationRequest,
        response: DynamicClientRegistrationResponse,
        server_metadata: AuthorizationServerMetadata,
    ) -> ClientRegistration:
        """Merge with response-wins precedence, field by field."""
        grant_type = _primary_grant_type(response.grant_types) or _primary_grant_type(request.grant_types)
        if grant_type is None:
            grant_type = GrantType.CLIENT_CREDENTIALS

        if response.redirect_uris:
            redirect_uri: str | None = response.redirect_uris[0]
        elif request.redirect_uris:
            redirect_uri = request.redirect_uris[0]
        else:
            redirect_uri = None

        scope = response.scope if response.scope and response.scope.strip() else request.scope
        try:
            return ClientRegistration(
                registration_id=registration_id,
                client_id=response.client_id,
                client_secret=response.client_secret,
                client_authentication_method=(
                    response.token_endpoint_auth_method or request.token_endpoint_auth_method or CLIENT_SECRET_BASIC
                ),
                authorization_grant_type=grant_type,
                redirect_uri=redirect_uri,
                scopes=tuple(scope.split()) if isinstance(scope, str) else (),
                client_name=response.client_name if response.client_name is not None else request.client_name,
                issuer=server_metadata.issuer,
                token_endpoint=server_metadata.token_endpoint,
                authorization_endpoint=server_metadata.authorization_endpoint,
            )
        except ConfigurationError as exc:
            raise RegistrationError(f"registration for [{registration_id}] is not usable: {exc}") from exc


__all__ = ["DynamicClientRegistrar"]
