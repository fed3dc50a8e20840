# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""OAuth2 resource server for MCP endpoints.

Components:
- McpServerOAuth2Config: immutable settings, validated at construction
- McpOAuth2ResourceServer: ASGI middleware serving RFC 9728 metadata and
  authenticating ``Authorization: Bearer`` tokens

Usage:

    >>> config = McpServerOAuth2Config(
    ...     authorization_server="https://as.example.com",
    ...     scopes=["mcp:tools"],
    ...     validate_audience=True,
    ... )
    >>> app = McpOAuth2ResourceServer(config).wrap_asgi(app)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import anyio
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..exceptions import ConfigurationError, TokenValidationError
from ..metadata import ProtectedResourceMetadata
from ..principal import SCOPE_KEY, AuthenticatedPrincipal, is_authenticated
from ..utils import get_logger, is_valid_url
from .challenge import BearerChallengeBuilder
from .jwt import AudienceValidationDecoder, JWTDecoder, TokenDecoder
from .metadata import MetadataCustomizer, ProtectedResourceMetadataPublisher
from .resource import ResourceIdentifier, application_path


if TYPE_CHECKING:
    from starlette.types import ASGIApp


BEARER_METHODS: Final[frozenset[str]] = frozenset({"header", "body", "query"})


@dataclass(frozen=True, slots=True)
class McpServerOAuth2Config:
    """Resource server settings.

    ``metadata_customizers`` run after the built-in one, which sets
    ``authorization_servers``, ``resource_name``, ``bearer_methods_supported``
    and (when configured) ``scopes_supported``. ``protected_paths`` limits
    authentication to the given app-relative path prefixes; ``None`` protects
    everything except the metadata endpoint.
    """

    authorization_server: str
    resource_path: str = "/mcp"
    scopes: Sequence[str] = ()
    bearer_method: str = "header"
    resource_name: str = "MCP Resource Server"
    validate_audience: bool = False
    metadata_customizers: Sequence[MetadataCustomizer] = ()
    decoder: TokenDecoder | None = None
    cache_ttl: int = 300
    protected_paths: Sequence[str] | None = None

    def __post_init__(self) -> None:
        if not self.authorization_server:
            raise ConfigurationError("authorizationServer cannot be null")
        if not is_valid_url(self.authorization_server):
            raise ConfigurationError("authorizationServer must be a valid URL")
        if self.bearer_method not in BEARER_METHODS:
            raise ConfigurationError(f"bearer_method must be one of {sorted(BEARER_METHODS)}")
        if self.cache_ttl < 0:
            raise ConfigurationError("cache_ttl must be >= 0")
        if any(not scope or not scope.strip() for scope in self.scopes):
            raise ConfigurationError("scopes cannot contain blank values")
        if self.protected_paths is not None:
            if any(not path.startswith("/") for path in self.protected_paths):
                raise ConfigurationError("protected paths must start with '/'")
            object.__setattr__(self, "protected_paths", tuple(self.protected_paths))
        object.__setattr__(self, "scopes", tuple(self.scopes))
        object.__setattr__(self, "metadata_customizers", tuple(self.metadata_customizers))
        # Fails fast on an empty resource path.
        ResourceIdentifier(self.resource_path)

    @property
    def resource_identifier(self) -> ResourceIdentifier:
        return ResourceIdentifier(self.resource_path)

    def default_metadata_customizer(
        self, metadata: ProtectedResourceMetadata, request: Request
    ) -> ProtectedResourceMetadata:
        return metadata.replace(
            authorization_servers=[self.authorization_server],
            scopes_supported=list(self.scopes) or None,
            bearer_methods_supported=[self.bearer_method],
            resource_name=self.resource_name,
        )


def parse_bearer_token(auth_header: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not auth_header or not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def principal_from_claims(claims: Mapping[str, Any]) -> AuthenticatedPrincipal:
    """Principal named after ``sub`` (or ``client_id``), authorities from the granted scopes."""
    principal = AuthenticatedPrincipal(name=str(claims.get("sub") or claims.get("client_id") or ""), claims=claims)
    return dataclasses.replace(principal, authorities=frozenset(principal.scopes))


class McpOAuth2ResourceServer:
    """Wire metadata publishing, token decoding and challenges together."""

    def __init__(self, config: McpServerOAuth2Config) -> None:
        self.config = config
        self.resource = config.resource_identifier
        self.publisher = ProtectedResourceMetadataPublisher(
            self.resource,
            (config.default_metadata_customizer, *config.metadata_customizers),
            cache_ttl=config.cache_ttl,
        )
        self.challenges = BearerChallengeBuilder(self.resource)
        self._decoder = config.decoder
        self._decoder_lock = anyio.Lock()
        self._logger = get_logger("mcp_security.oauth2")

    async def get_decoder(self) -> TokenDecoder:
        """The configured decoder, or one built from the issuer's metadata."""
        if self._decoder is not None:
            return self._decoder
        async with self._decoder_lock:
            if self._decoder is None:
                self._decoder = await JWTDecoder.from_issuer(self.config.authorization_server)
            return self._decoder

    def is_protected(self, request: Request) -> bool:
        path = application_path(request)
        if path in self.resource.metadata_paths():
            return False
        if self.config.protected_paths is None:
            return True
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in self.config.protected_paths
        )

    async def authenticate(self, request: Request, token: str) -> AuthenticatedPrincipal:
        """Decode ``token`` for the resource addressed by ``request``."""
        decoder = await self.get_decoder()
        if self.config.validate_audience:
            decoder = AudienceValidationDecoder(decoder, self.resource.resource(request))
        claims = await decoder.decode(token)
        return principal_from_claims(claims)

    def wrap_asgi(self, app: ASGIApp) -> ASGIApp:
        server = self

        class _Middleware(BaseHTTPMiddleware):
            async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
                if server.publisher.matches(request):
                    return await server.publisher.endpoint(request)
                if not server.is_protected(request) or is_authenticated(request.scope):
                    return await call_next(request)

                token = parse_bearer_token(request.headers.get("authorization"))
                if token is None:
                    return server.challenges.challenge_response(request, "missing bearer token")

                try:
                    principal = await server.authenticate(request, token)
                except TokenValidationError as exc:
                    server._logger.warning(
                        "bearer token rejected", extra={"event": "auth.jwt.reject", "reason": str(exc)}
                    )
                    return server.challenges.challenge_response(
                        request, str(exc), error="invalid_token", error_description=str(exc)
                    )

                request.scope[SCOPE_KEY] = principal
                return await call_next(request)

        return _Middleware(app)


__all__ = [
    "McpOAuth2ResourceServer",
    "McpServerOAuth2Config",
    "parse_bearer_token",
    "principal_from_claims",
]
