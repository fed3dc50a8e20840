# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Bearer token decoding with audience binding.

``JWTDecoder`` wraps PyJWT: signature, ``exp``, ``nbf`` and ``iss`` are
checked there, keys come from a static key or a JWKS document. The
``aud`` claim is deliberately not checked by PyJWT. ``AudienceValidationDecoder``
decorates any decoder and checks that ``aud`` contains this resource's
identifier *after* a successful decode, so a decode failure is never
reported as an audience failure.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import time
from typing import Any, Final, Protocol

import anyio
import httpx
import jwt

from ..exceptions import ConfigurationError, InvalidAudienceError, TokenValidationError
from ..utils import get_logger, is_valid_url
from ..utils.http import client_scope


DECODE_ERROR_TEMPLATE: Final[str] = "An error occurred while attempting to decode the Jwt: {}"
INVALID_AUDIENCE_DESCRIPTION: Final[str] = "the aud claim is not valid"

_logger = get_logger("mcp_security.jwt")


class TokenDecoder(Protocol):
    async def decode(self, token: str) -> dict[str, Any]:
        """Decode and verify ``token``; raise ``TokenValidationError`` on failure."""


@dataclass(frozen=True, slots=True)
class JWTDecoderConfig:
    """How to verify JWT access tokens.

    Exactly one of ``jwks_uri`` or ``key`` must be given. ``key`` may be a PEM
    string, a ``cryptography`` public key or an HMAC secret.
    """

    issuer: str | None = None
    jwks_uri: str | None = None
    key: Any = None
    algorithms: Sequence[str] = ("RS256",)
    leeway: float = 60.0
    required_claims: Sequence[str] = ("exp",)
    jwks_cache_ttl: float = 300.0

    def __post_init__(self) -> None:
        if (self.jwks_uri is None) == (self.key is None):
            raise ConfigurationError("exactly one of jwks_uri or key must be set")
        if self.jwks_uri is not None and not is_valid_url(self.jwks_uri):
            raise ConfigurationError("jwks_uri must be a valid URL")
        if not self.algorithms:
            raise ConfigurationError("algorithms cannot be empty")
        if self.leeway < 0:
            raise ConfigurationError("leeway must be >= 0")
        object.__setattr__(self, "algorithms", tuple(self.algorithms))
        object.__setattr__(self, "required_claims", tuple(self.required_claims))


class JWTDecoder:
    """PyJWT-backed ``TokenDecoder``."""

    def __init__(self, config: JWTDecoderConfig, *, http_client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._http_client = http_client
        self._jwks: jwt.PyJWKSet | None = None
        self._jwks_fetched_at = 0.0
        self._jwks_lock = anyio.Lock()

    @classmethod
    async def from_issuer(
        cls,
        issuer: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        algorithms: Sequence[str] = ("RS256",),
        leeway: float = 60.0,
    ) -> JWTDecoder:
        """Build a decoder from the issuer's authorization server metadata."""
        from ..client.auth.discovery import McpMetadataDiscovery

        async with client_scope(http_client) as client:
            metadata = await McpMetadataDiscovery(client).fetch_authorization_server_metadata(issuer)
        if not metadata.jwks_uri:
            raise ConfigurationError(f"No jwks_uri found for auth server [{issuer}]")
        config = JWTDecoderConfig(
            issuer=metadata.issuer, jwks_uri=metadata.jwks_uri, algorithms=algorithms, leeway=leeway
        )
        return cls(config, http_client=http_client)

    async def decode(self, token: str) -> dict[str, Any]:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as exc:
            raise TokenValidationError(DECODE_ERROR_TEMPLATE.format(exc)) from exc

        key = await self._resolve_key(header)
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=list(self.config.algorithms),
                issuer=self.config.issuer,
                leeway=self.config.leeway,
                options={"verify_aud": False, "require": list(self.config.required_claims)},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenValidationError(DECODE_ERROR_TEMPLATE.format("Jwt expired")) from exc
        except jwt.PyJWTError as exc:
            raise TokenValidationError(DECODE_ERROR_TEMPLATE.format(exc)) from exc
        return claims

    async def _resolve_key(self, header: Mapping[str, Any]) -> Any:
        if self.config.key is not None:
            return self.config.key

        kid = header.get("kid")
        jwks = await self._get_jwks(force=False)
        key = _select_key(jwks, kid)
        if key is None:
            # Unknown kid: the issuer may have rotated keys since the last fetch.
            jwks = await self._get_jwks(force=True)
            key = _select_key(jwks, kid)
        if key is None:
            raise TokenValidationError(DECODE_ERROR_TEMPLATE.format(f"no signing key found for kid [{kid}]"))
        return key

    async def _get_jwks(self, *, force: bool) -> jwt.PyJWKSet:
        async with self._jwks_lock:
            fresh = time.monotonic() - self._jwks_fetched_at < self.config.jwks_cache_ttl
            if self._jwks is not None and fresh and not force:
                return self._jwks
            try:
                async with client_scope(self._http_client) as client:
                    response = await client.get(str(self.config.jwks_uri), headers={"Accept": "application/json"})
                    response.raise_for_status()
                    self._jwks = jwt.PyJWKSet.from_dict(response.json())
            except (httpx.HTTPError, ValueError, jwt.PyJWTError) as exc:
                _logger.warning(
                    "failed to fetch JWKS", extra={"event": "auth.jwt.jwks_error", "jwks_uri": self.config.jwks_uri}
                )
                raise TokenValidationError(DECODE_ERROR_TEMPLATE.format(f"unable to fetch JWKS: {exc}")) from exc
            self._jwks_fetched_at = time.monotonic()
            return self._jwks


def _select_key(jwks: jwt.PyJWKSet, kid: str | None) -> Any:
    if kid is None:
        return jwks.keys[0].key if len(jwks.keys) == 1 else None
    for candidate in jwks.keys:
        if candidate.key_id == kid:
            return candidate.key
    return None


@dataclass(frozen=True, slots=True)
class ValidationResult:
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls()

    @classmethod
    def failure(cls, *errors: str) -> ValidationResult:
        return cls(errors=tuple(errors))


class AudienceValidator:
    """Accept claims whose ``aud`` contains exactly ``resource``."""

    def __init__(self, resource: str) -> None:
        if not resource:
            raise ConfigurationError("resource cannot be empty")
        self.resource = resource

    def validate(self, claims: Mapping[str, Any]) -> ValidationResult:
        audience = claims.get("aud")
        if isinstance(audience, str):
            audience = [audience]
        if isinstance(audience, (list, tuple)) and self.resource in {str(item) for item in audience}:
            return ValidationResult.success()
        return ValidationResult.failure(INVALID_AUDIENCE_DESCRIPTION)


class AudienceValidationDecoder:
    """Decode with ``delegate``, then require the token to be bound to ``resource``."""

    def __init__(self, delegate: TokenDecoder, resource: str) -> None:
        self._delegate = delegate
        self._validator = AudienceValidator(resource)

    @property
    def resource(self) -> str:
        return self._validator.resource

    async def decode(self, token: str) -> dict[str, Any]:
        claims = await self._delegate.decode(token)
        result = self._validator.validate(claims)
        if result.has_errors:
            description = next((error for error in result.errors if error), None)
            message = DECODE_ERROR_TEMPLATE.format(description) if description else "Unable to validate Jwt"
            raise InvalidAudienceError(message, list(result.errors))
        return claims


__all__ = [
    "DECODE_ERROR_TEMPLATE",
    "INVALID_AUDIENCE_DESCRIPTION",
    "AudienceValidationDecoder",
    "AudienceValidator",
    "JWTDecoder",
    "JWTDecoderConfig",
    "TokenDecoder",
    "ValidationResult",
]
