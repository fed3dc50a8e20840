# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Audience-bound token issuance for an authorization server.

Clients pass the non-standard ``resource`` parameter on the authorization
request, the client_credentials token request, or the refresh_token
request. ``ResourceAudienceTokenCustomizer`` mirrors it into ``aud``:

1. access token with the ``openid`` scope granted -> left alone
2. grant parameters contain ``resource`` -> ``aud = [resource]``
3. otherwise -> left alone (no ``aud``)

Each grant is a closed variant exposing the same ``additional_parameters``
bag, so the rule does not special-case grant types. A refresh grant carries
the parameters of the *refresh* request, which lets a refreshed token target
a different resource than the original one.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
import time
from types import MappingProxyType
from typing import Any, ClassVar, Final, Union
import uuid

import jwt

from ..exceptions import ConfigurationError
from ..metadata import GrantType
from ..utils import get_logger


RESOURCE_PARAMETER: Final[str] = "resource"
OPENID_SCOPE: Final[str] = "openid"

_logger = get_logger("mcp_security.authorization_server")


class TokenType(str, Enum):
    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"
    ID_TOKEN = "id_token"


def _freeze(parameters: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(parameters))


@dataclass(frozen=True, slots=True)
class AuthorizationCodeGrant:
    """Code exchange; parameters are those of the original authorization request."""

    grant_type: ClassVar[GrantType] = GrantType.AUTHORIZATION_CODE

    client_id: str
    code: str
    redirect_uri: str | None = None
    additional_parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "additional_parameters", _freeze(self.additional_parameters))


@dataclass(frozen=True, slots=True)
class ClientCredentialsGrant:
    grant_type: ClassVar[GrantType] = GrantType.CLIENT_CREDENTIALS

    client_id: str
    additional_parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "additional_parameters", _freeze(self.additional_parameters))


@dataclass(frozen=True, slots=True)
class RefreshTokenGrant:
    """Refresh; parameters are those of the refresh request itself."""

    grant_type: ClassVar[GrantType] = GrantType.REFRESH_TOKEN

    client_id: str
    refresh_token: str
    additional_parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "additional_parameters", _freeze(self.additional_parameters))


Grant = Union[AuthorizationCodeGrant, ClientCredentialsGrant, RefreshTokenGrant]


@dataclass(slots=True)
class JwtEncodingContext:
    """Token being minted; customizers edit ``claims`` in place."""

    token_type: TokenType
    grant: Grant
    authorized_scopes: frozenset[str] = frozenset()
    claims: dict[str, Any] = field(default_factory=dict)


TokenCustomizer = Callable[[JwtEncodingContext], None]


class ResourceAudienceTokenCustomizer:
    """Stamp ``aud`` from the grant's ``resource`` parameter."""

    def __call__(self, context: JwtEncodingContext) -> None:
        if context.token_type is TokenType.ACCESS_TOKEN and OPENID_SCOPE in context.authorized_scopes:
            return
        # ID token audiences always name the client.
        if context.token_type is TokenType.ID_TOKEN:
            return
        resource = context.grant.additional_parameters.get(RESOURCE_PARAMETER)
        if resource:
            context.claims["aud"] = [str(resource)]


class AccessTokenIssuer:
    """Mint signed JWT access tokens.

    Example:
        >>> issuer = AccessTokenIssuer("https://as.example.com", private_pem, key_id="k1")
        >>> token = issuer.issue(
        ...     RefreshTokenGrant("client", "rt", {"resource": "https://api.example.com"}),
        ...     subject="alice",
        ... )
    """

    def __init__(
        self,
        issuer: str,
        signing_key: Any,
        *,
        algorithm: str = "RS256",
        key_id: str | None = None,
        ttl: int = 300,
        customizers: Iterable[TokenCustomizer] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not issuer:
            raise ConfigurationError("issuer cannot be empty")
        if ttl <= 0:
            raise ConfigurationError("ttl must be > 0")
        self.issuer = issuer
        self._signing_key = signing_key
        self._algorithm = algorithm
        self._key_id = key_id
        self._ttl = ttl
        self._customizers: tuple[TokenCustomizer, ...] = (
            tuple(customizers) if customizers is not None else (ResourceAudienceTokenCustomizer(),)
        )
        self._clock = clock

    def issue(
        self,
        grant: Grant,
        *,
        subject: str | None = None,
        authorized_scopes: Iterable[str] = (),
        token_type: TokenType = TokenType.ACCESS_TOKEN,
    ) -> str:
        scopes = frozenset(authorized_scopes)
        now = int(self._clock())
        claims: dict[str, Any] = {
            "iss": self.issuer,
            "sub": subject or grant.client_id,
            "client_id": grant.client_id,
            "iat": now,
            "nbf": now,
            "exp": now + self._ttl,
            "jti": uuid.uuid4().hex,
        }
        if scopes:
            claims["scope"] = " ".join(sorted(scopes))

        context = JwtEncodingContext(token_type=token_type, grant=grant, authorized_scopes=scopes, claims=claims)
        for customizer in self._customizers:
            customizer(context)

        headers = {"kid": self._key_id} if self._key_id else None
        token = jwt.encode(context.claims, self._signing_key, algorithm=self._algorithm, headers=headers)
        _logger.debug(
            "issued token",
            extra={
                "event": "authorization_server.token.issue",
                "grant_type": grant.grant_type.value,
                "client_id": grant.client_id,
                "aud": context.claims.get("aud"),
            },
        )
        return token


__all__ = [
    "OPENID_SCOPE",
    "RESOURCE_PARAMETER",
    "AccessTokenIssuer",
    "AuthorizationCodeGrant",
    "ClientCredentialsGrant",
    "Grant",
    "JwtEncodingContext",
    "RefreshTokenGrant",
    "ResourceAudienceTokenCustomizer",
    "TokenCustomizer",
    "TokenType",
]
