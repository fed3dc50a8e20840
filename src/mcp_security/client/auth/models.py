# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Client-side OAuth models.

Locally built values (``DynamicClientRegistrationRequest``,
``ClientRegistration``, ``AccessToken``) are frozen dataclasses validated at
construction. Documents received from an authorization server
(``DynamicClientRegistrationResponse``, ``TokenResponse``) are pydantic
models that ignore unknown fields.

References:
    RFC 7591: OAuth 2.0 Dynamic Client Registration Protocol
    RFC 6749 §5.1: Successful token response
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import dataclasses
from dataclasses import dataclass
import time
from typing import Any, Final

from pydantic import BaseModel, ConfigDict

from ...exceptions import ConfigurationError
from ...metadata import GrantType
from ...utils import is_valid_url


CLIENT_SECRET_BASIC: Final[str] = "client_secret_basic"
CLIENT_SECRET_POST: Final[str] = "client_secret_post"
CLIENT_AUTH_NONE: Final[str] = "none"
RESPONSE_TYPE_CODE: Final[str] = "code"


def _grant_types(values: Sequence[GrantType | str]) -> tuple[GrantType, ...]:
    try:
        return tuple(GrantType(value) for value in values)
    except ValueError as exc:
        raise ConfigurationError(f"unsupported grant type: {exc}") from exc


def _join_scope(scope: str | Sequence[str] | None) -> str | None:
    if scope is None or isinstance(scope, str):
        return scope
    return " ".join(scope)


@dataclass(frozen=True, slots=True)
class DynamicClientRegistrationRequest:
    """RFC 7591 client metadata sent to a registration endpoint.

    Example:
        >>> request = DynamicClientRegistrationRequest(
        ...     grant_types=[GrantType.AUTHORIZATION_CODE, GrantType.REFRESH_TOKEN],
        ...     redirect_uris=["http://localhost:8080/authorize/oauth2/code/mcp"],
        ...     client_name="weather-agent",
        ... )
        >>> request.response_types
        ('code',)
    """

    grant_types: Sequence[GrantType | str] = (GrantType.CLIENT_CREDENTIALS,)
    redirect_uris: Sequence[str] | None = None
    token_endpoint_auth_method: str | None = None
    response_types: Sequence[str] | None = None
    client_name: str | None = None
    client_uri: str | None = None
    scope: str | Sequence[str] | None = None

    def __post_init__(self) -> None:
        grant_types = _grant_types(self.grant_types)
        if not grant_types:
            raise ConfigurationError("grant_types cannot be empty")

        redirect_uris = tuple(self.redirect_uris) if self.redirect_uris is not None else None
        response_types = tuple(self.response_types) if self.response_types is not None else None
        if GrantType.AUTHORIZATION_CODE in grant_types:
            if not redirect_uris:
                raise ConfigurationError(
                    "redirectUris must not be empty when grant types contain authorization_code"
                )
            if response_types is None:
                response_types = (RESPONSE_TYPE_CODE,)
        if GrantType.REFRESH_TOKEN in grant_types and GrantType.AUTHORIZATION_CODE not in grant_types:
            raise ConfigurationError("grant types must contain authorization_code when refresh_token is present")

        object.__setattr__(self, "grant_types", grant_types)
        object.__setattr__(self, "redirect_uris", redirect_uris)
        object.__setattr__(self, "response_types", response_types)
        object.__setattr__(self, "scope", _join_scope(self.scope))

    def with_scope(self, scope: str | Sequence[str]) -> DynamicClientRegistrationRequest:
        return dataclasses.replace(self, scope=_join_scope(scope))

    def to_dict(self) -> dict[str, Any]:
        """Wire form: snake_case keys, ``None`` omitted, scope space-joined."""
        payload: dict[str, Any] = {"grant_types": [grant.value for grant in self.grant_types]}  # type: ignore[union-attr]
        optional: dict[str, Any] = {
            "redirect_uris": list(self.redirect_uris) if self.redirect_uris is not None else None,
            "token_endpoint_auth_method": self.token_endpoint_auth_method,
            "response_types": list(self.response_types) if self.response_types is not None else None,
            "client_name": self.client_name,
            "client_uri": self.client_uri,
            "scope": self.scope,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


class DynamicClientRegistrationResponse(BaseModel):
    """Registration endpoint response (RFC 7591 §3.2.1)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    client_id: str
    client_secret: str | None = None
    client_id_issued_at: int | None = None
    client_secret_expires_at: int | None = None
    token_endpoint_auth_method: str | None = None
    grant_types: list[str] | None = None
    redirect_uris: list[str] | None = None
    response_types: list[str] | None = None
    scope: str | None = None
    client_name: str | None = None
    client_uri: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DynamicClientRegistrationResponse:
        return cls.model_validate(data)


@dataclass(frozen=True, slots=True)
class ClientRegistration:
    """A usable client identity at one authorization server."""

    registration_id: str
    client_id: str
    token_endpoint: str
    authorization_grant_type: GrantType = GrantType.CLIENT_CREDENTIALS
    client_secret: str | None = None
    client_authentication_method: str = CLIENT_SECRET_BASIC
    redirect_uri: str | None = None
    scopes: tuple[str, ...] = ()
    client_name: str | None = None
    issuer: str | None = None
    authorization_endpoint: str | None = None

    def __post_init__(self) -> None:
        if not self.registration_id or not self.registration_id.strip():
            raise ConfigurationError("registrationId cannot be empty")
        if not self.client_id or not self.client_id.strip():
            raise ConfigurationError("clientId cannot be empty")
        if not is_valid_url(self.token_endpoint):
            raise ConfigurationError("tokenUri must be a valid URL")
        grant_type = _grant_types([self.authorization_grant_type])[0]
        if grant_type is GrantType.AUTHORIZATION_CODE:
            if not self.authorization_endpoint:
                raise ConfigurationError("authorizationUri cannot be empty")
            if not self.redirect_uri:
                raise ConfigurationError("redirectUri cannot be empty")
        object.__setattr__(self, "authorization_grant_type", grant_type)
        object.__setattr__(self, "scopes", tuple(self.scopes))

    def __repr__(self) -> str:
        return (
            f"ClientRegistration(registration_id={self.registration_id!r}, client_id={self.client_id!r}, "
            f"authorization_grant_type={self.authorization_grant_type.value!r}, scopes={list(self.scopes)!r})"
        )


class TokenResponse(BaseModel):
    """Successful token endpoint response (RFC 6749 §5.1)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TokenResponse:
        return cls.model_validate(data)


@dataclass(frozen=True, slots=True)
class AccessToken:
    """A token plus what is needed to decide when to renew it."""

    value: str
    token_type: str = "Bearer"
    expires_at: float | None = None
    scopes: tuple[str, ...] = ()
    refresh_token: str | None = None

    @classmethod
    def from_response(cls, response: TokenResponse, *, now: float | None = None) -> AccessToken:
        issued_at = time.time() if now is None else now
        return cls(
            value=response.access_token,
            token_type=response.token_type,
            expires_at=issued_at + response.expires_in if response.expires_in is not None else None,
            scopes=tuple(response.scope.split()) if response.scope else (),
            refresh_token=response.refresh_token,
        )

    def is_expired(self, *, now: float | None = None, skew: float = 30.0) -> bool:
        """True once the token is within ``skew`` seconds of its expiry."""
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at - skew

    def __repr__(self) -> str:
        return f"AccessToken(token_type={self.token_type!r}, expires_at={self.expires_at!r}, scopes={list(self.scopes)!r})"


__all__ = [
    "CLIENT_AUTH_NONE",
    "CLIENT_SECRET_BASIC",
    "CLIENT_SECRET_POST",
    "AccessToken",
    "ClientRegistration",
    "DynamicClientRegistrationRequest",
    "DynamicClientRegistrationResponse",
    "GrantType",
    "TokenResponse",
]
