# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Access token acquisition for registered MCP clients.

- ``ClientCredentialsTokenProvider``: service tokens (RFC 6749 §4.4), cached
  per registration id until shortly before expiry.
- ``AuthorizationCodeFlow``: user tokens (RFC 6749 §4.1 with PKCE, RFC 7636),
  kept per (registration id, principal) and refreshed when expired.

Every token request carries the ``resource`` (RFC 8707) recorded for the
registration, so issued tokens are bound to the MCP server they target.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
import hashlib
import secrets
import time
from typing import TYPE_CHECKING, Any, Final, Protocol
from urllib.parse import quote

import anyio
import httpx
from pydantic import ValidationError
from starlette.responses import JSONResponse, RedirectResponse, Response

from ...exceptions import AuthorizationRequiredError, TokenError
from ...metadata import GrantType
from ...utils import get_logger
from .models import CLIENT_SECRET_BASIC, CLIENT_SECRET_POST, AccessToken, ClientRegistration, TokenResponse


if TYPE_CHECKING:
    from starlette.requests import Request

    from .store import McpClientRegistrationRepository


RESOURCE_PARAMETER: Final[str] = "resource"

_logger = get_logger("mcp_security.tokens")


def _client_authentication(registration: ClientRegistration, data: dict[str, str]) -> httpx.Auth | None:
    """Apply the registration's token endpoint auth method; return Basic auth if used."""
    method = registration.client_authentication_method
    if registration.client_secret and method == CLIENT_SECRET_BASIC:
        # RFC 6749 §2.3.1: form-encode both parts before Basic encoding.
        return httpx.BasicAuth(quote(registration.client_id, safe=""), quote(registration.client_secret, safe=""))
    data["client_id"] = registration.client_id
    if registration.client_secret and method == CLIENT_SECRET_POST:
        data["client_secret"] = registration.client_secret
    return None


async def request_token(
    http_client: httpx.AsyncClient, registration: ClientRegistration, data: dict[str, str]
) -> TokenResponse:
    """POST a token request for ``registration``; raise ``TokenError`` on failure."""
    form = dict(data)
    auth = _client_authentication(registration, form)
    _logger.debug(
        "requesting token",
        extra={
            "event": "token.request",
            "registration_id": registration.registration_id,
            "grant_type": form.get("grant_type"),
        },
    )
    try:
        response = await http_client.post(
            registration.token_endpoint,
            data=form,
            auth=auth if auth is not None else httpx.USE_CLIENT_DEFAULT,
            headers={"Accept": "application/json"},
        )
    except httpx.HTTPError as exc:
        raise TokenError(f"token request to [{registration.token_endpoint}] failed: {exc}") from exc

    if not response.is_success:
        error, description = _error_fields(response)
        message = f"token request failed: {error or response.status_code}"
        if description:
            message += f" ({description})"
        _logger.warning(
            "token request rejected",
            extra={"event": "token.reject", "registration_id": registration.registration_id, "error": error},
        )
        raise TokenError(message, error=error, error_description=description)

    try:
        return TokenResponse.model_validate_json(response.content)
    except ValidationError as exc:
        raise TokenError(f"invalid token response: {exc}") from exc


def _error_fields(response: httpx.Response) -> tuple[str | None, str | None]:
    try:
        payload = response.json()
    except ValueError:
        return None, None
    if not isinstance(payload, dict):
        return None, None
    return payload.get("error"), payload.get("error_description")


def _registration_or_raise(
    store: McpClientRegistrationRepository, registration_id: str, grant_type: GrantType
) -> ClientRegistration:
    registration = store.find_by_registration_id(registration_id)
    if registration is None:
        raise TokenError(f"Could not find ClientRegistration with id '{registration_id}'")
    if registration.authorization_grant_type is not grant_type:
        raise TokenError(
            f"ClientRegistration '{registration_id}' uses {registration.authorization_grant_type.value}, "
            f"not {grant_type.value}"
        )
    return registration


def _with_scope_and_resource(
    data: dict[str, str], store: McpClientRegistrationRepository, registration: ClientRegistration
) -> dict[str, str]:
    if registration.scopes:
        data["scope"] = " ".join(registration.scopes)
    resource = store.find_resource_id_by_registration_id(registration.registration_id)
    if resource:
        data[RESOURCE_PARAMETER] = resource
    return data


class ClientCredentialsTokenProvider:
    """Obtain and cache client_credentials tokens per registration id."""

    def __init__(
        self, store: McpClientRegistrationRepository, http_client: httpx.AsyncClient, *, skew: float = 30.0
    ) -> None:
        self._store = store
        self._http = http_client
        self._skew = skew
        self._tokens: dict[str, AccessToken] = {}
        self._locks: dict[str, anyio.Lock] = {}

    async def get_token(self, registration_id: str) -> AccessToken:
        token = self._tokens.get(registration_id)
        if token is not None and not token.is_expired(skew=self._skew):
            return token

        lock = self._locks.setdefault(registration_id, anyio.Lock())
        async with lock:
            token = self._tokens.get(registration_id)
            if token is None or token.is_expired(skew=self._skew):
                registration = _registration_or_raise(self._store, registration_id, GrantType.CLIENT_CREDENTIALS)
                data = _with_scope_and_resource(
                    {"grant_type": GrantType.CLIENT_CREDENTIALS.value}, self._store, registration
                )
                response = await request_token(self._http, registration, data)
                token = AccessToken.from_response(response)
                self._tokens[registration_id] = token
        return token

    def invalidate(self, registration_id: str) -> None:
        self._tokens.pop(registration_id, None)


class AuthorizedClientRepository(Protocol):
    def load(self, registration_id: str, principal: str) -> AccessToken | None: ...

    def save(self, registration_id: str, principal: str, token: AccessToken) -> None: ...

    def remove(self, registration_id: str, principal: str) -> None: ...


class InMemoryAuthorizedClientStore:
    """User tokens keyed by ``(registration_id, principal)``."""

    def __init__(self) -> None:
        self._tokens: dict[tuple[str, str], AccessToken] = {}

    def load(self, registration_id: str, principal: str) -> AccessToken | None:
        return self._tokens.get((registration_id, principal))

    def save(self, registration_id: str, principal: str, token: AccessToken) -> None:
        self._tokens[(registration_id, principal)] = token

    def remove(self, registration_id: str, principal: str) -> None:
        self._tokens.pop((registration_id, principal), None)


@dataclass(frozen=True, slots=True)
class _PendingAuthorization:
    registration_id: str
    principal: str
    code_verifier: str
    redirect_uri: str | None
    return_to: str | None
    created_at: float


def _code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class AuthorizationCodeFlow:
    """Authorization code grant with PKCE (S256), ``state`` and ``resource``.

    ``authorize`` returns a stored token (refreshing it when needed) or raises
    ``AuthorizationRequiredError`` carrying the URL the user must visit. The
    authorization server redirects back to the registration's redirect URI,
    where ``handle_callback`` (or ``complete``) exchanges the code.
    """

    def __init__(
        self,
        store: McpClientRegistrationRepository,
        http_client: httpx.AsyncClient,
        authorized_clients: AuthorizedClientRepository | None = None,
        *,
        state_ttl: float = 600.0,
        skew: float = 30.0,
    ) -> None:
        self._store = store
        self._http = http_client
        self.authorized_clients: AuthorizedClientRepository = authorized_clients or InMemoryAuthorizedClientStore()
        self._state_ttl = state_ttl
        self._skew = skew
        self._pending: dict[str, _PendingAuthorization] = {}
        self._locks: dict[tuple[str, str], anyio.Lock] = {}

    def authorization_url(self, registration_id: str, principal: str, *, return_to: str | None = None) -> str:
        """Start an authorization request and return the URL to send the user to."""
        registration = _registration_or_raise(self._store, registration_id, GrantType.AUTHORIZATION_CODE)
        self._expire_pending()

        state = secrets.token_urlsafe(32)
        verifier = secrets.token_urlsafe(64)
        self._pending[state] = _PendingAuthorization(
            registration_id=registration_id,
            principal=principal,
            code_verifier=verifier,
            redirect_uri=registration.redirect_uri,
            return_to=return_to,
            created_at=time.monotonic(),
        )

        params: dict[str, Any] = {
            "response_type": "code",
            "client_id": registration.client_id,
            "state": state,
            "code_challenge": _code_challenge(verifier),
            "code_challenge_method": "S256",
        }
        if registration.redirect_uri:
            params["redirect_uri"] = registration.redirect_uri
        if registration.scopes:
            params["scope"] = " ".join(registration.scopes)
        resource = self._store.find_resource_id_by_registration_id(registration_id)
        if resource:
            params[RESOURCE_PARAMETER] = resource
        return str(httpx.URL(str(registration.authorization_endpoint)).copy_merge_params(params))

    async def complete(self, state: str, code: str) -> AccessToken:
        """Exchange ``code`` for the authorization started with ``state``."""
        self._expire_pending()
        pending = self._pending.pop(state, None)
        if pending is None:
            raise TokenError("invalid or expired authorization state", error="invalid_state")

        registration = _registration_or_raise(self._store, pending.registration_id, GrantType.AUTHORIZATION_CODE)
        data = {
            "grant_type": GrantType.AUTHORIZATION_CODE.value,
            "code": code,
            "code_verifier": pending.code_verifier,
        }
        if pending.redirect_uri:
            data["redirect_uri"] = pending.redirect_uri
        resource = self._store.find_resource_id_by_registration_id(pending.registration_id)
        if resource:
            data[RESOURCE_PARAMETER] = resource

        token = AccessToken.from_response(await request_token(self._http, registration, data))
        self.authorized_clients.save(pending.registration_id, pending.principal, token)
        return token

    async def authorize(self, registration_id: str, principal: str, *, return_to: str | None = None) -> AccessToken:
        token = self.authorized_clients.load(registration_id, principal)
        if token is not None and not token.is_expired(skew=self._skew):
            return token

        # One refresh per (registration, user); a refresh token may be single-use.
        lock = self._locks.setdefault((registration_id, principal), anyio.Lock())
        async with lock:
            token = self.authorized_clients.load(registration_id, principal)
            if token is not None and not token.is_expired(skew=self._skew):
                return token

            if token is not None and token.refresh_token:
                try:
                    return await self._refresh(registration_id, principal, token)
                except TokenError as exc:
                    _logger.info(
                        "refresh failed; re-authorization required",
                        extra={
                            "event": "token.refresh.reject",
                            "registration_id": registration_id,
                            "error": exc.error,
                        },
                    )
                    self.authorized_clients.remove(registration_id, principal)

        raise AuthorizationRequiredError(
            registration_id, self.authorization_url(registration_id, principal, return_to=return_to)
        )

    async def handle_callback(self, request: Request) -> Response:
        """Starlette endpoint for ``/authorize/oauth2/code/{registration_id}``."""
        params = request.query_params
        if "error" in params:
            return JSONResponse(
                {"error": params["error"], "detail": params.get("error_description")}, status_code=400
            )
        state, code = params.get("state"), params.get("code")
        if not state or not code:
            return JSONResponse({"error": "invalid_request", "detail": "missing code or state"}, status_code=400)

        pending = self._pending.get(state)
        try:
            await self.complete(state, code)
        except TokenError as exc:
            return JSONResponse({"error": exc.error or "invalid_grant", "detail": str(exc)}, status_code=400)
        if pending is not None and pending.return_to:
            return RedirectResponse(pending.return_to, status_code=302)
        return JSONResponse({"status": "authorized"})

    async def _refresh(self, registration_id: str, principal: str, token: AccessToken) -> AccessToken:
        registration = _registration_or_raise(self._store, registration_id, GrantType.AUTHORIZATION_CODE)
        data = _with_scope_and_resource(
            {"grant_type": GrantType.REFRESH_TOKEN.value, "refresh_token": str(token.refresh_token)},
            self._store,
            registration,
        )
        refreshed = AccessToken.from_response(await request_token(self._http, registration, data))
        if refreshed.refresh_token is None:
            # Servers may keep the refresh token unchanged without echoing it.
            refreshed = AccessToken(
                value=refreshed.value,
                token_type=refreshed.token_type,
                expires_at=refreshed.expires_at,
                scopes=refreshed.scopes,
                refresh_token=token.refresh_token,
            )
        self.authorized_clients.save(registration_id, principal, refreshed)
        return refreshed

    def _expire_pending(self) -> None:
        cutoff = time.monotonic() - self._state_ttl
        for state in [key for key, pending in self._pending.items() if pending.created_at < cutoff]:
            del self._pending[state]


__all__ = [
    "AuthorizationCodeFlow",
    "AuthorizedClientRepository",
    "ClientCredentialsTokenProvider",
    "InMemoryAuthorizedClientStore",
    "request_token",
]
