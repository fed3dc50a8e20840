# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""httpx auth handlers that pick a grant per outgoing request.

``HybridOAuth2Auth`` looks only at the ``TransportContext`` carried by the
request itself. With a user principal attached, it uses that user's
authorization-code token; without one, it falls back to a client_credentials
token issued to the synthetic service principal.

    >>> auth = HybridOAuth2Auth(
    ...     client_credentials=ClientCredentialsTokenProvider(store, http),
    ...     authorization_code=AuthorizationCodeFlow(store, http),
    ...     service_registration_id="weather-service",
    ...     user_registration_id="weather-user",
    ... )
    >>> async with httpx.AsyncClient(auth=auth) as mcp:
    ...     request = mcp.build_request("POST", url, json=payload)
    ...     with_transport_context(request, TransportContext(principal=user, request=inbound))
    ...     response = await mcp.send(request)

The context is a plain value on ``request.extensions``, so it survives task
switches and deferred sends unchanged.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import httpx
from starlette.responses import RedirectResponse

from ...principal import SERVICE_PRINCIPAL_NAME, AuthenticatedPrincipal
from ...utils import get_logger


if TYPE_CHECKING:
    from starlette.requests import Request

    from ...exceptions import AuthorizationRequiredError
    from .models import AccessToken
    from .tokens import AuthorizationCodeFlow, ClientCredentialsTokenProvider


TRANSPORT_CONTEXT_KEY: Final[str] = "mcp_security.transport_context"

_logger = get_logger("mcp_security.hybrid")


@dataclass(frozen=True, slots=True)
class TransportContext:
    """The user (if any) on whose behalf an outgoing call is made.

    Args:
        principal: The user principal, or its name.
        request: The inbound request being served, used as the return
            address when the user must first authorize.
    """

    principal: AuthenticatedPrincipal | str | None = None
    request: Request | None = None

    @property
    def principal_name(self) -> str | None:
        if isinstance(self.principal, AuthenticatedPrincipal):
            return self.principal.name
        return self.principal or None

    @property
    def has_user(self) -> bool:
        return self.principal_name is not None


def with_transport_context(request: httpx.Request, context: TransportContext) -> httpx.Request:
    request.extensions[TRANSPORT_CONTEXT_KEY] = context
    return request


def get_transport_context(request: httpx.Request) -> TransportContext | None:
    context = request.extensions.get(TRANSPORT_CONTEXT_KEY)
    return context if isinstance(context, TransportContext) else None


def authorization_redirect(error: AuthorizationRequiredError) -> RedirectResponse:
    """Send the user agent to the authorization server."""
    return RedirectResponse(error.authorization_url, status_code=302)


class _AsyncOnlyAuth(httpx.Auth):
    requires_response_body = False

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError(f"{type(self).__name__} requires httpx.AsyncClient")


class ClientCredentialsOAuth2Auth(_AsyncOnlyAuth):
    """Bearer auth from a client_credentials registration.

    A ``401`` from the server drops the cached token and retries once.
    """

    def __init__(self, provider: ClientCredentialsTokenProvider, registration_id: str) -> None:
        self._provider = provider
        self._registration_id = registration_id

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        token = await self._provider.get_token(self._registration_id)
        request.headers["Authorization"] = f"Bearer {token.value}"
        response = yield request

        if response.status_code == 401:
            self._provider.invalidate(self._registration_id)
            token = await self._provider.get_token(self._registration_id)
            request.headers["Authorization"] = f"Bearer {token.value}"
            yield request


class AuthorizationCodeOAuth2Auth(_AsyncOnlyAuth):
    """Bearer auth on behalf of the user in the request's ``TransportContext``.

    Requests without a user are sent unauthenticated. A user without a usable
    token raises ``AuthorizationRequiredError``.
    """

    def __init__(
        self,
        flow: AuthorizationCodeFlow,
        registration_id: str,
        *,
        default_context: TransportContext | None = None,
    ) -> None:
        self._flow = flow
        self._registration_id = registration_id
        self._default_context = default_context or TransportContext()

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        context = get_transport_context(request) or self._default_context
        principal = context.principal_name
        if principal is None:
            _logger.debug(
                "no user on request; sending without credentials",
                extra={"event": "client.auth.anonymous", "registration_id": self._registration_id},
            )
            yield request
            return

        return_to = str(context.request.url) if context.request is not None else None
        token = await self._flow.authorize(self._registration_id, principal, return_to=return_to)
        request.headers["Authorization"] = f"Bearer {token.value}"
        yield request


class HybridOAuth2Auth(_AsyncOnlyAuth):
    """Choose between user and service credentials per request.

    Args:
        client_credentials: Token source for service calls.
        authorization_code: Token source for user calls.
        service_registration_id: Registration used without a user.
        user_registration_id: Registration used with a user.
        default_context: Context applied to requests that carry none.

    Raises:
        AuthorizationRequiredError: A user call has no usable token yet. The
            error's ``authorization_url`` returns to the inbound request.
    """

    def __init__(
        self,
        *,
        client_credentials: ClientCredentialsTokenProvider,
        authorization_code: AuthorizationCodeFlow,
        service_registration_id: str,
        user_registration_id: str,
        default_context: TransportContext | None = None,
    ) -> None:
        self._client_credentials = client_credentials
        self._authorization_code = authorization_code
        self.service_registration_id = service_registration_id
        self.user_registration_id = user_registration_id
        self._default_context = default_context or TransportContext()

    async def resolve_token(self, context: TransportContext | None) -> tuple[str, AccessToken]:
        """Return ``(principal name, token)`` for ``context``."""
        context = context or self._default_context
        principal = context.principal_name
        if principal is None:
            _logger.debug(
                "using service credentials",
                extra={"event": "client.auth.service", "registration_id": self.service_registration_id},
            )
            token = await self._client_credentials.get_token(self.service_registration_id)
            return SERVICE_PRINCIPAL_NAME, token

        _logger.debug(
            "using user credentials",
            extra={"event": "client.auth.user", "registration_id": self.user_registration_id},
        )
        return_to = str(context.request.url) if context.request is not None else None
        token = await self._authorization_code.authorize(self.user_registration_id, principal, return_to=return_to)
        return principal, token

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        _, token = await self.resolve_token(get_transport_context(request))
        request.headers["Authorization"] = f"Bearer {token.value}"
        yield request


__all__ = [
    "TRANSPORT_CONTEXT_KEY",
    "AuthorizationCodeOAuth2Auth",
    "ClientCredentialsOAuth2Auth",
    "HybridOAuth2Auth",
    "TransportContext",
    "authorization_redirect",
    "get_transport_context",
    "with_transport_context",
]
