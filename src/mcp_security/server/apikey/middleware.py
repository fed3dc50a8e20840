# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""ASGI middleware authenticating requests with API keys.

Requests without the header pass through (unless ``required``) so that a
later scheme, typically OAuth2 bearer tokens, can authenticate them. Any
presented but unusable key is answered with ``401`` immediately.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ...exceptions import ApiKeyAuthenticationError, ConfigurationError, CredentialParseError
from ...principal import SCOPE_KEY, is_authenticated
from ...utils import get_logger
from .authentication import DEFAULT_API_KEY_HEADER, ApiKeyAuthenticator, ApiKeyExtractor


if TYPE_CHECKING:
    from starlette.types import ASGIApp

    from .hashing import SecretHasher
    from .repository import ApiKeyEntityRepository


_logger = get_logger("mcp_security.apikey")

# Same detail for malformed keys, unknown ids and wrong secrets.
_INVALID_API_KEY_DETAIL = "invalid API key"


@dataclass(frozen=True, slots=True)
class ApiKeyConfig:
    """API key authentication settings.

        >>> config = ApiKeyConfig(repository=InMemoryApiKeyEntityRepository([entity]))
        >>> app = config.wrap_asgi(app)

    ``extractor`` replaces reading ``header_name``, e.g. ``bearer_api_key``
    for keys sent as ``Authorization: Bearer <id>.<secret>``.
    """

    repository: ApiKeyEntityRepository
    header_name: str = DEFAULT_API_KEY_HEADER
    hasher: SecretHasher | None = None
    required: bool = False
    extractor: ApiKeyExtractor | None = None

    def __post_init__(self) -> None:
        if self.repository is None:
            raise ConfigurationError("repository cannot be null")
        if not self.header_name or not self.header_name.strip():
            raise ConfigurationError("apiKeyHeaderName cannot be blank")

    def build_authenticator(self) -> ApiKeyAuthenticator:
        return ApiKeyAuthenticator(
            self.repository, header_name=self.header_name, hasher=self.hasher, extractor=self.extractor
        )

    def wrap_asgi(self, app: ASGIApp) -> ASGIApp:
        return ApiKeyAuthenticationMiddleware(app, self.build_authenticator(), required=self.required)


def _unauthorized(detail: str) -> Response:
    return JSONResponse({"error": "unauthorized", "detail": detail}, status_code=401)


class ApiKeyAuthenticationMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, authenticator: ApiKeyAuthenticator, *, required: bool = False) -> None:
        super().__init__(app)
        self.authenticator = authenticator
        self.required = required

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
        if is_authenticated(request.scope):
            return await call_next(request)

        try:
            api_key = self.authenticator.extract(request)
        except CredentialParseError as exc:
            _logger.info("malformed API key header", extra={"event": "auth.apikey.malformed", "reason": str(exc)})
            return _unauthorized(_INVALID_API_KEY_DETAIL)

        if api_key is None:
            if self.required:
                return _unauthorized(self._missing_detail())
            return await call_next(request)

        try:
            entity = await self.authenticator.authenticate(api_key)
        except ApiKeyAuthenticationError:
            return _unauthorized(_INVALID_API_KEY_DETAIL)

        request.scope[SCOPE_KEY] = self.authenticator.principal_for(entity)
        _logger.debug("API key accepted", extra={"event": "auth.apikey.accept", "key_id": entity.id})
        return await call_next(request)

    def _missing_detail(self) -> str:
        if self.authenticator.extractor is not None:
            return "missing API key"
        return f"missing {self.authenticator.header_name} header"


__all__ = ["ApiKeyAuthenticationMiddleware", "ApiKeyConfig"]
