# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Authenticate requests carrying an ``<id>.<secret>`` API key.

The key is read from the ``X-API-Key`` header unless an extractor such as
``bearer_api_key`` is configured.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING, Final

import anyio.to_thread

from ...exceptions import ApiKeyAuthenticationError, ConfigurationError, CredentialParseError
from ...principal import AuthenticatedPrincipal
from ...utils import get_logger
from .hashing import DelegatingSecretHasher, SecretHasher
from .models import ApiKey, ApiKeyEntity


if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from .repository import ApiKeyEntityRepository


DEFAULT_API_KEY_HEADER: Final[str] = "X-API-Key"

ApiKeyExtractor = Callable[["HTTPConnection"], ApiKey | None]


def bearer_api_key(request: HTTPConnection) -> ApiKey | None:
    """Read ``Authorization: Bearer <id>.<secret>``.

    Bearer values that are not API keys (JWTs have two dots) are left for
    another scheme to authenticate.
    """
    header = request.headers.get("authorization")
    if not header or not header.lower().startswith("bearer "):
        return None
    value = header[7:].strip()
    if value.count(".") != 1:
        return None
    return ApiKey.parse(value)


_logger = get_logger("mcp_security.apikey")


class ApiKeyAuthenticator:
    """Extract and verify API keys against a repository.

    Unknown ids and wrong secrets both raise ``ApiKeyAuthenticationError``.
    Unknown ids still pay for one hash verification so the two cases take
    comparable time.
    """

    def __init__(
        self,
        repository: ApiKeyEntityRepository,
        *,
        header_name: str = DEFAULT_API_KEY_HEADER,
        hasher: SecretHasher | None = None,
        extractor: ApiKeyExtractor | None = None,
    ) -> None:
        if not header_name or not header_name.strip():
            raise ConfigurationError("apiKeyHeaderName cannot be blank")
        self.repository = repository
        self.header_name = header_name
        self.hasher = hasher or DelegatingSecretHasher()
        self.extractor = extractor
        self._decoy: str | None = None

    def extract(self, request: HTTPConnection) -> ApiKey | None:
        """Read the API key; ``None`` means "no credential presented".

        A configured ``extractor`` replaces reading ``header_name``. It may
        raise ``CredentialParseError`` for a malformed credential.
        """
        if self.extractor is not None:
            return self.extractor(request)
        return self.extract_header(request)

    def extract_header(self, request: HTTPConnection) -> ApiKey | None:
        values = request.headers.getlist(self.header_name)
        if not values:
            return None
        if len(values) > 1:
            raise CredentialParseError(f"{self.header_name} must have a single value, found {len(values)}")
        value = values[0]
        if not value.strip():
            return None
        return ApiKey.parse(value)

    async def authenticate(self, api_key: ApiKey) -> ApiKeyEntity:
        entity = self.repository.find_by_key_id(api_key.id)
        if entity is None or entity.hashed_secret is None:
            await anyio.to_thread.run_sync(partial(self.hasher.matches, api_key.secret, self._decoy_hash()))
            _logger.info("unknown API key", extra={"event": "auth.apikey.reject", "key_id": api_key.id})
            raise ApiKeyAuthenticationError("Invalid API key")

        matched = await anyio.to_thread.run_sync(partial(self.hasher.matches, api_key.secret, entity.hashed_secret))
        if not matched:
            _logger.info("API key secret mismatch", extra={"event": "auth.apikey.reject", "key_id": api_key.id})
            raise ApiKeyAuthenticationError("API key does not match")
        return entity

    @staticmethod
    def principal_for(entity: ApiKeyEntity) -> AuthenticatedPrincipal:
        return AuthenticatedPrincipal(
            name=entity.id,
            authorities=entity.authorities,
            claims={"name": entity.name},
            scheme="api_key",
        )

    def _decoy_hash(self) -> str:
        if self._decoy is None:
            self._decoy = self.hasher.hash("decoy")
        return self._decoy


__all__ = ["DEFAULT_API_KEY_HEADER", "ApiKeyAuthenticator", "ApiKeyExtractor", "bearer_api_key"]
