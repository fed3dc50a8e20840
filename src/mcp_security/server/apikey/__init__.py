# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""API key authentication for MCP servers."""

from __future__ import annotations

from .authentication import DEFAULT_API_KEY_HEADER, ApiKeyAuthenticator, ApiKeyExtractor, bearer_api_key
from .hashing import DelegatingSecretHasher, Pbkdf2SecretHasher, ScryptSecretHasher, SecretHasher
from .middleware import ApiKeyAuthenticationMiddleware, ApiKeyConfig
from .models import ApiKey, ApiKeyEntity
from .repository import ApiKeyEntityRepository, InMemoryApiKeyEntityRepository


__all__ = [
    "DEFAULT_API_KEY_HEADER",
    "ApiKey",
    "ApiKeyAuthenticationMiddleware",
    "ApiKeyAuthenticator",
    "ApiKeyConfig",
    "ApiKeyEntity",
    "ApiKeyEntityRepository",
    "ApiKeyExtractor",
    "DelegatingSecretHasher",
    "InMemoryApiKeyEntityRepository",
    "Pbkdf2SecretHasher",
    "ScryptSecretHasher",
    "SecretHasher",
    "bearer_api_key",
]
