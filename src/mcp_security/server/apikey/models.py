# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""API key credentials and their stored form."""

from __future__ import annotations

from collections.abc import Iterable
import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ...exceptions import ConfigurationError, CredentialParseError


if TYPE_CHECKING:
    from .hashing import SecretHasher


API_KEY_FORMAT_ERROR = "API key must be in the format <id>.<secret>"


@dataclass(frozen=True, slots=True)
class ApiKey:
    """A presented ``<id>.<secret>`` credential."""

    id: str
    secret: str

    @classmethod
    def parse(cls, value: str) -> ApiKey:
        """Parse a header value; exactly one ``.`` separates id and secret."""
        if not isinstance(value, str) or not value.strip():
            raise CredentialParseError(API_KEY_FORMAT_ERROR)
        parts = value.strip().split(".")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise CredentialParseError(API_KEY_FORMAT_ERROR)
        return cls(id=parts[0], secret=parts[1])

    def __str__(self) -> str:
        return f"{self.id}.{self.secret}"

    def __repr__(self) -> str:
        return f"ApiKey(id={self.id!r}, secret='***')"


@dataclass(frozen=True, slots=True)
class ApiKeyEntity:
    """Stored API key: the secret is only ever kept hashed.

    Instances are immutable, so handing one out is as safe as handing out a
    copy. ``erase_credentials`` returns a copy without the hash.
    """

    id: str
    hashed_secret: str | None
    name: str
    authorities: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        for label, value in (("id", self.id), ("name", self.name)):
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{label} must not be blank")
        object.__setattr__(self, "authorities", frozenset(self.authorities))

    @classmethod
    def create(
        cls,
        id: str,
        secret: str,
        name: str,
        authorities: Iterable[str] = (),
        *,
        hasher: SecretHasher | None = None,
    ) -> ApiKeyEntity:
        """Hash ``secret`` once and build the stored entity."""
        if not isinstance(id, str) or not id.strip():
            raise ConfigurationError("id must not be blank")
        if not isinstance(secret, str) or not secret.strip():
            raise ConfigurationError("secret must not be blank")
        if "." in id or "." in secret:
            raise ConfigurationError("id and secret must not contain '.'")
        if hasher is None:
            from .hashing import DelegatingSecretHasher

            hasher = DelegatingSecretHasher()
        return cls(id=id, hashed_secret=hasher.hash(secret), name=name, authorities=frozenset(authorities))

    def erase_credentials(self) -> ApiKeyEntity:
        return dataclasses.replace(self, hashed_secret=None)

    def __repr__(self) -> str:
        return f"ApiKeyEntity(id={self.id!r}, name={self.name!r}, authorities={sorted(self.authorities)!r})"


__all__ = ["API_KEY_FORMAT_ERROR", "ApiKey", "ApiKeyEntity"]
