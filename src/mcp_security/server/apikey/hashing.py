# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""One-way hashing of API key secrets.

Encoded hashes carry their scheme as a ``{id}`` prefix so that stored
entities remain verifiable when the default scheme changes:

    {scrypt}16384$8$1$<salt>$<hash>
    {pbkdf2}600000$<salt>$<hash>

Verification goes through the KDF's own ``verify``, which compares in
constant time.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
import os
import re
from typing import Final, Protocol

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ...exceptions import ConfigurationError
from ...utils import get_logger


_logger = get_logger("mcp_security.apikey")

_SALT_BYTES: Final[int] = 16
_KEY_BYTES: Final[int] = 32
_PREFIX: Final[re.Pattern[str]] = re.compile(r"^\{([^{}]+)\}(.*)$", re.DOTALL)


class SecretHasher(Protocol):
    def hash(self, secret: str) -> str:
        """Return an encoded one-way hash of ``secret``."""

    def matches(self, secret: str, encoded: str) -> bool:
        """True when ``secret`` hashes to ``encoded``."""


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


class ScryptSecretHasher:
    """scrypt with a random 16-byte salt per secret."""

    def __init__(self, *, n: int = 2**14, r: int = 8, p: int = 1) -> None:
        if n < 2 or n & (n - 1):
            raise ConfigurationError("n must be a power of 2 greater than 1")
        self.n, self.r, self.p = n, r, p

    def hash(self, secret: str) -> str:
        salt = os.urandom(_SALT_BYTES)
        derived = Scrypt(salt=salt, length=_KEY_BYTES, n=self.n, r=self.r, p=self.p).derive(secret.encode())
        return f"{self.n}${self.r}${self.p}${_b64encode(salt)}${_b64encode(derived)}"

    def matches(self, secret: str, encoded: str) -> bool:
        try:
            n, r, p, salt, expected = encoded.split("$")
            kdf = Scrypt(salt=_b64decode(salt), length=_KEY_BYTES, n=int(n), r=int(r), p=int(p))
            kdf.verify(secret.encode(), _b64decode(expected))
        except (ValueError, InvalidKey):
            return False
        return True


class Pbkdf2SecretHasher:
    """PBKDF2-HMAC-SHA256 with a random 16-byte salt per secret."""

    def __init__(self, *, iterations: int = 600_000) -> None:
        if iterations < 1:
            raise ConfigurationError("iterations must be >= 1")
        self.iterations = iterations

    def hash(self, secret: str) -> str:
        salt = os.urandom(_SALT_BYTES)
        derived = self._kdf(salt, self.iterations).derive(secret.encode())
        return f"{self.iterations}${_b64encode(salt)}${_b64encode(derived)}"

    def matches(self, secret: str, encoded: str) -> bool:
        try:
            iterations, salt, expected = encoded.split("$")
            self._kdf(_b64decode(salt), int(iterations)).verify(secret.encode(), _b64decode(expected))
        except (ValueError, InvalidKey):
            return False
        return True

    @staticmethod
    def _kdf(salt: bytes, iterations: int) -> PBKDF2HMAC:
        return PBKDF2HMAC(algorithm=hashes.SHA256(), length=_KEY_BYTES, salt=salt, iterations=iterations)


class DelegatingSecretHasher:
    """Hash with the default scheme, verify with whichever scheme is encoded.

    Example:
        >>> hasher = DelegatingSecretHasher()
        >>> encoded = hasher.hash("s3cret")
        >>> encoded.startswith("{scrypt}")
        True
        >>> hasher.matches("s3cret", encoded)
        True
    """

    def __init__(self, hashers: Mapping[str, SecretHasher] | None = None, *, default: str = "scrypt") -> None:
        self._hashers: dict[str, SecretHasher] = (
            dict(hashers) if hashers is not None else {"scrypt": ScryptSecretHasher(), "pbkdf2": Pbkdf2SecretHasher()}
        )
        if default not in self._hashers:
            raise ConfigurationError(f"default hashing scheme [{default}] is not registered")
        self.default = default

    def hash(self, secret: str) -> str:
        return f"{{{self.default}}}{self._hashers[self.default].hash(secret)}"

    def matches(self, secret: str, encoded: str) -> bool:
        match = _PREFIX.match(encoded or "")
        if match is None:
            _logger.warning("stored secret has no hashing scheme prefix", extra={"event": "auth.apikey.bad_hash"})
            return False
        scheme, rest = match.groups()
        hasher = self._hashers.get(scheme)
        if hasher is None:
            _logger.warning(
                "stored secret uses an unknown hashing scheme",
                extra={"event": "auth.apikey.bad_hash", "scheme": scheme},
            )
            return False
        return hasher.matches(secret, rest)


__all__ = ["DelegatingSecretHasher", "Pbkdf2SecretHasher", "ScryptSecretHasher", "SecretHasher"]
