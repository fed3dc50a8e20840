# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

from __future__ import annotations

import base64
import time
from typing import Any

from cryptography.hazmat.primitives.asymmetric import rsa
import jwt
import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _b64url_uint(value: int) -> str:
    byte_length = (value.bit_length() + 7) // 8
    data_bytes = value.to_bytes(byte_length, "big")
    return base64.urlsafe_b64encode(data_bytes).decode("utf-8").rstrip("=")


def build_rsa_jwk(public_key: rsa.RSAPublicKey, kid: str) -> dict[str, str]:
    numbers = public_key.public_numbers()
    return {
        "kty": "RSA",
        "use": "sig",
        "kid": kid,
        "alg": "RS256",
        "n": _b64url_uint(numbers.n),
        "e": _b64url_uint(numbers.e),
    }


class SigningKey:
    """RSA key pair that mints test tokens."""

    def __init__(self, kid: str = "test-key-1") -> None:
        self.kid = kid
        self.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self.public_key = self.private_key.public_key()

    @property
    def jwks(self) -> dict[str, Any]:
        return {"keys": [build_rsa_jwk(self.public_key, self.kid)]}

    def mint(self, **claims: Any) -> str:
        now = int(time.time())
        payload = {"iss": "https://as.example.com", "sub": "alice", "iat": now, "exp": now + 300, **claims}
        return jwt.encode(payload, self.private_key, algorithm="RS256", headers={"kid": self.kid})


@pytest.fixture(scope="session")
def signing_key() -> SigningKey:
    return SigningKey()
