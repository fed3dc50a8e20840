# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Authenticated principals and where they live during a request.

Server middlewares store the principal in the ASGI scope under
``SCOPE_KEY``; handlers read it back with ``get_principal(request)``. The
scope travels with the request, including into streaming responses, so no
thread-local or context-variable lookup is involved.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final


if TYPE_CHECKING:
    from starlette.requests import HTTPConnection


SCOPE_KEY: Final[str] = "mcp_security.auth"

SERVICE_PRINCIPAL_NAME: Final[str] = "mcp-client-service"
"""Principal name used for service-to-service (client_credentials) calls."""


@dataclass(frozen=True, slots=True)
class AuthenticatedPrincipal:
    """Who made the request, and what they were granted."""

    name: str
    authorities: frozenset[str] = frozenset()
    claims: Mapping[str, Any] = field(default_factory=dict)
    scheme: str = "bearer"

    def __post_init__(self) -> None:
        object.__setattr__(self, "authorities", frozenset(self.authorities))
        object.__setattr__(self, "claims", MappingProxyType(dict(self.claims)))

    @property
    def scopes(self) -> list[str]:
        """Scopes from a token's ``scope`` / ``scp`` claim, if any."""
        raw = self.claims.get("scope", self.claims.get("scp"))
        if isinstance(raw, str):
            return raw.split()
        if isinstance(raw, (list, tuple)):
            return [str(item) for item in raw]
        return []


def get_principal(connection: HTTPConnection) -> AuthenticatedPrincipal | None:
    """Return the principal authenticated for this request, if any."""
    principal = connection.scope.get(SCOPE_KEY)
    return principal if isinstance(principal, AuthenticatedPrincipal) else None


def is_authenticated(scope: Mapping[str, Any]) -> bool:
    return isinstance(scope.get(SCOPE_KEY), AuthenticatedPrincipal)


__all__ = [
    "SCOPE_KEY",
    "SERVICE_PRINCIPAL_NAME",
    "AuthenticatedPrincipal",
    "get_principal",
    "is_authenticated",
]
