# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Authorization-server helpers: audience-bound tokens and consent."""

from __future__ import annotations

from .consent import requires_consent
from .token import (
    AccessTokenIssuer,
    AuthorizationCodeGrant,
    ClientCredentialsGrant,
    Grant,
    JwtEncodingContext,
    RefreshTokenGrant,
    ResourceAudienceTokenCustomizer,
    TokenCustomizer,
    TokenType,
)


__all__ = [
    "AccessTokenIssuer",
    "AuthorizationCodeGrant",
    "ClientCredentialsGrant",
    "Grant",
    "JwtEncodingContext",
    "RefreshTokenGrant",
    "ResourceAudienceTokenCustomizer",
    "TokenCustomizer",
    "TokenType",
    "requires_consent",
]
