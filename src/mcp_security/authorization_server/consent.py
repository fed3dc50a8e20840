# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Consent decisions for authorization-code requests."""

from __future__ import annotations

from collections.abc import Iterable

from .token import OPENID_SCOPE


def requires_consent(
    require_consent: bool,
    requested_scopes: Iterable[str],
    consented_scopes: Iterable[str] | None = None,
) -> bool:
    """Decide whether the consent screen must be shown.

    MCP clients frequently request no scope at all; such requests, and
    ``openid``-only ones, go straight through. So does anything already
    covered by a previous consent.
    """
    if not require_consent:
        return False
    requested = set(requested_scopes)
    if not requested:
        return False
    if requested == {OPENID_SCOPE}:
        return False
    if consented_scopes is not None and requested <= set(consented_scopes):
        return False
    return True


__all__ = ["requires_consent"]
