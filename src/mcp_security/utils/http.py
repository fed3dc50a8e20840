# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""httpx client helpers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx


@asynccontextmanager
async def client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` untouched, or a private client closed on exit."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient() as owned:
        yield owned


__all__ = ["client_scope"]
