# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""URL helpers shared by the server and client halves."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit


def is_valid_url(value: Any) -> bool:
    """True when ``value`` is an absolute http(s) URL with a host."""
    if not isinstance(value, str) or not value.strip() or any(ch.isspace() for ch in value):
        return False
    try:
        parsed = urlsplit(value)
        # Accessing .port validates the port component.
        parsed.port  # noqa: B018
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


__all__ = ["is_valid_url"]
