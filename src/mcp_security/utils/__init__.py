# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Utility helpers for mcp_security."""

from __future__ import annotations

from .http import client_scope
from .logger import get_logger, setup_logger
from .urls import is_valid_url


__all__ = ["client_scope", "get_logger", "is_valid_url", "setup_logger"]
