# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Logging helpers for mcp_security.

Security components log through ``get_logger`` and attach a machine-readable
``event`` name via ``extra``. Plain-text output is the default; set
``MCP_SECURITY_LOG_JSON=1`` for one JSON object per line.

Tokens, client secrets and API key secrets are never passed to a logger.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
import os
from typing import Any, Final


DEFAULT_LOGGER_NAME: Final[str] = "mcp_security"
ENV_LOG_LEVEL: Final[str] = "MCP_SECURITY_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "MCP_SECURITY_LOG_JSON"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], str]

# Attributes every LogRecord carries; anything else came in through ``extra``.
_BUILTIN_RECORD_KEYS: frozenset[str] = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "asctime", "taskName"}
)


class McpSecurityHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """StreamHandler attached by ``setup_logger``."""


class StructuredJSONFormatter(logging.Formatter):
    """Render records as JSON, folding ``extra`` fields into ``context``."""

    def __init__(self, serializer: JsonSerializer, *, datefmt: str | None = None) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        extra = {key: value for key, value in record.__dict__.items() if key not in _BUILTIN_RECORD_KEYS}
        if extra:
            payload["context"] = extra
        return self._serializer(payload)


def _default_json_serializer(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _has_handler(root: logging.Logger) -> bool:
    return any(isinstance(handler, McpSecurityHandler) for handler in root.handlers)


def _read_bool_env(key: str) -> bool:
    value = os.getenv(key)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Attach the mcp_security handler to the ``mcp_security`` logger.

    Args:
        level: Log level. Falls back to ``MCP_SECURITY_LOG_LEVEL`` then INFO.
        use_json: Emit JSON lines. Defaults to ``MCP_SECURITY_LOG_JSON``.
        json_serializer: Replacement for ``json.dumps`` (e.g. orjson).
        fmt: Format string for plain-text output.
        datefmt: Date format for both output styles.
        force: Replace a previously attached handler.
    """
    logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    if _has_handler(logger) and not force:
        return

    for handler in list(logger.handlers):
        if isinstance(handler, McpSecurityHandler):
            logger.removeHandler(handler)
            handler.close()

    resolved_level = _resolve_level(level)
    logger.setLevel(resolved_level)

    resolved_use_json = use_json if use_json is not None else _read_bool_env(ENV_LOG_JSON)

    handler = McpSecurityHandler()
    handler.setLevel(resolved_level)
    formatter: logging.Formatter
    if resolved_use_json:
        formatter = StructuredJSONFormatter(json_serializer or _default_json_serializer, datefmt=datefmt)
    else:
        formatter = logging.Formatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger below the ``mcp_security`` namespace."""
    if not _has_handler(logging.getLogger(DEFAULT_LOGGER_NAME)):
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "McpSecurityHandler",
    "StructuredJSONFormatter",
    "get_logger",
    "setup_logger",
]
