# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Canonical resource identifiers for protected MCP endpoints.

A ``ResourceIdentifier`` is a path (``/mcp``) plus a rule to render it as an
absolute URL from the *current* inbound request:

    {scheme}://{host}[:{port}]{root_path}{path}

The same rendering feeds the ``resource`` field of the metadata document,
the ``resource_metadata`` challenge parameter and audience validation, so
the three can never drift apart. The request is always passed in explicitly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from ..exceptions import ConfigurationError


if TYPE_CHECKING:
    from starlette.requests import HTTPConnection


WELL_KNOWN_PROTECTED_RESOURCE_PATH: Final[str] = "/.well-known/oauth-protected-resource"

_DEFAULT_PORTS: Final[dict[str, str]] = {"http": "80", "https": "443"}


def _first_value(header: str | None) -> str | None:
    if not header:
        return None
    value = header.split(",")[0].strip()
    return value or None


def _strip_default_port(scheme: str, host: str) -> str:
    if host.endswith("]") or ":" not in host:
        return host
    hostname, _, port = host.rpartition(":")
    if port == _DEFAULT_PORTS.get(scheme):
        return hostname
    return host


def request_origin(request: HTTPConnection) -> str:
    """``scheme://host[:port]`` of the inbound request, proxy headers honored."""
    scheme = (_first_value(request.headers.get("x-forwarded-proto")) or request.url.scheme).lower()
    host = (
        _first_value(request.headers.get("x-forwarded-host"))
        or request.headers.get("host")
        or request.url.netloc
    )
    return f"{scheme}://{_strip_default_port(scheme, host)}"


def request_root_path(request: HTTPConnection) -> str:
    """Mount prefix of the application (the servlet "context path")."""
    return str(request.scope.get("root_path") or "").rstrip("/")


def application_path(request: HTTPConnection) -> str:
    """Request path relative to the application's root path."""
    path = request.url.path
    root = request_root_path(request)
    if root and (path == root or path.startswith(root + "/")):
        return path[len(root) :] or "/"
    return path


class ResourceIdentifier:
    """Resolve the absolute URL identifying a protected resource.

    Example:
        >>> identifier = ResourceIdentifier("/mcp")
        >>> identifier.resource(request)  # request to https://host/ctx/...
        'https://host/ctx/mcp'
    """

    __slots__ = ("_path",)

    def __init__(self, path: str) -> None:
        if not isinstance(path, str) or not path.strip():
            raise ConfigurationError("path cannot be empty")
        if not path.startswith("/"):
            raise ConfigurationError("path must start with '/'")
        if any(char in path for char in "?#"):
            raise ConfigurationError("path must not contain a query or fragment")
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def resource(self, request: HTTPConnection) -> str:
        """Absolute resource identifier for the deployment serving ``request``."""
        return f"{request_origin(request)}{request_root_path(request)}{self._path}"

    def metadata_url(self, request: HTTPConnection) -> str:
        """Absolute URL of this resource's RFC 9728 metadata document."""
        return f"{request_origin(request)}{request_root_path(request)}{self.metadata_path}"

    @property
    def metadata_path(self) -> str:
        """Resource-aware well-known path, relative to the application root."""
        return f"{WELL_KNOWN_PROTECTED_RESOURCE_PATH}{self._path}"

    def metadata_paths(self) -> tuple[str, ...]:
        """All application-relative paths that serve the metadata document."""
        suffixed = f"{self._path.rstrip('/')}{WELL_KNOWN_PROTECTED_RESOURCE_PATH}"
        return (self.metadata_path, suffixed)

    def __repr__(self) -> str:
        return f"ResourceIdentifier({self._path!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ResourceIdentifier) and other._path == self._path

    def __hash__(self) -> int:
        return hash(self._path)


__all__ = [
    "WELL_KNOWN_PROTECTED_RESOURCE_PATH",
    "ResourceIdentifier",
    "application_path",
    "request_origin",
    "request_root_path",
]
