# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""RFC 9728 protected resource metadata endpoint.

The publisher answers ``GET`` on either well-known form of the metadata path
(relative to the application's ``root_path``):

- ``/.well-known/oauth-protected-resource{resource_path}`` (resource-aware)
- ``{resource_path}/.well-known/oauth-protected-resource`` (suffixed)

The document starts as ``{"resource": <identifier>}`` and is handed through
an ordered list of customizers. Every other request passes through untouched.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..exceptions import ConfigurationError
from ..metadata import ProtectedResourceMetadata
from ..utils import get_logger
from .resource import ResourceIdentifier, application_path


if TYPE_CHECKING:
    from starlette.types import ASGIApp


MetadataCustomizer = Callable[[ProtectedResourceMetadata, Request], ProtectedResourceMetadata]
"""Receives the document built so far and returns the (new) document."""


_logger = get_logger("mcp_security.metadata")


class ProtectedResourceMetadataPublisher:
    """Serve the protected resource metadata document for one resource."""

    def __init__(
        self,
        resource: ResourceIdentifier,
        customizers: Sequence[MetadataCustomizer] = (),
        *,
        cache_ttl: int = 300,
    ) -> None:
        if cache_ttl < 0:
            raise ConfigurationError("cache_ttl must be >= 0")
        self.resource = resource
        self._customizers = tuple(customizers)
        self._cache_ttl = cache_ttl

    def matches(self, request: Request) -> bool:
        """True when ``request`` is a ``GET`` for this resource's metadata."""
        return request.method == "GET" and application_path(request) in self.resource.metadata_paths()

    def build_metadata(self, request: Request) -> ProtectedResourceMetadata:
        metadata = ProtectedResourceMetadata(resource=self.resource.resource(request))
        for customizer in self._customizers:
            metadata = customizer(metadata, request)
        return metadata

    async def endpoint(self, request: Request) -> Response:
        metadata = self.build_metadata(request)
        _logger.debug(
            "serving protected resource metadata",
            extra={"event": "metadata.prm.serve", "resource": metadata.resource},
        )
        headers = {"Cache-Control": f"public, max-age={self._cache_ttl}"}
        return JSONResponse(metadata.to_dict(), headers=headers)

    def starlette_routes(self) -> list[Route]:
        """Routes for applications that prefer explicit routing over middleware."""
        return [Route(path, self.endpoint, methods=["GET"]) for path in self.resource.metadata_paths()]

    def wrap_asgi(self, app: ASGIApp) -> ASGIApp:
        publisher = self

        class _Middleware(BaseHTTPMiddleware):
            async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
                if publisher.matches(request):
                    return await publisher.endpoint(request)
                return await call_next(request)

        return _Middleware(app)


__all__ = ["MetadataCustomizer", "ProtectedResourceMetadataPublisher"]
