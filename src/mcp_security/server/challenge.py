# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""``WWW-Authenticate`` challenges pointing clients at resource metadata.

A baseline bearer challenge (``Bearer`` or ``Bearer error="..."``) is merged
with a ``resource_metadata`` parameter computed from the inbound request:

    Bearer                              -> Bearer resource_metadata=<url>
    Bearer resource_metadata="old", ... -> Bearer resource_metadata=<url>, ...
    Bearer error="invalid_token"        -> Bearer error="invalid_token", resource_metadata=<url>
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from starlette.responses import JSONResponse

from .resource import ResourceIdentifier


if TYPE_CHECKING:
    from starlette.requests import HTTPConnection


_RESOURCE_METADATA_PARAM: Final[re.Pattern[str]] = re.compile(r'(?<![\w-])resource_metadata=(?:"[^"]*"|[^\s,]+)')


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def bearer_challenge(*, error: str | None = None, error_description: str | None = None) -> str:
    """Baseline RFC 6750 challenge, before any resource metadata is added."""
    params: list[str] = []
    if error:
        params.append(f'error="{_quote(error)}"')
    if error_description:
        params.append(f'error_description="{_quote(error_description)}"')
    if not params:
        return "Bearer"
    return "Bearer " + ", ".join(params)


def merge_resource_metadata(header: str, metadata_url: str) -> str:
    """Add ``resource_metadata=<metadata_url>`` to ``header`` exactly once."""
    param = f"resource_metadata={metadata_url}"
    stripped = header.strip()
    if stripped.lower() == "bearer":
        return f"{stripped} {param}"
    if _RESOURCE_METADATA_PARAM.search(stripped):
        return _RESOURCE_METADATA_PARAM.sub(lambda _: param, stripped, count=1)
    return f"{stripped}, {param}"


class BearerChallengeBuilder:
    """Build challenges for one protected resource."""

    def __init__(self, resource: ResourceIdentifier) -> None:
        self.resource = resource

    def build(
        self,
        request: HTTPConnection,
        existing_header: str | None = None,
        *,
        error: str | None = None,
        error_description: str | None = None,
    ) -> str:
        header = existing_header or bearer_challenge(error=error, error_description=error_description)
        return merge_resource_metadata(header, self.resource.metadata_url(request))

    def challenge_response(
        self,
        request: HTTPConnection,
        reason: str | None = None,
        *,
        error: str | None = None,
        error_description: str | None = None,
    ) -> JSONResponse:
        """Return 401 Unauthorized carrying the merged challenge."""
        challenge = self.build(request, error=error, error_description=error_description)
        payload = {"error": "unauthorized", "detail": reason}
        return JSONResponse(payload, status_code=401, headers={"WWW-Authenticate": challenge})


__all__ = ["BearerChallengeBuilder", "bearer_challenge", "merge_resource_metadata"]
