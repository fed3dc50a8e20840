# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Resource-server side: metadata publishing, challenges, token and API key checks."""

from __future__ import annotations

from .challenge import BearerChallengeBuilder, bearer_challenge, merge_resource_metadata
from .jwt import (
    AudienceValidationDecoder,
    AudienceValidator,
    JWTDecoder,
    JWTDecoderConfig,
    TokenDecoder,
    ValidationResult,
)
from .metadata import MetadataCustomizer, ProtectedResourceMetadataPublisher
from .oauth2 import McpOAuth2ResourceServer, McpServerOAuth2Config, parse_bearer_token
from .resource import WELL_KNOWN_PROTECTED_RESOURCE_PATH, ResourceIdentifier


__all__ = [
    "WELL_KNOWN_PROTECTED_RESOURCE_PATH",
    "AudienceValidationDecoder",
    "AudienceValidator",
    "BearerChallengeBuilder",
    "JWTDecoder",
    "JWTDecoderConfig",
    "McpOAuth2ResourceServer",
    "McpServerOAuth2Config",
    "MetadataCustomizer",
    "ProtectedResourceMetadataPublisher",
    "ResourceIdentifier",
    "TokenDecoder",
    "ValidationResult",
    "bearer_challenge",
    "merge_resource_metadata",
    "parse_bearer_token",
]
