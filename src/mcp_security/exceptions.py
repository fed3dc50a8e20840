# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Exception hierarchy for MCP security.

Errors fall into a few families:

- ``ConfigurationError``: invalid construction. Raised immediately, never at
  request time.
- ``CredentialParseError``: a credential was presented but could not be read.
- ``AuthenticationError``: a credential was read but rejected. HTTP layers
  answer these with ``401 Unauthorized``.
- ``DiscoveryError`` / ``RegistrationError`` / ``TokenError``: failures while
  talking to a remote resource or authorization server. Never retried here.
"""

from __future__ import annotations


class McpSecurityError(Exception):
    """Base class for all errors raised by mcp_security."""


class ConfigurationError(McpSecurityError, ValueError):
    """Raised when a value is constructed with invalid settings."""


class CredentialParseError(McpSecurityError, ValueError):
    """Raised when a presented credential is malformed."""


class AuthenticationError(McpSecurityError):
    """Raised when a credential is rejected."""


class ApiKeyAuthenticationError(AuthenticationError):
    """Raised when an API key is unknown or its secret does not match."""


class TokenValidationError(AuthenticationError):
    """Raised when a bearer token fails decoding or validation."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class InvalidAudienceError(TokenValidationError):
    """Raised when a token's ``aud`` claim does not name this resource."""


class DiscoveryError(McpSecurityError):
    """Raised when resource or authorization server metadata cannot be resolved."""


class RegistrationError(McpSecurityError):
    """Raised when dynamic client registration fails."""


class TokenError(McpSecurityError):
    """Raised when a token endpoint rejects a request or answers garbage."""

    def __init__(self, message: str, *, error: str | None = None, error_description: str | None = None) -> None:
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class AuthorizationRequiredError(McpSecurityError):
    """Raised when a user must complete an authorization-code redirect first."""

    def __init__(self, registration_id: str, authorization_url: str) -> None:
        super().__init__(f"authorization required for client registration [{registration_id}]")
        self.registration_id = registration_id
        self.authorization_url = authorization_url


__all__ = [
    "ApiKeyAuthenticationError",
    "AuthenticationError",
    "AuthorizationRequiredError",
    "ConfigurationError",
    "CredentialParseError",
    "DiscoveryError",
    "InvalidAudienceError",
    "McpSecurityError",
    "RegistrationError",
    "TokenError",
    "TokenValidationError",
]
