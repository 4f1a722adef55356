"""Error taxonomy for request authentication."""

from __future__ import annotations

from typing import Optional


class AuthenticationError(Exception):
    """Base class for all authentication errors."""


class ConfigurationError(AuthenticationError):
    """Configuration file or values could not be read or understood."""


class ConfigurationMissingError(AuthenticationError):
    """A credential value required by a security scheme is not configured."""


class MissingApiKeyError(ConfigurationMissingError):
    """The named API key table has no entry for the requested key."""

    def __init__(self, key_name: str):
        self.key_name = key_name
        super().__init__(f"Missing API key {key_name} in api_keys configuration")


class UnknownSchemeError(ConfigurationMissingError):
    """A security requirement references a scheme that is not declared."""

    def __init__(self, scheme_name: str):
        self.scheme_name = scheme_name
        super().__init__(f"Security scheme {scheme_name} is not declared")


class UnsupportedSchemeError(AuthenticationError):
    """Scheme type or API key location is not supported."""


class TokenFetchError(AuthenticationError):
    """Access token could not be obtained from the token endpoint."""


class OAuth2Error(TokenFetchError):
    """OAuth 2.0 error response."""

    def __init__(
        self,
        error: str,
        error_description: Optional[str] = None,
        error_uri: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.error = error
        self.error_description = error_description
        self.error_uri = error_uri
        self.status_code = status_code
        message = error
        if error_description:
            message = f"{error}: {error_description}"
        super().__init__(message)


class InvalidArgumentError(AuthenticationError, ValueError):
    """Malformed input to requirement resolution."""
