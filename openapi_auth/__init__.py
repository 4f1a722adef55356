"""Outbound request authentication driven by OpenAPI security declarations.

This package provides:
- Security scheme parsing and lookup
- Per-operation security requirement resolution
- Credential application for API key, HTTP and OAuth 2.0 schemes
- An expiration-aware OAuth 2.0 token cache invalidated on 401 replies
- A ``requests`` auth hook tying these together
"""

from openapi_auth.config import AuthenticationConfig, AuthenticationType, load_config
from openapi_auth.document import (
    OpenApiSecurity,
    load_openapi_document,
    load_openapi_security,
    parse_openapi_security,
)
from openapi_auth.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConfigurationMissingError,
    InvalidArgumentError,
    MissingApiKeyError,
    OAuth2Error,
    TokenFetchError,
    UnknownSchemeError,
    UnsupportedSchemeError,
)
from openapi_auth.header_builder import (
    AuthenticationResult,
    CredentialApplier,
    Satisfied,
    Unsatisfiable,
)
from openapi_auth.interceptor import OPERATION_PATH_HEADER, RequestAuthenticator, create_session
from openapi_auth.oauth2_flows import ClientCredentialsFlow, TokenResponse
from openapi_auth.requirements import (
    PathSecurityRequirements,
    RequirementResolver,
    parse_path_security_requirements,
)
from openapi_auth.schemes import (
    APIKeyScheme,
    HTTPScheme,
    OAuth2Flow,
    OAuth2Scheme,
    OpenIDConnectScheme,
    SchemeRegistry,
    parse_security_schemes,
)
from openapi_auth.token_cache import CachedToken, TokenCache

__all__ = [
    # Config
    "AuthenticationConfig",
    "AuthenticationType",
    "load_config",
    # Document
    "OpenApiSecurity",
    "load_openapi_document",
    "load_openapi_security",
    "parse_openapi_security",
    # Errors
    "AuthenticationError",
    "ConfigurationError",
    "ConfigurationMissingError",
    "InvalidArgumentError",
    "MissingApiKeyError",
    "OAuth2Error",
    "TokenFetchError",
    "UnknownSchemeError",
    "UnsupportedSchemeError",
    # Schemes
    "APIKeyScheme",
    "HTTPScheme",
    "OAuth2Flow",
    "OAuth2Scheme",
    "OpenIDConnectScheme",
    "SchemeRegistry",
    "parse_security_schemes",
    # Requirements
    "PathSecurityRequirements",
    "RequirementResolver",
    "parse_path_security_requirements",
    # Tokens
    "ClientCredentialsFlow",
    "TokenResponse",
    "CachedToken",
    "TokenCache",
    # Credential application
    "AuthenticationResult",
    "CredentialApplier",
    "Satisfied",
    "Unsatisfiable",
    # Interceptor
    "OPERATION_PATH_HEADER",
    "RequestAuthenticator",
    "create_session",
]
