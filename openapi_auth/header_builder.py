"""Credential application for security requirements.

Builds the headers, query parameters and cookies a security requirement
calls for from the static configuration, then stamps them onto a
``requests.PreparedRequest``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union
from urllib.parse import urlsplit, urlunsplit

import requests

from openapi_auth.config import AuthenticationConfig, AuthenticationType
from openapi_auth.exceptions import (
    ConfigurationMissingError,
    MissingApiKeyError,
    UnsupportedSchemeError,
)
from openapi_auth.oauth2_flows import encode_basic_credentials, encode_pair
from openapi_auth.requirements import SecurityRequirement
from openapi_auth.schemes import (
    APIKeyScheme,
    HTTPScheme,
    OAuth2Scheme,
    SchemeRegistry,
    SecurityScheme,
)
from openapi_auth.token_cache import TokenCache

logger = logging.getLogger(__name__)

BEARER = "BEARER"

# Errors that mark a single alternative as unsatisfiable
UNSATISFIABLE_ERRORS = (ConfigurationMissingError, UnsupportedSchemeError)


@dataclass
class AuthenticationResult:
    """Credential material to add to a request.

    Attributes:
        headers: HTTP headers to set, in order
        query_params: Encoded ``name=value`` pairs to append to the query
        cookies: Encoded ``name=value`` pairs to add to the Cookie header
    """

    headers: List[Tuple[str, str]] = field(default_factory=list)
    query_params: List[str] = field(default_factory=list)
    cookies: List[str] = field(default_factory=list)

    def merge(self, other: "AuthenticationResult") -> "AuthenticationResult":
        """Merge another result into this one."""
        return AuthenticationResult(
            headers=self.headers + other.headers,
            query_params=self.query_params + other.query_params,
            cookies=self.cookies + other.cookies,
        )

    def is_empty(self) -> bool:
        return not (self.headers or self.query_params or self.cookies)

    def apply_to(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        """Stamp this result onto ``request`` in place and return it."""
        for name, value in self.headers:
            request.headers[name] = value
        if self.cookies:
            existing = request.headers.get("Cookie")
            cookies = "; ".join(self.cookies)
            request.headers["Cookie"] = f"{existing}; {cookies}" if existing else cookies
        if self.query_params:
            request.url = append_query(request.url, "&".join(self.query_params))
        return request


@dataclass(frozen=True)
class Satisfied:
    """An alternative whose every scheme produced credentials."""

    result: AuthenticationResult


@dataclass(frozen=True)
class Unsatisfiable:
    """An alternative that cannot be applied with the local credentials."""

    reason: str


AlternativeOutcome = Union[Satisfied, Unsatisfiable]


def append_query(url: str, query: str) -> str:
    """Append an encoded query fragment, keeping any existing query first."""
    parts = urlsplit(url)
    combined = f"{parts.query}&{query}" if parts.query else query
    return urlunsplit((parts.scheme, parts.netloc, parts.path, combined, parts.fragment))


def capitalize(value: str) -> str:
    """First letter upper case, the rest lower case."""
    return value[:1].upper() + value[1:].lower()


def build_http_auth_header(scheme: str, username: Optional[str], password: Optional[str]) -> str:
    """Build an ``Authorization`` value of the form ``<Scheme> base64url(user:pass)``.

    Raises:
        ConfigurationMissingError: If username or password is not configured
    """
    if username is None:
        raise ConfigurationMissingError(
            f"Cannot use {scheme} authentication, username configuration property is not set"
        )
    if password is None:
        raise ConfigurationMissingError(
            f"Cannot use {scheme} authentication, password configuration property is not set"
        )
    return f"{capitalize(scheme)} {encode_basic_credentials(username, password)}"


def build_bearer_auth_header(token: str) -> str:
    return f"Bearer {token}"


class CredentialApplier:
    """Turns security requirements into request credentials.

    One handler per scheme variant; OAuth2 always uses the token cache,
    whatever flows the scheme declares.
    """

    def __init__(
        self,
        config: AuthenticationConfig,
        schemes: SchemeRegistry,
        token_cache: Optional[TokenCache] = None,
    ):
        self._config = config
        self._schemes = schemes
        self._token_cache = token_cache

    def build_api_key_auth(self, scheme: APIKeyScheme) -> AuthenticationResult:
        """Build authentication for an API key scheme.

        Raises:
            ConfigurationMissingError: If no key name or value is configured
            MissingApiKeyError: If the named key table lacks the key
            UnsupportedSchemeError: If the key location is not header, query or cookie
        """
        name = scheme.parameter_name or self._config.api_key_name
        if name is None:
            raise ConfigurationMissingError(
                "Cannot use API Key authentication method, api_key_name configuration property is not set"
            )
        if self._config.api_keys:
            value = self._config.api_keys.get(name)
            if value is None:
                raise MissingApiKeyError(name)
        else:
            value = self._config.api_key_value
            if value is None:
                raise ConfigurationMissingError(
                    "Cannot use API Key authentication method, api_key_value configuration property is not set"
                )

        result = AuthenticationResult()
        location = (scheme.location or "").lower()
        if location == "header":
            result.headers.append((name, value))
        elif location == "cookie":
            result.cookies.append(encode_pair(name, value))
        elif location == "query":
            result.query_params.append(encode_pair(name, value))
        else:
            raise UnsupportedSchemeError(f"Unsupported security scheme `in` type: {scheme.location}")
        return result

    def build_http_auth(self, subscheme: Optional[str]) -> AuthenticationResult:
        """Build authentication for an HTTP scheme.

        Args:
            subscheme: Declared sub-scheme; the configured default when None
        """
        subscheme = subscheme or self._config.authentication_scheme
        if not subscheme:
            raise ConfigurationMissingError(
                "Cannot use HTTP authentication, authentication_scheme configuration property is not set"
            )
        if subscheme.upper() == BEARER:
            if self._config.bearer_token is None:
                raise ConfigurationMissingError(
                    "Cannot use Bearer authentication, bearer_token configuration property is not set"
                )
            value = build_bearer_auth_header(self._config.bearer_token)
        else:
            value = build_http_auth_header(subscheme, self._config.username, self._config.password)
        return AuthenticationResult(headers=[("Authorization", value)])

    def build_oauth2_auth(self) -> AuthenticationResult:
        """Build authentication with a client-credentials access token.

        Raises:
            ConfigurationMissingError: If OAuth2 is not configured
            TokenFetchError: If the token cannot be obtained
        """
        if self._token_cache is None:
            raise ConfigurationMissingError("Cannot use OAuth2 authentication, no token endpoint configured")
        token = self._token_cache.current_token()
        return AuthenticationResult(headers=[("Authorization", build_bearer_auth_header(token))])

    def build_auth_for_scheme(self, scheme: SecurityScheme) -> AuthenticationResult:
        if isinstance(scheme, APIKeyScheme):
            return self.build_api_key_auth(scheme)
        elif isinstance(scheme, HTTPScheme):
            return self.build_http_auth(scheme.scheme)
        elif isinstance(scheme, OAuth2Scheme):
            return self.build_oauth2_auth()
        raise UnsupportedSchemeError(f"Unsupported security scheme {scheme.scheme_type}")

    def build_default_auth(self) -> AuthenticationResult:
        """Build authentication for the configured fallback type."""
        auth_type = self._config.authentication_type
        if auth_type is AuthenticationType.API_KEY:
            return self.build_api_key_auth(APIKeyScheme(name="default", location="header"))
        elif auth_type is AuthenticationType.HTTP:
            return self.build_http_auth(None)
        elif auth_type is AuthenticationType.OAUTH:
            return self.build_oauth2_auth()
        return AuthenticationResult()

    def try_requirement(self, requirement: SecurityRequirement) -> AlternativeOutcome:
        """Build credentials for every scheme in one alternative.

        Missing configuration and unsupported schemes make the alternative
        unsatisfiable; token fetch failures propagate.
        """
        result = AuthenticationResult()
        try:
            for name in requirement:
                scheme = self._schemes.lookup(name)
                result = result.merge(self.build_auth_for_scheme(scheme))
        except UNSATISFIABLE_ERRORS as exc:
            return Unsatisfiable(str(exc))
        return Satisfied(result)

    def try_default(self) -> AlternativeOutcome:
        try:
            return Satisfied(self.build_default_auth())
        except UNSATISFIABLE_ERRORS as exc:
            return Unsatisfiable(str(exc))

    def apply(
        self, request: requests.PreparedRequest, requirement: SecurityRequirement
    ) -> requests.PreparedRequest:
        """Apply one requirement to ``request``, raising if it cannot be satisfied."""
        result = AuthenticationResult()
        for name in requirement:
            result = result.merge(self.build_auth_for_scheme(self._schemes.lookup(name)))
        return result.apply_to(request)

