"""OAuth 2.0 token endpoint client.

Only the client-credentials style exchange is implemented: the client
authenticates with HTTP Basic and posts a form body built once from the
configured grant type (plus username/password when configured).
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import quote_plus, urlsplit, urlunsplit

import requests

from openapi_auth.exceptions import ConfigurationMissingError, OAuth2Error, TokenFetchError

logger = logging.getLogger(__name__)

# Default timeout for HTTP requests
DEFAULT_TIMEOUT = 30

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def encode_pair(key: str, value: str) -> str:
    """Render ``key=value`` with the value form-urlencoded."""
    return f"{key}={quote_plus(value)}"


def encode_basic_credentials(user: str, secret: str) -> str:
    """URL-safe base64 of ``user:secret``, as sent after "Basic "."""
    return base64.urlsafe_b64encode(f"{user}:{secret}".encode("utf-8")).decode("ascii")


def build_token_request_body(
    grant_type: str,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """Build the form body posted to the token endpoint."""
    if not grant_type:
        raise ConfigurationMissingError("grant_type is not set")
    params = {"grant_type": grant_type}
    if username:
        params["username"] = username
    if password:
        params["password"] = password
    return "&".join(encode_pair(key, value) for key, value in params.items())


def resolve_token_url(token_endpoint: Optional[str], base_uri: Optional[str]) -> str:
    """Return the absolute token URL.

    An absolute ``token_endpoint`` is used as is; otherwise it replaces the
    path of ``base_uri``.
    """
    if not token_endpoint:
        raise ConfigurationMissingError(
            "Cannot use OAuth2 authentication, token_endpoint configuration property is not set"
        )
    parts = urlsplit(token_endpoint)
    if parts.scheme and parts.netloc:
        return token_endpoint
    if not base_uri:
        raise ConfigurationMissingError(
            f"Cannot resolve relative token endpoint {token_endpoint}, base_uri is not set"
        )
    base = urlsplit(base_uri)
    path = token_endpoint if token_endpoint.startswith("/") else "/" + token_endpoint
    return urlunsplit((base.scheme, base.netloc, path, "", ""))


@dataclass(frozen=True)
class TokenResponse:
    """OAuth 2.0 token response.

    Attributes:
        access_token: The access token string
        token_type: Token type, usually "Bearer"
        expires_in: Token lifetime in seconds, None when the server omits it
        raw_response: Full response data from the token endpoint
    """

    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    raw_response: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_response(cls, response_data: Dict[str, Any]) -> "TokenResponse":
        """Create TokenResponse from OAuth token endpoint response.

        Raises:
            TokenFetchError: If the response lacks an access token or has a
                malformed expires_in
        """
        access_token = response_data.get("access_token")
        if not access_token:
            raise OAuth2Error("invalid_response", "Token endpoint response has no access_token")
        expires_in = response_data.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError):
                raise OAuth2Error("invalid_response", f"Invalid expires_in: {expires_in!r}") from None
        return cls(
            access_token=access_token,
            token_type=response_data.get("token_type", "Bearer"),
            expires_in=expires_in,
            raw_response=response_data,
        )


class ClientCredentialsFlow:
    """Fetches access tokens from a fixed token endpoint.

    The request body is built once at construction; a missing grant type only
    fails when a token is actually requested.
    """

    def __init__(
        self,
        token_endpoint: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
        grant_type: Optional[str],
        base_uri: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._token_endpoint = token_endpoint
        self._base_uri = base_uri
        self._client_id = client_id
        self._client_secret = client_secret
        self._body = build_token_request_body(grant_type, username, password) if grant_type else None
        self._session = session or requests.Session()
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: Any, session: Optional[requests.Session] = None) -> "ClientCredentialsFlow":
        return cls(
            token_endpoint=config.token_endpoint,
            client_id=config.client_id,
            client_secret=config.client_secret,
            grant_type=config.grant_type,
            base_uri=config.base_uri,
            username=config.username,
            password=config.password,
            session=session,
            timeout=config.token_timeout,
        )

    @property
    def token_url(self) -> str:
        return resolve_token_url(self._token_endpoint, self._base_uri)

    def get_flow_type(self) -> str:
        return "client_credentials"

    def authenticate(self) -> TokenResponse:
        """Request a new access token.

        Raises:
            ConfigurationMissingError: If grant type, endpoint or client id is not configured
            OAuth2Error: If the token endpoint answers with an error
            TokenFetchError: If the HTTP request fails or the body is not JSON
        """
        if self._body is None:
            raise ConfigurationMissingError(
                "Cannot use OAuth2 authentication, grant_type configuration property is not set"
            )
        if self._client_id is None:
            raise ConfigurationMissingError(
                "Cannot use OAuth2 authentication, client_id configuration property is not set"
            )
        token_url = self.token_url
        headers = {
            "Content-Type": FORM_CONTENT_TYPE,
            "Authorization": "Basic "
            + encode_basic_credentials(self._client_id, self._client_secret or ""),
        }

        logger.info("Requesting access token from %s", token_url)
        try:
            response = self._session.post(
                token_url,
                data=self._body,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise TokenFetchError(f"Token request to {token_url} failed: {exc}") from exc

        return self._handle_token_response(response)

    def _handle_token_response(self, response: requests.Response) -> TokenResponse:
        """Handle token endpoint response."""
        try:
            data = response.json()
        except ValueError:
            if not 200 <= response.status_code < 300:
                raise OAuth2Error(
                    "http_error",
                    f"Token endpoint returned status {response.status_code}",
                    status_code=response.status_code,
                ) from None
            raise OAuth2Error("invalid_response", "Token endpoint returned non-JSON response") from None

        if not isinstance(data, dict):
            raise OAuth2Error("invalid_response", "Token endpoint returned non-object JSON")

        if not 200 <= response.status_code < 300:
            raise OAuth2Error(
                data.get("error", "unknown_error"),
                data.get("error_description"),
                data.get("error_uri"),
                status_code=response.status_code,
            )

        return TokenResponse.from_response(data)
