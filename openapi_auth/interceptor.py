"""Outbound request authentication for requests sessions.

``RequestAuthenticator`` is a ``requests`` auth hook: every prepared request
passing through it is matched to its declared operation, the first
satisfiable security requirement is applied, and a response hook watches
for 401 replies to drop the cached OAuth2 token.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlsplit

import requests
from requests.auth import AuthBase

from openapi_auth.config import AuthenticationConfig, AuthenticationType
from openapi_auth.document import OpenApiSecurity
from openapi_auth.header_builder import CredentialApplier, Satisfied
from openapi_auth.oauth2_flows import ClientCredentialsFlow
from openapi_auth.requirements import RequirementResolver
from openapi_auth.token_cache import TokenCache

logger = logging.getLogger(__name__)

# Request header carrying the declared operation path, e.g. "/pets/{petId}"
OPERATION_PATH_HEADER = "X-OpenAPI-Path"

UNAUTHORIZED = 401


class RequestAuthenticator(AuthBase):
    """Decorates outbound requests with the credentials their operation requires.

    One instance may be shared by any number of threads; only the token
    cache holds mutable state.
    """

    def __init__(
        self,
        config: AuthenticationConfig,
        security: OpenApiSecurity,
        session: Optional[requests.Session] = None,
        token_cache: Optional[TokenCache] = None,
    ):
        self._config = config
        self._requirements = security.path_requirements
        self._resolver = RequirementResolver(security.path_requirements)
        self._base_path = urlsplit(config.base_uri).path.rstrip("/") if config.base_uri else ""
        if token_cache is None:
            flow = ClientCredentialsFlow.from_config(config, session=session)
            token_cache = TokenCache(flow.authenticate)
        self._token_cache = token_cache
        self._applier = CredentialApplier(config, security.schemes, token_cache)

        if config.renewal_interval_minutes > 0 and config.grant_type and config.token_endpoint:
            self._token_cache.start_renewal(config.renewal_interval_minutes)

    @property
    def token_cache(self) -> TokenCache:
        return self._token_cache

    def decorate(
        self,
        request: requests.PreparedRequest,
        path: str,
        method: Optional[str] = None,
    ) -> requests.PreparedRequest:
        """Add credentials for the operation ``method path`` to ``request``.

        Alternatives are tried in document order and the first satisfiable
        one is applied. When none is, the configured default authentication
        type is tried; failing that the request is left untouched.

        Raises:
            InvalidArgumentError: If path or method is empty
            TokenFetchError: If an OAuth2 token is needed and cannot be fetched
        """
        method = method or request.method
        requirements = self._resolver.resolve(path, method)

        for index, requirement in enumerate(requirements):
            outcome = self._applier.try_requirement(requirement)
            if isinstance(outcome, Satisfied):
                logger.debug(
                    "Applying alternative %d %s for %s %s", index, sorted(requirement), method, path
                )
                return outcome.result.apply_to(request)
            logger.debug(
                "Skipping alternative %d %s for %s %s: %s",
                index,
                sorted(requirement),
                method,
                path,
                outcome.reason,
            )

        if self._config.authentication_type is not AuthenticationType.NONE:
            outcome = self._applier.try_default()
            if isinstance(outcome, Satisfied):
                logger.debug(
                    "Applying default %s authentication for %s %s",
                    self._config.authentication_type.value,
                    method,
                    path,
                )
                return outcome.result.apply_to(request)
            logger.warning(
                "Default %s authentication unavailable for %s %s: %s",
                self._config.authentication_type.value,
                method,
                path,
                outcome.reason,
            )
        elif requirements:
            logger.warning("No security requirement satisfiable for %s %s, sending unauthenticated", method, path)
        return request

    def operation_path(self, request: requests.PreparedRequest) -> str:
        """Return the declared operation path for ``request``.

        The ``X-OpenAPI-Path`` header wins. Otherwise the URL path, less the
        base URI path, is matched against the declared path templates; an
        undeclared path is returned as is and resolves to the document default.
        """
        declared = request.headers.get(OPERATION_PATH_HEADER)
        if declared:
            return declared
        path = urlsplit(request.url).path
        if self._base_path and (path == self._base_path or path.startswith(self._base_path + "/")):
            path = path[len(self._base_path) :] or "/"
        return self._requirements.match_path(path, request.method) or path

    def observe_status(self, status_code: int) -> None:
        """Invalidate the cached token when the server answered 401."""
        if status_code == UNAUTHORIZED:
            self._token_cache.invalidate()

    def handle_response(self, response: requests.Response, *args: Any, **kwargs: Any) -> requests.Response:
        self.observe_status(response.status_code)
        return response

    def __call__(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        self.decorate(request, self.operation_path(request))
        request.register_hook("response", self.handle_response)
        return request

    def close(self) -> None:
        self._token_cache.shutdown()

    def __enter__(self) -> "RequestAuthenticator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def create_session(
    config: AuthenticationConfig,
    security: OpenApiSecurity,
    session: Optional[requests.Session] = None,
) -> requests.Session:
    """Return a session whose requests are authenticated per ``security``.

    Token endpoint calls go through a separate plain session so they are
    never decorated themselves.
    """
    session = session or requests.Session()
    token_session = requests.Session()
    session.auth = RequestAuthenticator(config, security, session=token_session)
    return session
