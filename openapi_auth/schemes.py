"""Security scheme dataclasses, OpenAPI parser and scheme registry.

Parses OpenAPI 3.x and Swagger 2.x security schemes into typed, immutable
objects and exposes them through a read-only lookup table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from openapi_auth.exceptions import UnknownSchemeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class APIKeyScheme:
    """API Key authentication scheme.

    Attributes:
        name: Security scheme name from OpenAPI spec
        location: Where the key is sent - "header", "query", or "cookie"
        parameter_name: The name of the header, query param, or cookie.
            None when the spec omits it; the configured key name is used then.
        description: Optional description from the spec
    """

    name: str
    location: str  # "header", "query", or "cookie"
    parameter_name: Optional[str] = None
    description: Optional[str] = None

    @property
    def scheme_type(self) -> str:
        return "apiKey"


@dataclass(frozen=True)
class HTTPScheme:
    """HTTP authentication scheme (Basic, Bearer, Digest, etc.).

    Attributes:
        name: Security scheme name from OpenAPI spec
        scheme: The HTTP auth scheme as written in the spec, or None
        bearer_format: Format hint for bearer tokens (e.g., "JWT")
        description: Optional description from the spec
    """

    name: str
    scheme: Optional[str] = None
    bearer_format: Optional[str] = None
    description: Optional[str] = None

    @property
    def scheme_type(self) -> str:
        return "http"


@dataclass(frozen=True)
class OAuth2Flow:
    """OAuth 2.0 flow metadata, carried through but not acted upon.

    Attributes:
        flow_type: One of "clientCredentials", "authorizationCode", "implicit", "password"
        token_url: URL to obtain tokens
        authorization_url: URL for user authorization (auth code, implicit)
        refresh_url: URL for token refresh
        scopes: Available scopes with descriptions
    """

    flow_type: str
    token_url: Optional[str] = None
    authorization_url: Optional[str] = None
    refresh_url: Optional[str] = None
    scopes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class OAuth2Scheme:
    """OAuth 2.0 authentication scheme."""

    name: str
    flows: Mapping[str, OAuth2Flow] = field(default_factory=dict)
    description: Optional[str] = None

    @property
    def scheme_type(self) -> str:
        return "oauth2"

    @property
    def available_flow_types(self) -> list[str]:
        return list(self.flows.keys())


@dataclass(frozen=True)
class OpenIDConnectScheme:
    """OpenID Connect authentication scheme.

    Parsed so that requirements naming it resolve, but no credentials can be
    applied for it.
    """

    name: str
    openid_connect_url: str
    description: Optional[str] = None

    @property
    def scheme_type(self) -> str:
        return "openIdConnect"


SecurityScheme = Union[APIKeyScheme, HTTPScheme, OAuth2Scheme, OpenIDConnectScheme]


class SchemeRegistry(Mapping[str, SecurityScheme]):
    """Read-only lookup table from scheme name to scheme definition."""

    def __init__(self, schemes: Optional[Mapping[str, SecurityScheme]] = None):
        self._schemes = MappingProxyType(dict(schemes or {}))

    def __getitem__(self, name: str) -> SecurityScheme:
        return self._schemes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemes)

    def __len__(self) -> int:
        return len(self._schemes)

    def __repr__(self) -> str:
        return f"SchemeRegistry({sorted(self._schemes)!r})"

    def lookup(self, name: str) -> SecurityScheme:
        """Return the scheme declared under ``name``.

        Raises:
            UnknownSchemeError: If no scheme with that name is declared
        """
        try:
            return self._schemes[name]
        except KeyError:
            raise UnknownSchemeError(name) from None

    @classmethod
    def from_document(cls, api_documentation: Dict[str, Any]) -> "SchemeRegistry":
        return cls(parse_security_schemes(api_documentation))


def _parse_oauth2_flow(flow_type: str, flow_data: Dict[str, Any]) -> OAuth2Flow:
    """Parse a single OAuth2 flow from OpenAPI spec."""
    return OAuth2Flow(
        flow_type=flow_type,
        token_url=flow_data.get("tokenUrl"),
        authorization_url=flow_data.get("authorizationUrl"),
        refresh_url=flow_data.get("refreshUrl"),
        scopes=dict(flow_data.get("scopes") or {}),
    )


def _parse_oauth2_flows_v3(flows_data: Dict[str, Any]) -> Dict[str, OAuth2Flow]:
    result = {}
    for flow_type in ("clientCredentials", "authorizationCode", "implicit", "password"):
        if flow_type in flows_data:
            result[flow_type] = _parse_oauth2_flow(flow_type, flows_data[flow_type] or {})
    return result


def _parse_oauth2_flows_v2(scheme_data: Dict[str, Any]) -> Dict[str, OAuth2Flow]:
    """Parse OAuth2 flows from Swagger 2.x format.

    Swagger 2.x uses a 'flow' field instead of nested flow objects.
    """
    flow_type = scheme_data.get("flow", "")

    # Map Swagger 2.x flow names to OpenAPI 3.x names
    flow_type_map = {
        "application": "clientCredentials",
        "accessCode": "authorizationCode",
        "implicit": "implicit",
        "password": "password",
    }
    normalized_flow = flow_type_map.get(flow_type, flow_type)
    return {normalized_flow: _parse_oauth2_flow(normalized_flow, scheme_data)}


def _parse_security_scheme(
    name: str, scheme_data: Dict[str, Any], is_swagger_v2: bool = False
) -> Optional[SecurityScheme]:
    """Parse a single security scheme definition."""
    scheme_type = scheme_data.get("type", "")
    description = scheme_data.get("description")

    if scheme_type == "apiKey":
        return APIKeyScheme(
            name=name,
            location=str(scheme_data.get("in", "header")).lower(),
            parameter_name=scheme_data.get("name"),
            description=description,
        )

    elif scheme_type == "http":
        return HTTPScheme(
            name=name,
            scheme=scheme_data.get("scheme"),
            bearer_format=scheme_data.get("bearerFormat"),
            description=description,
        )

    elif scheme_type == "basic":
        # Swagger 2.x uses type: basic directly
        return HTTPScheme(name=name, scheme="basic", description=description)

    elif scheme_type == "oauth2":
        if is_swagger_v2:
            flows = _parse_oauth2_flows_v2(scheme_data)
        else:
            flows = _parse_oauth2_flows_v3(scheme_data.get("flows") or {})
        return OAuth2Scheme(name=name, flows=flows, description=description)

    elif scheme_type == "openIdConnect":
        return OpenIDConnectScheme(
            name=name,
            openid_connect_url=scheme_data.get("openIdConnectUrl", ""),
            description=description,
        )

    else:
        logger.warning("Unknown security scheme type: %s for scheme %s", scheme_type, name)
        return None


def parse_security_schemes(
    api_documentation: Dict[str, Any],
) -> Dict[str, SecurityScheme]:
    """Parse all security schemes from an OpenAPI/Swagger document.

    Supports both OpenAPI 3.x (components/securitySchemes) and
    Swagger 2.x (securityDefinitions) formats.

    Args:
        api_documentation: Parsed OpenAPI/Swagger document

    Returns:
        Dictionary mapping scheme names to SecurityScheme objects
    """
    result: Dict[str, SecurityScheme] = {}

    is_swagger_v2 = str(api_documentation.get("swagger", "")).startswith("2.")

    if is_swagger_v2:
        schemes = api_documentation.get("securityDefinitions") or {}
    else:
        components = api_documentation.get("components") or {}
        schemes = components.get("securitySchemes") or {}

    for name, scheme_data in schemes.items():
        if not isinstance(scheme_data, dict):
            logger.warning("Ignoring malformed security scheme %s", name)
            continue
        scheme = _parse_security_scheme(name, scheme_data, is_swagger_v2)
        if scheme:
            result[name] = scheme

    return result
