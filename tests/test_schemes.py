"""Tests for openapi_auth.schemes module."""

import pytest

from openapi_auth.exceptions import UnknownSchemeError
from openapi_auth.schemes import (
    APIKeyScheme,
    HTTPScheme,
    OAuth2Scheme,
    OpenIDConnectScheme,
    SchemeRegistry,
    parse_security_schemes,
)


class TestAPIKeyScheme:
    """Tests for API Key scheme parsing."""

    def test_parse_apikey_in_header(self):
        api_doc = {
            "components": {
                "securitySchemes": {
                    "ApiKeyAuth": {
                        "type": "apiKey",
                        "in": "header",
                        "name": "X-API-Key",
                        "description": "API key in header",
                    }
                }
            }
        }

        schemes = parse_security_schemes(api_doc)

        scheme = schemes["ApiKeyAuth"]
        assert isinstance(scheme, APIKeyScheme)
        assert scheme.location == "header"
        assert scheme.parameter_name == "X-API-Key"
        assert scheme.description == "API key in header"
        assert scheme.scheme_type == "apiKey"

    def test_parse_apikey_without_name(self):
        """A missing name is kept as None so the configured key name applies."""
        api_doc = {"components": {"securitySchemes": {"Key": {"type": "apiKey", "in": "query"}}}}

        scheme = parse_security_schemes(api_doc)["Key"]

        assert scheme.location == "query"
        assert scheme.parameter_name is None

    def test_location_is_lowercased(self):
        api_doc = {"components": {"securitySchemes": {"Key": {"type": "apiKey", "in": "Cookie", "name": "k"}}}}

        assert parse_security_schemes(api_doc)["Key"].location == "cookie"


class TestHTTPScheme:
    """Tests for HTTP scheme parsing."""

    def test_parse_bearer_keeps_case(self):
        api_doc = {
            "components": {
                "securitySchemes": {
                    "BearerAuth": {"type": "http", "scheme": "Bearer", "bearerFormat": "JWT"}
                }
            }
        }

        scheme = parse_security_schemes(api_doc)["BearerAuth"]

        assert isinstance(scheme, HTTPScheme)
        assert scheme.scheme == "Bearer"
        assert scheme.bearer_format == "JWT"

    def test_parse_http_without_scheme(self):
        api_doc = {"components": {"securitySchemes": {"Http": {"type": "http"}}}}

        assert parse_security_schemes(api_doc)["Http"].scheme is None

    def test_swagger2_basic(self):
        api_doc = {"swagger": "2.0", "securityDefinitions": {"Basic": {"type": "basic"}}}

        scheme = parse_security_schemes(api_doc)["Basic"]

        assert isinstance(scheme, HTTPScheme)
        assert scheme.scheme == "basic"


class TestOAuth2Scheme:
    """Tests for OAuth2 scheme parsing."""

    def test_parse_v3_flows(self):
        api_doc = {
            "components": {
                "securitySchemes": {
                    "OAuth2": {
                        "type": "oauth2",
                        "flows": {
                            "clientCredentials": {
                                "tokenUrl": "https://auth.example.com/token",
                                "scopes": {"read:pets": "read your pets"},
                            },
                            "implicit": {
                                "authorizationUrl": "https://auth.example.com/dialog",
                                "scopes": {},
                            },
                        },
                    }
                }
            }
        }

        scheme = parse_security_schemes(api_doc)["OAuth2"]

        assert isinstance(scheme, OAuth2Scheme)
        assert set(scheme.available_flow_types) == {"clientCredentials", "implicit"}
        assert scheme.flows["clientCredentials"].token_url == "https://auth.example.com/token"
        assert scheme.flows["clientCredentials"].scopes == {"read:pets": "read your pets"}

    def test_parse_v2_flow_name_normalized(self):
        api_doc = {
            "swagger": "2.0",
            "securityDefinitions": {
                "OAuth2": {
                    "type": "oauth2",
                    "flow": "application",
                    "tokenUrl": "https://auth.example.com/token",
                }
            },
        }

        scheme = parse_security_schemes(api_doc)["OAuth2"]

        assert scheme.available_flow_types == ["clientCredentials"]


class TestParseSecuritySchemes:
    """Tests for whole-document parsing."""

    def test_openid_connect(self):
        api_doc = {
            "components": {
                "securitySchemes": {
                    "OIDC": {"type": "openIdConnect", "openIdConnectUrl": "https://example.com/.well-known"}
                }
            }
        }

        scheme = parse_security_schemes(api_doc)["OIDC"]

        assert isinstance(scheme, OpenIDConnectScheme)
        assert scheme.scheme_type == "openIdConnect"

    def test_unknown_type_skipped(self, caplog):
        api_doc = {
            "components": {
                "securitySchemes": {
                    "Weird": {"type": "mutualTLS"},
                    "Key": {"type": "apiKey", "in": "header", "name": "X-Key"},
                }
            }
        }

        schemes = parse_security_schemes(api_doc)

        assert list(schemes) == ["Key"]
        assert "Unknown security scheme type" in caplog.text

    def test_no_schemes(self):
        assert parse_security_schemes({"openapi": "3.0.0"}) == {}


class TestSchemeRegistry:
    """Tests for SchemeRegistry."""

    @pytest.fixture
    def registry(self):
        return SchemeRegistry(
            {"apiKeyAuth": APIKeyScheme(name="apiKeyAuth", location="header", parameter_name="X-Api-Key")}
        )

    def test_lookup(self, registry):
        assert registry.lookup("apiKeyAuth").parameter_name == "X-Api-Key"

    def test_lookup_unknown(self, registry):
        with pytest.raises(UnknownSchemeError) as exc_info:
            registry.lookup("missing")

        assert exc_info.value.scheme_name == "missing"

    def test_mapping_interface(self, registry):
        assert "apiKeyAuth" in registry
        assert len(registry) == 1
        assert registry.get("missing") is None

    def test_read_only(self, registry):
        with pytest.raises(TypeError):
            registry._schemes["other"] = None

    def test_source_mutation_not_visible(self):
        source = {"a": HTTPScheme(name="a", scheme="basic")}
        registry = SchemeRegistry(source)
        source["b"] = HTTPScheme(name="b", scheme="bearer")

        assert "b" not in registry

    def test_from_document(self):
        api_doc = {"components": {"securitySchemes": {"Basic": {"type": "http", "scheme": "basic"}}}}

        registry = SchemeRegistry.from_document(api_doc)

        assert isinstance(registry.lookup("Basic"), HTTPScheme)
