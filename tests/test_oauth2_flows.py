"""Tests for openapi_auth.oauth2_flows module."""

import base64
from unittest.mock import Mock

import pytest
import requests

from openapi_auth.config import AuthenticationConfig
from openapi_auth.exceptions import ConfigurationMissingError, OAuth2Error, TokenFetchError
from openapi_auth.oauth2_flows import (
    ClientCredentialsFlow,
    TokenResponse,
    build_token_request_body,
    encode_basic_credentials,
    encode_pair,
    resolve_token_url,
)


def make_response(status_code=200, json_data=None, json_error=False):
    response = Mock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = json_data
    return response


class TestTokenResponse:
    """Tests for TokenResponse dataclass."""

    def test_from_response(self):
        token = TokenResponse.from_response(
            {"access_token": "abc", "token_type": "bearer", "expires_in": 3600}
        )

        assert token.access_token == "abc"
        assert token.token_type == "bearer"
        assert token.expires_in == 3600

    def test_from_response_string_expiry(self):
        assert TokenResponse.from_response({"access_token": "abc", "expires_in": "60"}).expires_in == 60

    def test_from_response_without_expiry(self):
        token = TokenResponse.from_response({"access_token": "abc"})

        assert token.expires_in is None
        assert token.token_type == "Bearer"

    def test_from_response_missing_token(self):
        with pytest.raises(OAuth2Error) as exc_info:
            TokenResponse.from_response({"token_type": "Bearer"})

        assert exc_info.value.error == "invalid_response"

    def test_from_response_invalid_expiry(self):
        with pytest.raises(TokenFetchError):
            TokenResponse.from_response({"access_token": "abc", "expires_in": "soon"})

    def test_immutable(self):
        token = TokenResponse(access_token="abc")

        with pytest.raises(AttributeError):
            token.access_token = "other"


class TestEncoding:
    """Tests for body and credential encoding helpers."""

    def test_encode_pair(self):
        assert encode_pair("key", "a b&c=d") == "key=a+b%26c%3Dd"

    def test_encode_basic_credentials_is_urlsafe(self):
        encoded = encode_basic_credentials("client", "s3cr3t?>")

        assert encoded == base64.urlsafe_b64encode(b"client:s3cr3t?>").decode()
        assert "+" not in encoded and "/" not in encoded

    def test_body_grant_type_only(self):
        assert build_token_request_body("client_credentials") == "grant_type=client_credentials"

    def test_body_with_user_credentials(self):
        body = build_token_request_body("password", "user name", "p@ss")

        assert body == "grant_type=password&username=user+name&password=p%40ss"

    def test_body_skips_empty_user_credentials(self):
        assert build_token_request_body("client_credentials", "", "") == "grant_type=client_credentials"

    def test_body_requires_grant_type(self):
        with pytest.raises(ConfigurationMissingError):
            build_token_request_body("")


class TestResolveTokenUrl:
    """Tests for resolve_token_url."""

    def test_absolute_endpoint(self):
        url = resolve_token_url("https://auth.example.com/token", "https://api.example.com/v1")

        assert url == "https://auth.example.com/token"

    def test_relative_endpoint_replaces_path(self):
        url = resolve_token_url("/oauth/token", "https://api.example.com/v1?x=1")

        assert url == "https://api.example.com/oauth/token"

    def test_relative_endpoint_without_slash(self):
        assert resolve_token_url("oauth/token", "http://localhost:8080") == "http://localhost:8080/oauth/token"

    def test_missing_endpoint(self):
        with pytest.raises(ConfigurationMissingError):
            resolve_token_url(None, "https://api.example.com")

    def test_relative_endpoint_without_base(self):
        with pytest.raises(ConfigurationMissingError):
            resolve_token_url("/oauth/token", None)


class TestClientCredentialsFlow:
    """Tests for ClientCredentialsFlow."""

    @pytest.fixture
    def session(self):
        session = Mock()
        session.post.return_value = make_response(
            json_data={"access_token": "token123", "token_type": "Bearer", "expires_in": 3600}
        )
        return session

    @pytest.fixture
    def flow(self, session):
        return ClientCredentialsFlow(
            token_endpoint="/oauth/token",
            client_id="client123",
            client_secret="secret123",
            grant_type="client_credentials",
            base_uri="https://api.example.com",
            session=session,
            timeout=5,
        )

    def test_get_flow_type(self, flow):
        assert flow.get_flow_type() == "client_credentials"

    def test_authenticate_success(self, flow, session):
        result = flow.authenticate()

        assert result.access_token == "token123"
        assert result.expires_in == 3600

        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.example.com/oauth/token"
        assert kwargs["data"] == "grant_type=client_credentials"
        assert kwargs["timeout"] == 5
        expected = base64.urlsafe_b64encode(b"client123:secret123").decode()
        assert kwargs["headers"]["Authorization"] == f"Basic {expected}"
        assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"

    def test_from_config_builds_password_body(self, session):
        config = AuthenticationConfig(
            token_endpoint="https://auth.example.com/token",
            client_id="client",
            client_secret="secret",
            grant_type="password",
            username="user",
            password="pass",
        )

        ClientCredentialsFlow.from_config(config, session=session).authenticate()

        kwargs = session.post.call_args[1]
        assert kwargs["data"] == "grant_type=password&username=user&password=pass"
        assert kwargs["timeout"] == 30

    def test_missing_grant_type(self, session):
        flow = ClientCredentialsFlow("https://auth.example.com/token", "client", "secret", None, session=session)

        with pytest.raises(ConfigurationMissingError):
            flow.authenticate()

        session.post.assert_not_called()

    def test_missing_client_id(self, session):
        flow = ClientCredentialsFlow(
            "https://auth.example.com/token", None, "secret", "client_credentials", session=session
        )

        with pytest.raises(ConfigurationMissingError):
            flow.authenticate()

    def test_error_response(self, flow, session):
        session.post.return_value = make_response(
            status_code=400,
            json_data={"error": "invalid_client", "error_description": "Client authentication failed"},
        )

        with pytest.raises(OAuth2Error) as exc_info:
            flow.authenticate()

        assert exc_info.value.error == "invalid_client"
        assert exc_info.value.status_code == 400
        assert "Client authentication failed" in str(exc_info.value)

    def test_error_without_json(self, flow, session):
        session.post.return_value = make_response(status_code=503, json_error=True)

        with pytest.raises(OAuth2Error) as exc_info:
            flow.authenticate()

        assert exc_info.value.error == "http_error"
        assert exc_info.value.status_code == 503

    def test_non_json_success(self, flow, session):
        session.post.return_value = make_response(json_error=True)

        with pytest.raises(OAuth2Error) as exc_info:
            flow.authenticate()

        assert exc_info.value.error == "invalid_response"

    def test_transport_error_wrapped(self, flow, session):
        session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TokenFetchError) as exc_info:
            flow.authenticate()

        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)
