"""Static credential configuration.

Loaded once from a YAML file, optionally overridden by environment
variables, and read-only afterwards.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

from openapi_auth.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE = os.environ.get("OPENAPI_AUTH_CONFIG", "config/auth.yaml")

# Environment variables that override secrets from the config file
ENV_OVERRIDES = {
    "OPENAPI_AUTH_USERNAME": "username",
    "OPENAPI_AUTH_PASSWORD": "password",
    "OPENAPI_AUTH_BEARER_TOKEN": "bearer_token",
    "OPENAPI_AUTH_API_KEY_VALUE": "api_key_value",
    "OPENAPI_AUTH_CLIENT_ID": "client_id",
    "OPENAPI_AUTH_CLIENT_SECRET": "client_secret",
}

# Fields read as text; YAML may hand back ints or bools for them
STRING_FIELDS = (
    "base_uri",
    "authentication_scheme",
    "username",
    "password",
    "bearer_token",
    "api_key_name",
    "api_key_value",
    "client_id",
    "client_secret",
    "grant_type",
    "token_endpoint",
)


class AuthenticationType(Enum):
    """Authentication used when no declared requirement can be satisfied."""

    NONE = "none"
    API_KEY = "api_key"
    HTTP = "http"
    OAUTH = "oauth"

    @classmethod
    def parse(cls, value: Any) -> "AuthenticationType":
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.NONE
        normalized = str(value).strip().lower().replace("-", "_")
        aliases = {"apikey": "api_key", "oauth2": "oauth"}
        normalized = aliases.get(normalized, normalized)
        for member in cls:
            if member.value == normalized:
                return member
        raise ConfigurationError(f"Unknown authentication type: {value}")


def _parse_api_keys(value: Any) -> Dict[str, str]:
    """Accept a mapping or a "name:value,name:value" string."""
    if not value:
        return {}
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    if isinstance(value, str):
        result = {}
        for entry in value.split(","):
            entry = entry.strip()
            if not entry:
                continue
            name, sep, key = entry.partition(":")
            if not sep or not name.strip():
                raise ConfigurationError(f"Invalid api_keys entry: {entry!r}, expected name:value")
            result[name.strip()] = key.strip()
        return result
    raise ConfigurationError(f"api_keys must be a mapping or a string, got {type(value).__name__}")


@dataclass(frozen=True)
class AuthenticationConfig:
    """Credential configuration for outbound requests.

    Attributes:
        base_uri: Base URI of the target service; relative token endpoints resolve against it
        authentication_type: Fallback authentication when no requirement is satisfiable
        authentication_scheme: HTTP sub-scheme used when a scheme declares none
        username: Username for HTTP auth and password grant bodies
        password: Password for HTTP auth and password grant bodies
        bearer_token: Static token for HTTP bearer schemes
        api_key_name: Key name used when an API key scheme declares none
        api_key_value: Single API key value
        api_keys: Named API key table, takes precedence over api_key_value
        client_id: OAuth 2.0 client identifier
        client_secret: OAuth 2.0 client secret
        grant_type: OAuth 2.0 grant type sent to the token endpoint
        token_endpoint: Absolute token URL, or a path relative to base_uri
        token_timeout: Token request timeout in seconds
        renewal_interval_minutes: Background token renewal interval (0 = disabled)
    """

    base_uri: Optional[str] = None
    authentication_type: AuthenticationType = AuthenticationType.NONE
    authentication_scheme: str = "basic"
    username: Optional[str] = None
    password: Optional[str] = None
    bearer_token: Optional[str] = None
    api_key_name: Optional[str] = None
    api_key_value: Optional[str] = None
    api_keys: Mapping[str, str] = field(default_factory=dict)
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    grant_type: Optional[str] = None
    token_endpoint: Optional[str] = None
    token_timeout: float = 30
    renewal_interval_minutes: float = 0

    def __post_init__(self):
        for name in STRING_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                object.__setattr__(self, name, str(value))
        object.__setattr__(self, "authentication_type", AuthenticationType.parse(self.authentication_type))
        object.__setattr__(self, "api_keys", MappingProxyType(_parse_api_keys(self.api_keys)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuthenticationConfig":
        """Create from a dictionary.

        Keys may be snake_case (``api_key_name``) or property style
        (``authentication.api-key-name``). Unknown keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = str(key)
            if name.startswith("authentication."):
                name = name[len("authentication."):]
            name = name.replace("-", "_").replace(".", "_")
            if name not in known and f"authentication_{name}" in known:
                name = f"authentication_{name}"
            if name in known:
                values[name] = value
            else:
                logger.debug("Ignoring unknown configuration key %s", key)
        try:
            return cls(**values)
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc

    def with_environment(self, environ: Optional[Mapping[str, str]] = None) -> "AuthenticationConfig":
        """Return a copy with secrets overridden from environment variables."""
        environ = os.environ if environ is None else environ
        overrides = {attr: environ[var] for var, attr in ENV_OVERRIDES.items() if environ.get(var)}
        return replace(self, **overrides) if overrides else self


def load_config(file_path: Optional[str] = None) -> AuthenticationConfig:
    """Load configuration from a YAML file and the environment.

    A missing file yields a default configuration.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    file_path = file_path or CONFIG_FILE
    if not os.path.exists(file_path):
        logger.info("Configuration file %s not found, using defaults", file_path)
        return AuthenticationConfig().with_environment()
    try:
        with open(file_path, "r") as file:
            data = yaml.safe_load(file) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error loading configuration file {file_path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration file {file_path} must contain a mapping")
    return AuthenticationConfig.from_dict(data).with_environment()
