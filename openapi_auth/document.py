"""Loading the security sections of an OpenAPI/Swagger document."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

import yaml

from openapi_auth.exceptions import ConfigurationError
from openapi_auth.requirements import PathSecurityRequirements, parse_path_security_requirements
from openapi_auth.schemes import SchemeRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenApiSecurity:
    """Everything the authenticator needs from an API description.

    Attributes:
        schemes: Declared security schemes by name
        path_requirements: Per-operation and default requirement alternatives
    """

    schemes: SchemeRegistry = field(default_factory=SchemeRegistry)
    path_requirements: PathSecurityRequirements = field(default_factory=PathSecurityRequirements)


def parse_openapi_security(api_documentation: Dict[str, Any]) -> OpenApiSecurity:
    return OpenApiSecurity(
        schemes=SchemeRegistry.from_document(api_documentation),
        path_requirements=parse_path_security_requirements(api_documentation),
    )


def load_openapi_document(file_path: str) -> Dict[str, Any]:
    """Load an OpenAPI/Swagger document from a YAML or JSON file.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or has an
            unsupported extension
    """
    try:
        if file_path.endswith((".yaml", ".yml")):
            with open(file_path, "r") as file:
                document = yaml.safe_load(file)
        elif file_path.endswith(".json"):
            with open(file_path, "r") as file:
                document = json.load(file)
        else:
            raise ConfigurationError(f"Unsupported file format: {file_path}")
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error loading OpenAPI documentation {file_path}: {exc}") from exc

    if not isinstance(document, dict):
        raise ConfigurationError(f"OpenAPI documentation {file_path} is not a mapping")
    logger.debug("Loaded OpenAPI documentation from %s", file_path)
    return document


def load_openapi_security(file_path: str) -> OpenApiSecurity:
    return parse_openapi_security(load_openapi_document(file_path))
