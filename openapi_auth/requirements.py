"""Per-operation security requirements and their resolution.

A security requirement maps scheme names to scopes. Each operation carries
an ordered list of requirements; any one of them satisfies the operation.
Operations without their own list use the document-level default.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from openapi_auth.exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "PUT", "POST", "DELETE", "OPTIONS", "HEAD", "PATCH", "TRACE")

# scheme name -> scopes
SecurityRequirement = Mapping[str, Sequence[str]]


def _template_pattern(path: str) -> "re.Pattern[str]":
    """Compile a declared path so each {param} matches one segment."""
    pieces = re.split(r"(\{[^/{}]*\})", path)
    return re.compile("".join("[^/]+" if piece.startswith("{") else re.escape(piece) for piece in pieces))


def _freeze(requirements: Sequence[SecurityRequirement]) -> Tuple[SecurityRequirement, ...]:
    return tuple(
        MappingProxyType({name: tuple(scopes or ()) for name, scopes in requirement.items()})
        for requirement in requirements
    )


class PathSecurityRequirements:
    """Immutable table of requirement alternatives per (path, method).

    Attributes:
        operations: Mapping of (path, METHOD) to requirement alternatives
        default: Document-level requirement alternatives, possibly empty
    """

    def __init__(
        self,
        operations: Optional[Mapping[Tuple[str, str], Sequence[SecurityRequirement]]] = None,
        default: Optional[Sequence[SecurityRequirement]] = None,
    ):
        self._operations = MappingProxyType(
            {(path, method.upper()): _freeze(reqs) for (path, method), reqs in (operations or {}).items()}
        )
        self._default = _freeze(default or ())
        # Literal paths are tried before templated ones
        declared = sorted({path for path, _ in self._operations}, key=lambda p: (p.count("{"), -len(p), p))
        self._templates = [(path, _template_pattern(path)) for path in declared]

    @property
    def operations(self) -> Mapping[Tuple[str, str], Tuple[SecurityRequirement, ...]]:
        return self._operations

    @property
    def default(self) -> Tuple[SecurityRequirement, ...]:
        return self._default

    def get(self, path: str, method: str) -> Optional[Tuple[SecurityRequirement, ...]]:
        return self._operations.get((path, method.upper()))

    def match_path(self, url_path: str, method: Optional[str] = None) -> Optional[str]:
        """Return the declared path template that ``url_path`` instantiates.

        With ``method``, only paths declaring that operation are considered.
        Returns None when nothing matches.
        """
        method = method.upper() if method else None
        for path, pattern in self._templates:
            if method is not None and (path, method) not in self._operations:
                continue
            if pattern.fullmatch(url_path):
                return path
        return None


class RequirementResolver:
    """Resolves the requirement alternatives that apply to an operation."""

    def __init__(self, requirements: PathSecurityRequirements):
        self._requirements = requirements

    def resolve(self, path: str, method: str) -> Tuple[SecurityRequirement, ...]:
        """Return the ordered requirement alternatives for an operation.

        Args:
            path: Declared operation path (e.g. "/pets/{petId}")
            method: HTTP method, any case

        Returns:
            The operation's own alternatives if declared, else the
            document-level default (which may be empty)

        Raises:
            InvalidArgumentError: If path or method is empty
        """
        if not path:
            raise InvalidArgumentError("path is empty")
        if not method:
            raise InvalidArgumentError("method is empty")

        own = self._requirements.get(path, method)
        if own is not None:
            return own
        logger.debug("No security declared for %s %s, using document default", method, path)
        return self._requirements.default


def parse_path_security_requirements(api_documentation: Dict[str, Any]) -> PathSecurityRequirements:
    """Collect per-operation and document-level security lists.

    Operations without a ``security`` key are left out so they fall back to
    the document default. An explicit empty list is kept.
    """
    operations: Dict[Tuple[str, str], List[SecurityRequirement]] = {}
    for path, path_item in (api_documentation.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        for method in HTTP_METHODS:
            operation = path_item.get(method.lower())
            if isinstance(operation, dict) and operation.get("security") is not None:
                operations[(path, method)] = list(operation["security"])

    return PathSecurityRequirements(
        operations=operations,
        default=list(api_documentation.get("security") or []),
    )
