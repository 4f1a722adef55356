"""Command line inspection of the security declared in an OpenAPI document.

Usage:
    python -m openapi_auth describe openapi.yaml --path /pets --method GET
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

from openapi_auth.document import load_openapi_security
from openapi_auth.exceptions import AuthenticationError
from openapi_auth.requirements import RequirementResolver
from openapi_auth.schemes import APIKeyScheme, HTTPScheme, OAuth2Scheme, SecurityScheme


def describe_scheme(scheme: SecurityScheme) -> Dict[str, object]:
    summary: Dict[str, object] = {"name": scheme.name, "type": scheme.scheme_type}
    if isinstance(scheme, APIKeyScheme):
        summary.update(location=scheme.location, parameter_name=scheme.parameter_name)
    elif isinstance(scheme, HTTPScheme):
        summary.update(scheme=scheme.scheme)
    elif isinstance(scheme, OAuth2Scheme):
        summary.update(flows=scheme.available_flow_types)
    return summary


def describe(file_path: str, path: str, method: str) -> List[Dict[str, object]]:
    """Return the requirement alternatives for an operation with their schemes."""
    security = load_openapi_security(file_path)
    alternatives = []
    for requirement in RequirementResolver(security.path_requirements).resolve(path, method):
        schemes = []
        for name, scopes in requirement.items():
            scheme = security.schemes.get(name)
            entry = describe_scheme(scheme) if scheme else {"name": name, "type": None}
            entry["scopes"] = list(scopes)
            schemes.append(entry)
        alternatives.append({"schemes": schemes})
    return alternatives


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="openapi_auth", description="Inspect OpenAPI security requirements.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    describe_parser = subparsers.add_parser("describe", help="Show the security alternatives of an operation")
    describe_parser.add_argument("file_path", help="Path to the OpenAPI documentation file (JSON or YAML)")
    describe_parser.add_argument("--path", required=True, help="Declared operation path, e.g. /pets/{petId}")
    describe_parser.add_argument("--method", default="GET", help="HTTP method (default: GET)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        alternatives = describe(args.file_path, args.path, args.method)
    except AuthenticationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(alternatives, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
