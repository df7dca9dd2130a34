"""Configuration validation utilities.

Validates an endpoint configuration before the first prompt is sent.
"""

import json
import logging
from typing import Any, Dict, List, Tuple

from promptlab.endpoint import AuthScheme, EndpointConfig, build_request_body, is_native_endpoint
from promptlab.key_path import parse_key_path

logger = logging.getLogger(__name__)


def validate_endpoint(config: EndpointConfig) -> Tuple[bool, str]:
    """Check that the endpoint is a built-in alias or a URL.

    Returns:
        (is_valid, message) tuple
    """
    endpoint = (config.endpoint or "").strip()
    if not endpoint:
        return (False, "No model endpoint configured")
    if is_native_endpoint(endpoint):
        return (True, "Built-in assistant")
    if ":" in endpoint:
        if not endpoint.lower().startswith(("http://", "https://")):
            return (True, f"Unusual URL scheme: {endpoint}")
        return (True, f"URL: {endpoint}")
    return (False, f"'{endpoint}' is neither a built-in assistant alias nor a URL")


def validate_request_schema(config: EndpointConfig) -> Tuple[bool, str]:
    """Check the request schema carries the prompt and fills into valid JSON.

    Returns:
        (is_valid, message) tuple
    """
    schema = config.request_schema or ""
    if "{prompt}" not in schema and "{input}" not in schema:
        return (False, "Request schema has no {prompt} or {input} placeholder")
    sample = build_request_body(config, 'base "prompt"\nline', 'sample "prompt"\nline', "sample input")
    try:
        json.loads(sample)
    except json.JSONDecodeError as e:
        return (False, f"Request schema is not valid JSON after substitution: {e}")
    return (True, "Request schema OK")


def validate_output_key_path(config: EndpointConfig) -> Tuple[bool, str]:
    """
    Returns:
        (is_valid, message) tuple
    """
    tokens = parse_key_path(config.output_key_path)
    if not tokens:
        return (False, "No output key path configured")
    return (True, f"Output key path: {' -> '.join(tokens)}")


def validate_auth(config: EndpointConfig) -> Tuple[bool, str]:
    """
    Returns:
        (is_valid, message) tuple
    """
    if config.auth_scheme is AuthScheme.NONE:
        return (True, "No authentication")
    if not config.api_key:
        return (False, f"Auth scheme '{config.auth_scheme.value}' needs an API key")
    # HTTP header values are ASCII only
    if not config.api_key.isascii():
        return (False, "API key contains non-ASCII characters")
    return (True, f"Auth scheme '{config.auth_scheme.value}' with key set")


def validate_endpoint_config(config: EndpointConfig) -> List[Tuple[str, bool, str]]:
    """Run every check that applies to this endpoint.

    Returns:
        List of (check_name, ok, message) tuples
    """
    results = [("endpoint", *validate_endpoint(config))]
    if config.is_url:
        results.append(("request_schema", *validate_request_schema(config)))
        results.append(("output_key_path", *validate_output_key_path(config)))
        results.append(("auth", *validate_auth(config)))
    return results


def run_validation(config: EndpointConfig) -> Dict[str, Any]:
    """Run all validation checks.

    Returns:
        Dictionary with validation results
    """
    checks = validate_endpoint_config(config)
    results: Dict[str, Any] = {
        "checks": checks,
        "errors": [],
        "warnings": [],
    }

    for name, ok, message in checks:
        if ok:
            continue
        # A missing key may be intentional for local servers
        if name == "auth" and not config.api_key:
            results["warnings"].append(message)
        else:
            results["errors"].append(message)

    results["is_valid"] = len(results["errors"]) == 0
    for error in results["errors"]:
        logger.warning(f"Config error: {error}")
    return results
