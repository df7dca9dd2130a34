"""Endpoint configuration and request construction.

An ``EndpointConfig`` is passed explicitly into every invocation; nothing in
the core reads endpoint settings from process-wide state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from promptlab_constants import DEFAULT_REQUEST_SCHEMA, NATIVE_AI_ALIASES

_WHITESPACE_RE = re.compile(r"[\n\r\s]+")
_SCHEMA_TOKEN_RE = re.compile(r"\{(prompt|basePrompt|input)\}")


class AuthScheme(Enum):
    """How the API key is attached to requests."""
    NONE = "none"
    API_KEY = "apiKey"              # Authorization: Api-Key <key>
    BEARER_TOKEN = "bearerToken"    # Authorization: Bearer <key>
    X_API_KEY = "x-api-key"         # X-API-Key: <key>

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "": cls.NONE,
            "customheader": cls.X_API_KEY,
            "apikey": cls.API_KEY,
            "bearertoken": cls.BEARER_TOKEN,
            "bearer": cls.BEARER_TOKEN,
        }
        if isinstance(value, str):
            return aliases.get(value.strip().lower())
        return None


class OutputTiming(Enum):
    """Whether the endpoint answers with one document or an event stream."""
    SYNC = "sync"
    ASYNC = "async"


@dataclass(frozen=True)
class EndpointConfig:
    """Settings for one model endpoint.

    Attributes:
        endpoint: A built-in assistant alias (e.g. "raycast ai") or a URL.
        auth_scheme: How ``api_key`` is sent.
        api_key: Secret for the endpoint; never included in repr or logs.
        request_schema: JSON body template with {prompt}, {basePrompt}, {input}.
        output_key_path: Key path to the generated text in each response.
        output_timing: SYNC for one JSON document, ASYNC for ``data:`` lines.
        prompt_prefix: Text placed before the prompt.
        prompt_suffix: Text placed after the prompt.
        request_timeout: Transport timeout in seconds; None waits forever.
    """
    endpoint: str
    auth_scheme: AuthScheme = AuthScheme.NONE
    api_key: str = field(default="", repr=False)
    request_schema: str = DEFAULT_REQUEST_SCHEMA
    output_key_path: str = ""
    output_timing: OutputTiming = OutputTiming.SYNC
    prompt_prefix: str = ""
    prompt_suffix: str = ""
    request_timeout: Optional[float] = None

    @property
    def is_native(self) -> bool:
        return is_native_endpoint(self.endpoint)

    @property
    def is_url(self) -> bool:
        return not self.is_native and ":" in self.endpoint


def is_native_endpoint(endpoint: str) -> bool:
    return (endpoint or "").strip().lower() in NATIVE_AI_ALIASES


def clean_prompt_text(text: str) -> str:
    """Collapse whitespace runs to one space and escape double quotes."""
    return _WHITESPACE_RE.sub(" ", text or "").replace('"', '\\"')


def build_request_body(config: EndpointConfig, base_prompt: str, prompt: str, input_text: str = "") -> str:
    """Fill the request schema for one invocation.

    ``{input}`` is left empty when the schema already carries the prompt and
    the input is identical to it, so the same text is not sent twice. All
    tokens are replaced in a single pass.
    """
    schema = config.request_schema
    prefix, suffix = config.prompt_prefix, config.prompt_suffix

    if "{prompt" in schema and input_text == prompt:
        input_value = ""
    else:
        input_value = clean_prompt_text(input_text) + suffix

    values = {
        "prompt": prefix + clean_prompt_text(prompt) + suffix,
        "basePrompt": prefix + clean_prompt_text(base_prompt),
        "input": input_value,
    }
    return _SCHEMA_TOKEN_RE.sub(lambda m: values[m.group(1)], schema)


def build_headers(config: EndpointConfig) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if config.auth_scheme is AuthScheme.API_KEY:
        headers["Authorization"] = f"Api-Key {config.api_key}"
    elif config.auth_scheme is AuthScheme.BEARER_TOKEN:
        headers["Authorization"] = f"Bearer {config.api_key}"
    elif config.auth_scheme is AuthScheme.X_API_KEY:
        headers["X-API-Key"] = config.api_key
    return headers
