"""
Configuration loading for the PromptLab CLI.

Settings live in ``$PROMPTLAB_HOME/config.yaml`` (default ``~/.promptlab``);
secrets live in ``$PROMPTLAB_HOME/.env`` and are read through python-dotenv.
The CLI turns the loaded dict into an explicit ``EndpointConfig`` and passes
it to the core.

Example config.yaml:

    endpoint:
      url: https://api.example.com/v1/completions
      auth: bearerToken
      api_key_env: PROMPTLAB_API_KEY
      request_schema: '{"prompt": "{prompt}", "stream": true}'
      output_key_path: choices[0].text
      output_timing: async
    native:
      model: openai/gpt-4o-mini
"""

from __future__ import annotations

import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from promptlab.endpoint import AuthScheme, EndpointConfig, OutputTiming
from promptlab.errors import ConfigError
from promptlab.native import OpenAIAssistant
from promptlab_constants import (
    DEFAULT_API_KEY_ENV,
    DEFAULT_NATIVE_API_KEY_ENV,
    DEFAULT_NATIVE_BASE_URL,
    DEFAULT_NATIVE_MODEL,
    DEFAULT_REQUEST_SCHEMA,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "endpoint": {
        "url": "raycast ai",
        "auth": "none",
        "api_key_env": DEFAULT_API_KEY_ENV,
        "request_schema": DEFAULT_REQUEST_SCHEMA,
        "output_key_path": "",
        "output_timing": "sync",
        "prompt_prefix": "",
        "prompt_suffix": "",
        "timeout": None,
    },
    "native": {
        "base_url": DEFAULT_NATIVE_BASE_URL,
        "model": DEFAULT_NATIVE_MODEL,
        "api_key_env": DEFAULT_NATIVE_API_KEY_ENV,
    },
}


def get_promptlab_home() -> Path:
    """Resolve the PromptLab home directory (respects PROMPTLAB_HOME)."""
    return Path(os.getenv("PROMPTLAB_HOME", Path.home() / ".promptlab"))


def load_env(home: Optional[Path] = None) -> None:
    """Load secrets from <home>/.env first, then a project .env as fallback."""
    env_path = (home or get_promptlab_home()) / ".env"
    if env_path.exists():
        try:
            load_dotenv(env_path, encoding="utf-8")
        except UnicodeDecodeError:
            load_dotenv(env_path, encoding="latin-1")
    load_dotenv()


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load config.yaml merged over the defaults.

    A bare string under ``endpoint`` is accepted as the endpoint URL.

    Raises:
        ConfigError: The file exists but is not a YAML mapping.
    """
    config_path = path or get_promptlab_home() / "config.yaml"
    if not config_path.exists():
        logger.debug(f"No config file at {config_path}, using defaults")
        return deepcopy(DEFAULT_CONFIG)

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {config_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a mapping, got {type(raw).__name__}")

    if isinstance(raw.get("endpoint"), str):
        raw["endpoint"] = {"url": raw["endpoint"]}
    return _merge(DEFAULT_CONFIG, raw)


def endpoint_config_from_dict(
    cfg: Mapping[str, Any], env: Optional[Mapping[str, str]] = None
) -> EndpointConfig:
    """Normalize the ``endpoint`` section into an ``EndpointConfig``.

    ``PROMPTLAB_ENDPOINT`` and ``PROMPTLAB_API_KEY`` in ``env`` override the
    file. The key itself is read from the variable named by ``api_key_env``.

    Raises:
        ConfigError: An auth scheme or output timing is not recognized.
    """
    env = os.environ if env is None else env
    section = cfg.get("endpoint") or {}
    if isinstance(section, str):
        section = {"url": section}

    endpoint = str(env.get("PROMPTLAB_ENDPOINT") or section.get("url") or "").strip()
    api_key_env = str(section.get("api_key_env") or DEFAULT_API_KEY_ENV)
    api_key = env.get("PROMPTLAB_API_KEY") or env.get(api_key_env) or ""

    try:
        auth_scheme = AuthScheme(section.get("auth") or "none")
    except ValueError as e:
        raise ConfigError(f"Unknown auth scheme: {section.get('auth')!r}") from e
    try:
        output_timing = OutputTiming(str(section.get("output_timing") or "sync").strip().lower())
    except ValueError as e:
        raise ConfigError(f"Unknown output timing: {section.get('output_timing')!r}") from e

    timeout = section.get("timeout")
    return EndpointConfig(
        endpoint=endpoint,
        auth_scheme=auth_scheme,
        api_key=api_key,
        request_schema=str(section.get("request_schema") or DEFAULT_REQUEST_SCHEMA),
        output_key_path=str(section.get("output_key_path") or ""),
        output_timing=output_timing,
        prompt_prefix=str(section.get("prompt_prefix") or ""),
        prompt_suffix=str(section.get("prompt_suffix") or ""),
        request_timeout=float(timeout) if timeout is not None else None,
    )


def build_native_assistant(
    cfg: Mapping[str, Any], env: Optional[Mapping[str, str]] = None
) -> OpenAIAssistant:
    """Build the built-in assistant from the ``native`` section."""
    env = os.environ if env is None else env
    section = cfg.get("native") or {}
    api_key_env = str(section.get("api_key_env") or DEFAULT_NATIVE_API_KEY_ENV)
    return OpenAIAssistant(
        api_key=env.get(api_key_env) or env.get("OPENAI_API_KEY"),
        base_url=str(section.get("base_url") or DEFAULT_NATIVE_BASE_URL).rstrip("/"),
        model=str(section.get("model") or DEFAULT_NATIVE_MODEL),
    )
