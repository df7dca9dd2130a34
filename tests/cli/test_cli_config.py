"""Tests for promptlab_cli/config.py -- home dir, .env, config.yaml, normalization."""

import os

import pytest

from promptlab.endpoint import AuthScheme, OutputTiming
from promptlab.errors import ConfigError
from promptlab_cli.config import (
    DEFAULT_CONFIG,
    build_native_assistant,
    endpoint_config_from_dict,
    get_promptlab_home,
    load_config,
    load_env,
)


# ---------------------------------------------------------------------------
# Home directory and files
# ---------------------------------------------------------------------------

class TestHome:
    def test_respects_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROMPTLAB_HOME", str(tmp_path))
        assert get_promptlab_home() == tmp_path

    def test_default_under_user_home(self, monkeypatch):
        monkeypatch.delenv("PROMPTLAB_HOME", raising=False)
        assert get_promptlab_home().name == ".promptlab"


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "config.yaml")
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG
        config["endpoint"]["url"] = "changed"
        assert DEFAULT_CONFIG["endpoint"]["url"] == "raycast ai"

    def test_partial_file_merged_over_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "endpoint:\n"
            "  url: https://api.example.com/v1/complete\n"
            "  output_key_path: choices[0].text\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config["endpoint"]["url"] == "https://api.example.com/v1/complete"
        assert config["endpoint"]["output_key_path"] == "choices[0].text"
        assert config["endpoint"]["auth"] == "none"
        assert config["native"]["model"] == DEFAULT_CONFIG["native"]["model"]

    def test_bare_endpoint_string(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("endpoint: https://api.example.com/x\n", encoding="utf-8")
        assert load_config(path)["endpoint"]["url"] == "https://api.example.com/x"

    def test_reads_from_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROMPTLAB_HOME", str(tmp_path))
        (tmp_path / "config.yaml").write_text("native:\n  model: some/model\n", encoding="utf-8")
        assert load_config()["native"]["model"] == "some/model"

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_broken_yaml_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("endpoint: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)


class TestLoadEnv:
    def test_home_env_file_loaded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROMPTLAB_TEST_TOKEN", "")
        monkeypatch.delenv("PROMPTLAB_TEST_TOKEN")
        (tmp_path / ".env").write_text("PROMPTLAB_TEST_TOKEN=from-dotenv\n", encoding="utf-8")

        load_env(tmp_path)

        assert os.environ["PROMPTLAB_TEST_TOKEN"] == "from-dotenv"


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

class TestEndpointConfigFromDict:
    def test_full_section(self):
        cfg = {"endpoint": {
            "url": "https://api.example.com/v1/complete",
            "auth": "bearerToken",
            "api_key_env": "MY_KEY",
            "request_schema": '{"q": "{prompt}", "stream": true}',
            "output_key_path": "choices[0].delta.content",
            "output_timing": "ASYNC",
            "prompt_prefix": "PRE",
            "prompt_suffix": "SUF",
            "timeout": "30",
        }}
        config = endpoint_config_from_dict(cfg, env={"MY_KEY": "sk-file"})
        assert config.endpoint == "https://api.example.com/v1/complete"
        assert config.auth_scheme is AuthScheme.BEARER_TOKEN
        assert config.api_key == "sk-file"
        assert config.request_schema == '{"q": "{prompt}", "stream": true}'
        assert config.output_key_path == "choices[0].delta.content"
        assert config.output_timing is OutputTiming.ASYNC
        assert (config.prompt_prefix, config.prompt_suffix) == ("PRE", "SUF")
        assert config.request_timeout == 30.0

    def test_env_overrides(self):
        cfg = {"endpoint": {"url": "https://from-file/", "api_key_env": "MY_KEY"}}
        config = endpoint_config_from_dict(cfg, env={
            "PROMPTLAB_ENDPOINT": "https://from-env/",
            "PROMPTLAB_API_KEY": "sk-env",
            "MY_KEY": "sk-file",
        })
        assert config.endpoint == "https://from-env/"
        assert config.api_key == "sk-env"

    def test_empty_section_uses_defaults(self):
        config = endpoint_config_from_dict({}, env={})
        assert config.endpoint == ""
        assert config.auth_scheme is AuthScheme.NONE
        assert config.output_timing is OutputTiming.SYNC
        assert config.request_schema == '{"prompt": "{prompt}"}'
        assert config.request_timeout is None

    def test_legacy_auth_alias(self):
        config = endpoint_config_from_dict({"endpoint": {"url": "https://x/", "auth": "customHeader"}}, env={})
        assert config.auth_scheme is AuthScheme.X_API_KEY

    def test_unknown_auth_rejected(self):
        with pytest.raises(ConfigError):
            endpoint_config_from_dict({"endpoint": {"auth": "oauth2"}}, env={})

    def test_unknown_timing_rejected(self):
        with pytest.raises(ConfigError):
            endpoint_config_from_dict({"endpoint": {"output_timing": "sometimes"}}, env={})


class TestBuildNativeAssistant:
    def test_available_with_key(self):
        assistant = build_native_assistant(DEFAULT_CONFIG, env={"OPENROUTER_API_KEY": "sk-or"})
        assert assistant.is_available()

    def test_unavailable_without_key(self):
        assert not build_native_assistant(DEFAULT_CONFIG, env={}).is_available()

    def test_custom_key_env_and_model(self):
        cfg = {"native": {"api_key_env": "LOCAL_KEY", "model": "local/model", "base_url": "http://localhost:8000/v1/"}}
        assistant = build_native_assistant(cfg, env={"LOCAL_KEY": "k"})
        assert assistant.is_available()
        assert "local/model" in assistant.name
