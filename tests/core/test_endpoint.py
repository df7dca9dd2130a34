"""Tests for endpoint configuration, request bodies and headers."""

import json

import pytest

from promptlab.endpoint import (
    AuthScheme,
    EndpointConfig,
    OutputTiming,
    build_headers,
    build_request_body,
    clean_prompt_text,
    is_native_endpoint,
)

URL = "https://api.example.com/v1/complete"


class TestEndpointConfig:
    @pytest.mark.parametrize("alias", ["raycast ai", "Raycast AI", " raycastai ", "raycast", "raycast-ai"])
    def test_native_aliases(self, alias):
        config = EndpointConfig(endpoint=alias)
        assert config.is_native
        assert not config.is_url

    def test_url_endpoint(self):
        config = EndpointConfig(endpoint=URL)
        assert config.is_url
        assert not config.is_native

    def test_neither_alias_nor_url(self):
        config = EndpointConfig(endpoint="my-model")
        assert not config.is_url
        assert not config.is_native
        assert not is_native_endpoint("")

    def test_api_key_hidden_from_repr(self):
        config = EndpointConfig(endpoint=URL, auth_scheme=AuthScheme.BEARER_TOKEN, api_key="sk-secret")
        assert "sk-secret" not in repr(config)

    def test_defaults(self):
        config = EndpointConfig(endpoint=URL)
        assert config.auth_scheme is AuthScheme.NONE
        assert config.output_timing is OutputTiming.SYNC
        assert config.request_timeout is None


class TestAuthSchemeParsing:
    @pytest.mark.parametrize("raw,expected", [
        ("apiKey", AuthScheme.API_KEY),
        ("bearerToken", AuthScheme.BEARER_TOKEN),
        ("x-api-key", AuthScheme.X_API_KEY),
        ("customHeader", AuthScheme.X_API_KEY),
        ("Bearer", AuthScheme.BEARER_TOKEN),
        ("", AuthScheme.NONE),
        ("none", AuthScheme.NONE),
    ])
    def test_values_and_aliases(self, raw, expected):
        assert AuthScheme(raw) is expected

    def test_unknown_scheme_rejected(self):
        with pytest.raises(ValueError):
            AuthScheme("oauth")


class TestRequestBody:
    def test_whitespace_collapsed(self):
        config = EndpointConfig(endpoint=URL, request_schema='{"q":"{prompt}"}')
        assert build_request_body(config, "", "hi\nthere") == '{"q":"hi there"}'

    def test_quotes_escaped_so_body_stays_json(self):
        config = EndpointConfig(endpoint=URL)
        body = build_request_body(config, "", 'say "cheese"\r\n\tnow')
        assert json.loads(body) == {"prompt": 'say "cheese" now'}

    def test_prefix_and_suffix(self):
        config = EndpointConfig(
            endpoint=URL,
            request_schema='{"p":"{prompt}","b":"{basePrompt}"}',
            prompt_prefix="PRE ",
            prompt_suffix=" SUF",
        )
        body = json.loads(build_request_body(config, "base", "full"))
        assert body == {"p": "PRE full SUF", "b": "PRE base"}

    def test_input_dropped_when_same_as_prompt(self):
        config = EndpointConfig(endpoint=URL, request_schema='{"p":"{prompt}","i":"{input}"}')
        body = json.loads(build_request_body(config, "base", "same", "same"))
        assert body == {"p": "same", "i": ""}

    def test_input_kept_when_different(self):
        config = EndpointConfig(
            endpoint=URL, request_schema='{"p":"{prompt}","i":"{input}"}', prompt_suffix="!"
        )
        body = json.loads(build_request_body(config, "base", "prompt", "some\ninput"))
        assert body == {"p": "prompt!", "i": "some input!"}

    def test_input_kept_when_schema_has_no_prompt(self):
        config = EndpointConfig(endpoint=URL, request_schema='{"i":"{input}"}')
        assert build_request_body(config, "", "same", "same") == '{"i":"same"}'

    def test_tokens_inside_values_are_not_replaced(self):
        config = EndpointConfig(endpoint=URL, request_schema='{"p":"{prompt}","b":"{basePrompt}"}')
        body = json.loads(build_request_body(config, "base", "literal {basePrompt}"))
        assert body["p"] == "literal {basePrompt}"

    def test_clean_prompt_text_none_safe(self):
        assert clean_prompt_text(None) == ""


class TestHeaders:
    @pytest.mark.parametrize("scheme,header,value", [
        (AuthScheme.API_KEY, "Authorization", "Api-Key k1"),
        (AuthScheme.BEARER_TOKEN, "Authorization", "Bearer k1"),
        (AuthScheme.X_API_KEY, "X-API-Key", "k1"),
    ])
    def test_auth_headers(self, scheme, header, value):
        headers = build_headers(EndpointConfig(endpoint=URL, auth_scheme=scheme, api_key="k1"))
        assert headers[header] == value
        assert headers["Content-Type"] == "application/json"

    def test_no_auth(self):
        assert build_headers(EndpointConfig(endpoint=URL)) == {"Content-Type": "application/json"}
