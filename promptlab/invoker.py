"""
Endpoint invocation.

``EndpointInvoker.invoke`` turns a resolved prompt into an async stream of
``InvocationResult`` values. The branch is picked from the endpoint config:

  - built-in assistant alias  -> the configured ``NativeAssistant``
  - URL, output timing "sync"  -> one POST, one JSON document
  - URL, output timing "async" -> one POST, ``data:`` lines streamed back

Failures are yielded as ``Failed`` results, never raised. Setting
``cancel_event`` stops the stream: nothing further is yielded even if the
transport is still delivering bytes.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

import httpx

from promptlab.endpoint import (
    EndpointConfig,
    OutputTiming,
    build_headers,
    build_request_body,
)
from promptlab.errors import (
    CapabilityUnavailableError,
    EmptyPromptError,
    HTTPStatusError,
    InvalidEndpointError,
    ParseError,
    TransportError,
)
from promptlab.key_path import extract
from promptlab.native import NativeAssistant
from promptlab.results import Complete, Failed, InvocationResult, Pending, Streaming

logger = logging.getLogger(__name__)

_STREAM_DONE = "[DONE]"
_NON_ASCII_HEADER_MESSAGE = "API key and header values must be ASCII"


def merge_stream_text(accumulated: str, output: str) -> str:
    """Fold one streamed chunk into the accumulated text.

    Snapshot-style chunks (already containing everything so far) replace the
    text; anything else is treated as a delta and appended. This is a
    heuristic: a delta that happens to contain the whole accumulated text is
    taken for a snapshot.
    """
    if accumulated in output:
        return output
    return accumulated + output


def coerce_output(value: Any) -> Optional[str]:
    """Text for a scalar leaf, None for containers or missing values."""
    if value is None or isinstance(value, (dict, list, tuple)):
        return None
    if isinstance(value, str):
        return value
    return str(value)


def stream_payload(line: str) -> Optional[str]:
    """The text after the ``data:`` marker, or None for other lines."""
    marker = line.find("data:")
    if marker == -1:
        return None
    return line[marker + len("data:"):].strip()


def _cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class EndpointInvoker:
    """Sends prompts to the configured endpoint.

    Args:
        native_assistant: Backend for the built-in assistant aliases. When
            None, those endpoints fail with ``CapabilityUnavailableError``.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        native_assistant: Optional[NativeAssistant] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._native = native_assistant
        self._transport = transport

    def _client(self, config: EndpointConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=config.request_timeout)

    async def invoke(
        self,
        base_prompt: str,
        prompt: str,
        input_text: str,
        config: EndpointConfig,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[InvocationResult]:
        if config.is_native:
            tag = base_prompt
        elif config.is_url:
            tag = build_request_body(config, base_prompt, prompt, input_text)
        else:
            tag = ""
        yield Pending(tag=tag)

        if not base_prompt and not prompt:
            yield Failed(EmptyPromptError(), tag=tag)
            return

        if config.is_native:
            results = self._invoke_native(prompt, config, tag, cancel_event)
        elif not config.is_url:
            logger.warning(f"Endpoint {config.endpoint!r} is neither a built-in alias nor a URL")
            yield Failed(InvalidEndpointError(), tag=tag)
            return
        elif config.output_timing is OutputTiming.ASYNC:
            results = self._invoke_stream(tag, config, cancel_event)
        else:
            results = self._invoke_sync(tag, config, cancel_event)

        async for result in results:
            yield result

    # -- Built-in assistant ---------------------------------------------------

    async def _invoke_native(self, prompt, config, tag, cancel_event):
        if self._native is None or not self._native.is_available():
            yield Failed(CapabilityUnavailableError(), tag=tag)
            return

        text = ""
        deltas = self._native.stream(config.prompt_prefix + prompt + config.prompt_suffix)
        try:
            async for delta in deltas:
                if _cancelled(cancel_event):
                    logger.debug(f"Built-in assistant {self._native.name} cancelled; closing stream")
                    return
                text += delta
                yield Streaming(text, tag=tag)
        except Exception as e:
            logger.error(f"Built-in assistant {self._native.name} failed: {e}")
            yield Failed(TransportError(str(e)), tag=tag)
            return
        finally:
            await deltas.aclose()

        if not _cancelled(cancel_event):
            yield Complete(text, tag=tag)

    # -- Synchronous HTTP -----------------------------------------------------

    async def _invoke_sync(self, body, config, cancel_event):
        logger.info(f"POST {config.endpoint} (sync)")
        try:
            async with self._client(config) as client:
                response = await client.post(config.endpoint, headers=build_headers(config), content=body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Request to {config.endpoint} failed: {e}")
            yield Failed(TransportError(str(e)), tag=body)
            return
        except UnicodeEncodeError:
            logger.warning(f"Request to {config.endpoint} has non-ASCII header values")
            yield Failed(TransportError(_NON_ASCII_HEADER_MESSAGE), tag=body)
            return

        if _cancelled(cancel_event):
            return
        if not response.is_success:
            yield Failed(HTTPStatusError(response.status_code, response.reason_phrase), tag=body)
            return

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Response from {config.endpoint} is not JSON: {e}")
            yield Failed(ParseError(), tag=body)
            return

        output = coerce_output(extract(data, config.output_key_path))
        if output is None:
            logger.warning(f"No text at key path {config.output_key_path!r}")
            yield Failed(ParseError(), tag=body)
            return
        yield Complete(output, tag=body)

    # -- Server-sent event stream ---------------------------------------------

    async def _invoke_stream(self, body, config, cancel_event):
        logger.info(f"POST {config.endpoint} (async stream)")
        text = ""
        try:
            async with self._client(config) as client:
                async with client.stream(
                    "POST", config.endpoint, headers=build_headers(config), content=body
                ) as response:
                    if not response.is_success:
                        yield Failed(HTTPStatusError(response.status_code, response.reason_phrase), tag=body)
                        return

                    async for line in response.aiter_lines():
                        if _cancelled(cancel_event):
                            logger.debug("Stream cancelled; dropping remaining chunks")
                            return
                        payload = stream_payload(line)
                        if not payload:
                            continue
                        if payload == _STREAM_DONE:
                            yield Streaming(text, done=True, tag=body)
                            break
                        try:
                            chunk = json.loads(payload)
                        except json.JSONDecodeError:
                            logger.debug(f"Skipping unparsable stream line: {line[:100]}")
                            continue

                        output = coerce_output(extract(chunk, config.output_key_path)) or ""
                        merged = merge_stream_text(text, output)
                        if merged != text:
                            text = merged
                            yield Streaming(text, tag=body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Stream from {config.endpoint} failed: {e}")
            yield Failed(TransportError(str(e)), tag=body)
            return
        except UnicodeEncodeError:
            logger.warning(f"Stream request to {config.endpoint} has non-ASCII header values")
            yield Failed(TransportError(_NON_ASCII_HEADER_MESSAGE), tag=body)
            return

        if not _cancelled(cancel_event):
            yield Complete(text, tag=body)
