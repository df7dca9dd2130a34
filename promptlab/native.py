"""Built-in assistant backends.

The invoker delegates to a ``NativeAssistant`` when the endpoint is one of
the built-in assistant aliases. The assistant owns its own streaming; the
invoker only accumulates the text deltas it yields.
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncGenerator, Optional

from openai import AsyncOpenAI

from promptlab_constants import DEFAULT_NATIVE_BASE_URL, DEFAULT_NATIVE_MODEL

logger = logging.getLogger(__name__)


class NativeAssistant(ABC):
    """Abstract base class for built-in assistants."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the assistant can be used right now (e.g. is entitled)."""
        pass

    @abstractmethod
    def stream(self, prompt: str) -> AsyncGenerator[str, None]:
        """
        Send a prompt and stream the response.

        Implementations are async generators; callers close them with
        ``aclose()`` when they stop reading early.

        Yields:
            str: Text deltas in arrival order.
        """
        pass


class OpenAIAssistant(NativeAssistant):
    """Built-in assistant backed by an OpenAI-compatible chat completions API.

    Args:
        api_key: Key for the provider. The assistant is unavailable without one.
        base_url: Provider base URL (OpenRouter by default).
        model: Model identifier sent with each request.
        client: Optional pre-built ``AsyncOpenAI`` client (used by tests).
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_NATIVE_BASE_URL,
        model: str = DEFAULT_NATIVE_MODEL,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._api_key = api_key or ""
        self._base_url = base_url
        self._model = model
        self._client = client

    @property
    def name(self) -> str:
        return f"openai-compatible ({self._model})"

    def is_available(self) -> bool:
        return bool(self._api_key) or self._client is not None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            client_kwargs = {"api_key": self._api_key, "base_url": self._base_url}
            if "openrouter" in self._base_url.lower():
                client_kwargs["default_headers"] = {"X-OpenRouter-Title": "PromptLab"}
            self._client = AsyncOpenAI(**client_kwargs)
        return self._client

    async def stream(self, prompt: str) -> AsyncGenerator[str, None]:
        client = self._get_client()
        logger.info(f"Streaming completion from {self._model}")
        response = await client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            stream=True,
        )
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        finally:
            await response.close()
