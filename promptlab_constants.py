"""Shared constants for PromptLab.

Import-safe module with no dependencies; it can be imported from anywhere
without risk of circular imports.
"""

# Endpoint identifiers that select the built-in assistant instead of a URL.
NATIVE_AI_ALIASES = frozenset({"raycast ai", "raycastai", "raycast", "raycast-ai"})

DEFAULT_NATIVE_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_NATIVE_MODEL = "openai/gpt-4o-mini"
DEFAULT_NATIVE_API_KEY_ENV = "OPENROUTER_API_KEY"

DEFAULT_REQUEST_SCHEMA = '{"prompt": "{prompt}"}'
DEFAULT_API_KEY_ENV = "PROMPTLAB_API_KEY"

# Budget for query + joined conversation history, in characters.
MAX_CONVERSATION_CHARS = 3900

EMPTY_PROMPT_MESSAGE = "Prompt cannot be empty"
EMPTY_QUERY_MESSAGE = "Query cannot be empty"
PARSE_ERROR_MESSAGE = "Couldn't parse model output"
CAPABILITY_UNAVAILABLE_MESSAGE = (
    "The built-in assistant is not available. "
    "Configure an API key for it or use a different model endpoint."
)
INVALID_ENDPOINT_MESSAGE = "Invalid Endpoint"
