"""Error taxonomy for the prompt pipeline.

Validation errors are raised to the caller (they map to form-field errors).
Invocation errors are never raised out of the invoker; they travel inside
``Failed`` results and the session surfaces ``str(error)`` for display.
"""

from typing import Optional

from promptlab_constants import (
    CAPABILITY_UNAVAILABLE_MESSAGE,
    EMPTY_PROMPT_MESSAGE,
    INVALID_ENDPOINT_MESSAGE,
    PARSE_ERROR_MESSAGE,
)


class PromptLabError(Exception):
    """Base class for every error raised or reported by the core."""
    pass


class ValidationError(PromptLabError):
    """Raised when caller input is rejected before any work is started."""
    pass


class EmptyPromptError(ValidationError):
    def __init__(self, message: str = EMPTY_PROMPT_MESSAGE):
        super().__init__(message)


class SessionClosedError(PromptLabError):
    """Raised when a closed conversation session is asked to do more work."""
    pass


class ConfigError(PromptLabError):
    """Raised when configuration files or values are unusable."""
    pass


class InvocationError(PromptLabError):
    """Base class for failures reported through ``Failed`` results."""
    pass


class CapabilityUnavailableError(InvocationError):
    def __init__(self, message: str = CAPABILITY_UNAVAILABLE_MESSAGE):
        super().__init__(message)


class InvalidEndpointError(InvocationError):
    def __init__(self, message: str = INVALID_ENDPOINT_MESSAGE):
        super().__init__(message)


class HTTPStatusError(InvocationError):
    """Non-success HTTP status. ``str()`` is the status text."""

    def __init__(self, status_code: int, reason: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason or f"HTTP {status_code}"
        super().__init__(self.reason)


class ParseError(InvocationError):
    def __init__(self, message: str = PARSE_ERROR_MESSAGE):
        super().__init__(message)


class TransportError(InvocationError):
    """Connection or stream failure before a complete response arrived."""
    pass
