"""
Conversation session -- turn-taking over one logical chat.

Owns the conversation history and coordinates placeholder resolution and
endpoint invocation for each turn. The session is the authoritative model;
callers render the ``SessionSnapshot`` it publishes through ``on_update``.

State machine:
    IDLE -> AWAITING_RESPONSE -> IDLE        submit / regenerate, then result
    AWAITING_RESPONSE -> IDLE                cancel with a previous response
    any -> CLOSED                            cancel without a previous response

Only one invocation is in flight at a time. Every invocation gets a
generation number; starting a new one (or cancelling) bumps the number and
any result still arriving for an older generation is dropped.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from promptlab.endpoint import EndpointConfig
from promptlab.errors import SessionClosedError, ValidationError
from promptlab.file_context import get_file_content_prompts
from promptlab.invoker import EndpointInvoker
from promptlab.placeholders import PlaceholderResolver, SubstitutionContext
from promptlab.replacements import build_substitution_context
from promptlab.results import Complete, Failed, InvocationResult, Streaming
from promptlab_constants import EMPTY_QUERY_MESSAGE, MAX_CONVERSATION_CHARS

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    CLOSED = "closed"


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a session for the presentation layer."""
    data: str
    is_loading: bool
    error: Optional[str]
    state: SessionState
    sent_query: str
    previous_response: str
    base_prompt: str
    history: Tuple[str, ...]


def trim_history(history: List[str], query: str, limit: int = MAX_CONVERSATION_CHARS) -> List[str]:
    """Drop the oldest entries until query + joined history fit in ``limit``."""
    trimmed = list(history)
    while trimmed and len(query) + len("\n".join(trimmed)) > limit:
        trimmed.pop(0)
    return trimmed


def build_chat_prompt(
    base_prompt: str,
    query: str,
    previous_response: str,
    history: Sequence[str] = (),
    file_prompts: Sequence[str] = (),
    use_conversation: bool = True,
) -> str:
    """Wrap a follow-up query with the base prompt and earlier context.

    Without a previous response there is nothing to follow up on and the
    query is sent as-is.
    """
    if not previous_response:
        return query

    parts = [
        "You are an interactive chatbot, and I am giving you instructions. "
        "You will use this base prompt for context as you consider my next input. "
        f"Here is the prompt: ###{base_prompt}###\n\n"
    ]
    if file_prompts:
        parts.append(
            " You will also consider the following details about selected files. "
            f"Here are the file details: ###{chr(10).join(file_prompts)}###\n\n"
        )
    if use_conversation:
        parts.append(
            "You will also consider our conversation history. "
            f"The history so far: ###{chr(10).join(history)}"
        )
    else:
        parts.append(
            "You will also consider your previous response. "
            f"Your previous response was: ###{previous_response}"
        )
    parts.append(f"###\n\nMy next input is: ###{query}###")
    return "".join(parts)


class ConversationSession:
    """Stateful chat over one base prompt.

    Args:
        base_prompt: The command's prompt template; first history entry.
        config: Endpoint settings used for every invocation of this session.
        invoker: Endpoint invoker (a plain ``EndpointInvoker`` by default).
        resolver: Placeholder resolver (built-in handlers by default).
        selected_files: Paths available as file context.
        response: A response the caller already has for the base prompt.
        initial_query: Follow-up to send as soon as ``start()`` is called.
        input_text: ``{input}`` value for the base request.
        context_extra: Extra keyed substitutions for every resolution pass.
        on_update: Called with a fresh snapshot after every state change.
        on_close: Called once when the session is abandoned.
    """

    def __init__(
        self,
        base_prompt: str,
        config: EndpointConfig,
        *,
        invoker: Optional[EndpointInvoker] = None,
        resolver: Optional[PlaceholderResolver] = None,
        selected_files: Optional[Sequence[str]] = None,
        response: str = "",
        initial_query: Optional[str] = None,
        input_text: str = "",
        context_extra: Optional[SubstitutionContext] = None,
        on_update: Optional[Callable[[SessionSnapshot], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self._base_prompt = base_prompt
        self._config = config
        self._invoker = invoker or EndpointInvoker()
        self._resolver = resolver or PlaceholderResolver()
        self._selected_files: List[str] = list(selected_files or [])
        self._initial_query = initial_query
        self._input_text = input_text
        self._context_extra = context_extra
        self._on_update = on_update
        self._on_close = on_close

        self._state = SessionState.IDLE
        self._data = response
        self._error: Optional[str] = None
        self._previous_response = ""
        self._sent_query = ""
        self._history: List[str] = [base_prompt]
        self._base_request: Optional[str] = None
        # A turn is committed once its invocation completes. Until then
        # _turn_history holds the history the turn was built on.
        self._committed = True
        self._turn_history: List[str] = [base_prompt]

        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._cancel_event: Optional[asyncio.Event] = None

    # -- Properties -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def data(self) -> str:
        return self._data

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._state is SessionState.AWAITING_RESPONSE

    @property
    def history(self) -> Tuple[str, ...]:
        return tuple(self._history)

    @property
    def previous_response(self) -> str:
        return self._previous_response

    @property
    def sent_query(self) -> str:
        return self._sent_query

    @property
    def base_prompt(self) -> str:
        return self._base_prompt

    @property
    def selected_files(self) -> Tuple[str, ...]:
        return tuple(self._selected_files)

    def set_selected_files(self, files: Sequence[str]) -> None:
        self._selected_files = list(files)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            data=self._data,
            is_loading=self.is_loading,
            error=self._error,
            state=self._state,
            sent_query=self._sent_query,
            previous_response=self._previous_response,
            base_prompt=self._base_prompt,
            history=self.history,
        )

    # -- Operations -----------------------------------------------------------

    async def start(self) -> None:
        """Kick off the first invocation.

        With an initial query the supplied response becomes the previous
        response and the query is sent right away. Otherwise, when no
        response was supplied, the base prompt itself is sent.
        """
        self._ensure_open()
        if self._initial_query:
            generation = self._begin()
            self._previous_response = self._data
            self._turn_history = [self._base_prompt]
            self._history = [self._base_prompt, self._data]
            self._data = ""
            self._sent_query = self._initial_query
            self._launch(generation, self._initial_query)
        elif not self._data:
            await self._run_base()

    async def submit(self, query: str, use_files: bool = False, use_conversation: bool = True) -> None:
        """Send a follow-up query.

        A turn that has not completed (still streaming, failed or cancelled)
        is discarded: the query follows up on the last completed response
        and the discarded turn never enters the history.

        Raises:
            ValidationError: ``query`` is empty. The session is unchanged.
            SessionClosedError: The session was abandoned.
        """
        self._ensure_open()
        if not query:
            raise ValidationError(EMPTY_QUERY_MESSAGE)

        if self._committed:
            previous = self._data
            self._turn_history = list(self._history)
        else:
            previous = self._previous_response
        generation = self._begin()
        self._previous_response = previous
        self._data = ""
        self._history = trim_history(self._turn_history + [previous, query], query)
        self._notify()

        resolved = await self._resolver.resolve(query, self._build_context())
        file_prompts: List[str] = []
        if use_files and self._selected_files:
            file_prompts = await get_file_content_prompts(self._selected_files)
        if generation != self._generation:
            logger.debug("Submit superseded during placeholder resolution")
            return

        earlier = self._history[:-1] if self._history and self._history[-1] == query else self._history
        self._sent_query = build_chat_prompt(
            self._base_prompt,
            resolved,
            previous,
            history=earlier,
            file_prompts=file_prompts,
            use_conversation=use_conversation,
        )
        self._launch(generation, self._sent_query)

    def cancel(self) -> None:
        """Stop the in-flight invocation.

        With a previous response only the invocation is abandoned and the
        previous response is shown again. Without one the whole session is
        abandoned and ``on_close`` fires.
        """
        if self._state is SessionState.CLOSED:
            return
        in_flight = self._state is SessionState.AWAITING_RESPONSE
        self._supersede()
        self._generation += 1

        if self._previous_response:
            if in_flight:
                self._data = self._previous_response
                self._history = list(self._turn_history) + [self._previous_response]
            self._state = SessionState.IDLE
            self._notify()
            return

        self._state = SessionState.CLOSED
        self._notify()
        if self._on_close:
            self._on_close()

    async def regenerate(self) -> None:
        """Replay the last sent query, or the base request when there is none."""
        self._ensure_open()
        if self._previous_response and self._sent_query:
            generation = self._begin()
            self._data = ""
            self._launch(generation, self._sent_query)
        else:
            await self._run_base()

    async def wait(self) -> None:
        """Wait for the in-flight invocation, if any, to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    # -- Internals ------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._state is SessionState.CLOSED:
            raise SessionClosedError("Session is closed")

    def _build_context(self) -> SubstitutionContext:
        return build_substitution_context(self._selected_files, self._context_extra)

    async def _run_base(self) -> None:
        generation = self._begin()
        if self._base_request is None:
            resolved = await self._resolver.resolve(self._base_prompt, self._build_context())
            if generation != self._generation:
                return
            self._base_request = resolved
        self._data = ""
        self._launch(generation, self._base_request, self._input_text)

    def _supersede(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._cancel_event = None

    def _begin(self) -> int:
        """Invalidate whatever is in flight and claim a new generation."""
        self._supersede()
        self._generation += 1
        self._state = SessionState.AWAITING_RESPONSE
        self._error = None
        self._committed = False
        return self._generation

    def _launch(self, generation: int, prompt: str, input_text: str = "") -> None:
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        self._notify()
        self._task = asyncio.create_task(self._consume(generation, prompt, input_text, cancel_event))

    async def _consume(self, generation: int, prompt: str, input_text: str, cancel_event: asyncio.Event) -> None:
        results = self._invoker.invoke(self._base_prompt, prompt, input_text, self._config, cancel_event)
        try:
            async for result in results:
                if generation != self._generation:
                    logger.debug(f"Dropping stale result from invocation {generation}")
                    return
                self._apply(result)
        except Exception as e:
            logger.error(f"Invocation {generation} crashed: {e}", exc_info=True)
            if generation == self._generation:
                self._data = ""
                self._error = str(e)
                self._state = SessionState.IDLE
                self._notify()
        finally:
            await results.aclose()

    def _apply(self, result: InvocationResult) -> None:
        if isinstance(result, Streaming):
            self._data = result.text
        elif isinstance(result, Complete):
            self._data = result.text
            self._state = SessionState.IDLE
            self._committed = True
        elif isinstance(result, Failed):
            # partial text of a failed turn is not a response
            self._data = ""
            self._error = result.message
            self._state = SessionState.IDLE
        else:
            return
        self._notify()

    def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self.snapshot())
        except Exception as e:
            logger.error(f"Session update callback failed: {e}")
