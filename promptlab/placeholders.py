"""
Placeholder resolution for prompt templates.

A prompt is expanded in two stages before it is sent:

1. Keyed substitutions -- literal keys such as ``{{date}}`` mapped to
   resolvers in a substitution context. Keys are processed in the context's
   insertion order and text produced by a resolver is never scanned again,
   so a resolved value that happens to contain another key stays literal.

2. Structured placeholders -- an ordered registry of handlers, each owning
   one delimiter syntax:

     {{{ script }}}        legacy AppleScript
     {{as:script}}         AppleScript
     {{shell:command}}     shell command output
     {{https://...}}       text content of a web page
     {{file:path}}         contents of a file

   Each handler scans the output of the previous one. Errors in a handler
   are logged and the placeholder is replaced with an empty string; they
   never abort the rest of the pipeline.
"""

import asyncio
import html
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Pattern, Tuple, Union

import httpx

from promptlab.file_context import read_text_file

logger = logging.getLogger(__name__)

SubstitutionContext = Dict[str, Callable[[], Union[str, Awaitable[str]]]]

DEFAULT_SCRIPT_TIMEOUT = 30.0
DEFAULT_FETCH_TIMEOUT = 15.0
USER_AGENT = "PromptLab/1.0"

# Body of a {{prefix:...}} placeholder: anything up to the closing braces,
# allowing single braces and nested {{...}} pairs inside the script.
_SCRIPT_BODY = r"((?:[^{]|\{(?!\{)|\{\{[\s\S]*?\}\})*?)"


# ---------------------------------------------------------------------------
# Handler base
# ---------------------------------------------------------------------------

class PlaceholderHandler(ABC):
    """One structured placeholder syntax and how to render it."""

    name: str = ""
    pattern: Pattern[str]

    @abstractmethod
    async def render(self, match: "re.Match[str]") -> str:
        """Produce the replacement text for one match."""
        pass

    async def _safe_render(self, match: "re.Match[str]") -> str:
        try:
            return await self.render(match)
        except Exception as e:
            logger.warning(f"Placeholder '{self.name}' failed for {match.group(0)[:80]!r}: {e}")
            return ""

    async def apply(self, text: str) -> str:
        """Replace every match in ``text``; identical matches render once."""
        matches = list(self.pattern.finditer(text))
        if not matches:
            return text

        rendered: Dict[str, str] = {}
        for match in matches:
            token = match.group(0)
            if token not in rendered:
                rendered[token] = await self._safe_render(match)

        parts: List[str] = []
        last = 0
        for match in matches:
            parts.append(text[last:match.start()])
            parts.append(rendered[match.group(0)])
            last = match.end()
        parts.append(text[last:])
        return "".join(parts)


# ---------------------------------------------------------------------------
# Subprocess helpers
# ---------------------------------------------------------------------------

async def _communicate(process: asyncio.subprocess.Process, timeout: float) -> Tuple[str, str]:
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise RuntimeError(f"timed out after {timeout} seconds")
    stdout_text = stdout.decode("utf-8", errors="replace")
    stderr_text = stderr.decode("utf-8", errors="replace").strip()
    if process.returncode != 0:
        raise RuntimeError(f"exit code {process.returncode}: {stderr_text}")
    return stdout_text, stderr_text


async def run_applescript(script: str, timeout: float = DEFAULT_SCRIPT_TIMEOUT) -> str:
    """Run an AppleScript through ``osascript`` and return its output."""
    process = await asyncio.create_subprocess_exec(
        "osascript", "-e", script,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, _ = await _communicate(process, timeout)
    return stdout.strip()


async def run_shell(command: str, timeout: float = DEFAULT_SCRIPT_TIMEOUT) -> str:
    """Run a shell command and return its standard output."""
    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, _ = await _communicate(process, timeout)
    return stdout.rstrip("\r\n")


def html_to_text(body: str) -> str:
    """Strip markup from an HTML page, keeping readable text."""
    text = re.sub(r"<(script|style)\b[^>]*>[\s\S]*?</\1\s*>", " ", body, flags=re.IGNORECASE)
    text = re.sub(r"<!--[\s\S]*?-->", " ", text)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


# ---------------------------------------------------------------------------
# Built-in handlers
# ---------------------------------------------------------------------------

class LegacyAppleScriptHandler(PlaceholderHandler):
    name = "legacy_applescript"
    pattern = re.compile(r"\{\{\{([\s\S]*?)\}\}\}")

    def __init__(self, timeout: float = DEFAULT_SCRIPT_TIMEOUT):
        self.timeout = timeout

    async def render(self, match):
        return await run_applescript(match.group(1), timeout=self.timeout)


class AppleScriptHandler(PlaceholderHandler):
    name = "applescript"
    pattern = re.compile(r"\{\{(?:as|AS):" + _SCRIPT_BODY + r"\}\}")

    def __init__(self, timeout: float = DEFAULT_SCRIPT_TIMEOUT):
        self.timeout = timeout

    async def render(self, match):
        return await run_applescript(match.group(1), timeout=self.timeout)


class ShellScriptHandler(PlaceholderHandler):
    name = "shell"
    pattern = re.compile(r"\{\{shell:" + _SCRIPT_BODY + r"\}\}")

    def __init__(self, timeout: float = DEFAULT_SCRIPT_TIMEOUT):
        self.timeout = timeout

    async def render(self, match):
        return await run_shell(match.group(1), timeout=self.timeout)


class URLHandler(PlaceholderHandler):
    name = "url"
    pattern = re.compile(r"\{\{(https?://[^\s{}]+)\}\}")

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def render(self, match):
        url = match.group(1)
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
        if "html" in response.headers.get("content-type", "html"):
            return html_to_text(response.text)
        return response.text.strip()


class FileHandler(PlaceholderHandler):
    name = "file"
    pattern = re.compile(r"\{\{file:([^{}]+?)\}\}")

    def __init__(self, max_chars: Optional[int] = None):
        self.max_chars = max_chars

    async def render(self, match):
        path = Path(match.group(1).strip()).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"no such file: {path}")
        text = await asyncio.to_thread(read_text_file, path, self.max_chars)
        if text is None:
            raise ValueError(f"{path} is not a text file")
        return text


def default_handlers() -> List[PlaceholderHandler]:
    """The built-in handlers, in resolution order."""
    return [
        LegacyAppleScriptHandler(),
        AppleScriptHandler(),
        ShellScriptHandler(),
        URLHandler(),
        FileHandler(),
    ]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class PlaceholderResolver:
    """
    Expands keyed substitutions and structured placeholders in a prompt.

    Usage:
        resolver = PlaceholderResolver()
        text = await resolver.resolve("Summarize {{https://example.com}}", context)
    """

    def __init__(self, handlers: Optional[Iterable[PlaceholderHandler]] = None):
        self._handlers: List[PlaceholderHandler] = (
            list(handlers) if handlers is not None else default_handlers()
        )

    @property
    def handlers(self) -> Tuple[PlaceholderHandler, ...]:
        return tuple(self._handlers)

    def register(self, handler: PlaceholderHandler) -> None:
        """Add a handler; it runs after all handlers registered before it."""
        self._handlers.append(handler)

    async def resolve(self, prompt: str, context: Optional[SubstitutionContext] = None) -> str:
        text = await self.substitute_keys(prompt, context or {})
        for handler in self._handlers:
            text = await handler.apply(text)
        return text

    async def substitute_keys(self, prompt: str, context: SubstitutionContext) -> str:
        # (text, resolved) segments; resolved segments are never rescanned
        segments: List[Tuple[str, bool]] = [(prompt, False)]
        for key, resolver in context.items():
            if not key or not any(key in text for text, done in segments if not done):
                continue
            value = await self._resolve_key(key, resolver)
            updated: List[Tuple[str, bool]] = []
            for text, done in segments:
                if done or key not in text:
                    updated.append((text, done))
                    continue
                for i, piece in enumerate(text.split(key)):
                    if i:
                        updated.append((value, True))
                    if piece:
                        updated.append((piece, False))
            segments = updated
        return "".join(text for text, _ in segments)

    @staticmethod
    async def _resolve_key(key: str, resolver: Callable) -> str:
        try:
            result = resolver()
            # Support both sync and async resolvers
            if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                result = await result
        except Exception as e:
            logger.warning(f"Substitution for {key} failed: {e}")
            return ""
        return "" if result is None else str(result)
