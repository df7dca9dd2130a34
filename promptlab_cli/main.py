#!/usr/bin/env python3
"""
PromptLab command-line entry point.

Usage:
    promptlab chat "Summarize {{file:notes.txt}}"
    promptlab chat "Explain this" --files a.py,b.py --verbose
    promptlab chat "Translate to French" --response "Bonjour" --query "More formal"
    promptlab validate
"""

import asyncio
import json
import logging
import signal
import sys
from typing import List, Optional, Sequence, TextIO, Union

import fire

from promptlab.config_validator import run_validation
from promptlab.errors import ConfigError, PromptLabError, ValidationError
from promptlab.invoker import EndpointInvoker
from promptlab.session import ConversationSession, SessionSnapshot, SessionState
from promptlab_cli.config import (
    build_native_assistant,
    endpoint_config_from_dict,
    load_config,
    load_env,
)

logger = logging.getLogger(__name__)

HELP_TEXT = """Commands:
  /regen            regenerate the last response
  /files on|off     include selected file details in follow-ups
  /history on|off   include conversation history (off: previous response only)
  /quit             exit (Ctrl-D works too)
Ctrl-C cancels a response that is still arriving."""


def setup_logging(verbose: bool = False) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
        # Keep third-party libraries at WARNING level to reduce noise
        logging.getLogger('openai').setLevel(logging.WARNING)
        logging.getLogger('openai._base_client').setLevel(logging.WARNING)
        logging.getLogger('httpx').setLevel(logging.WARNING)
        logging.getLogger('httpcore').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)
        logger.info("Verbose logging enabled (third-party library logs suppressed)")
    else:
        logging.basicConfig(
            level=logging.WARNING,
            format='%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
        logging.getLogger('openai').setLevel(logging.ERROR)
        logging.getLogger('openai._base_client').setLevel(logging.ERROR)
        logging.getLogger('httpx').setLevel(logging.ERROR)
        logging.getLogger('httpcore').setLevel(logging.ERROR)


def parse_file_list(files: Union[None, str, Sequence[str]]) -> List[str]:
    """Accept ``a,b`` strings as well as the tuples fire builds from them."""
    if not files:
        return []
    if isinstance(files, str):
        files = files.split(",")
    return [str(f).strip() for f in files if str(f).strip()]


def parse_toggle(argument: str, current: bool) -> bool:
    """``on``/``off`` set the flag; anything else flips it."""
    value = argument.strip().lower()
    if value in ("on", "true", "yes", "1"):
        return True
    if value in ("off", "false", "no", "0"):
        return False
    return not current


class StreamPrinter:
    """Renders session snapshots as incremental terminal output."""

    def __init__(self, out: Optional[TextIO] = None):
        self._out = out or sys.stdout
        self._shown = ""
        self._active = False
        self._last_error: Optional[str] = None
        self.cancelled = False

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()

    def _show(self, data: str) -> None:
        if data == self._shown:
            return
        if data.startswith(self._shown):
            self._write(data[len(self._shown):])
        else:
            # Snapshot replaced what we printed; start over on a fresh line
            self._write(("\n" if self._shown else "") + data)
        self._shown = data

    def __call__(self, snapshot: SessionSnapshot) -> None:
        if snapshot.is_loading:
            if not self._active:
                self._active = True
                self._shown = ""
                self._last_error = None
                self.cancelled = False
            self._show(snapshot.data)
            return

        if self._active:
            self._active = False
            if self.cancelled:
                self._write("\n[cancelled]\n")
            else:
                self._show(snapshot.data)
                if self._shown:
                    self._write("\n")
            self._shown = ""

        if snapshot.error and snapshot.error != self._last_error:
            self._last_error = snapshot.error
            self._write(f"Error: {snapshot.error}\n")


async def _wait_for_response(session: ConversationSession, printer: StreamPrinter) -> None:
    """Wait for the in-flight response; Ctrl-C cancels it."""
    loop = asyncio.get_running_loop()

    def _on_interrupt() -> None:
        printer.cancelled = True
        session.cancel()

    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        await session.wait()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def run_chat(
    session: ConversationSession,
    printer: StreamPrinter,
    read_line=None,
) -> None:
    """Drive the session from terminal input until the user quits."""
    read_line = read_line or (lambda: asyncio.to_thread(input, "\n> "))
    use_files = False
    use_history = True

    await session.start()
    await _wait_for_response(session, printer)

    while session.state is not SessionState.CLOSED:
        try:
            line = (await read_line()).strip()
        except EOFError:
            break
        if not line:
            continue

        command, _, argument = line.partition(" ")
        if command in ("/quit", "/exit"):
            break
        if command == "/help":
            print(HELP_TEXT)
            continue
        if command == "/files":
            use_files = parse_toggle(argument, use_files)
            print(f"File details {'on' if use_files else 'off'} ({len(session.selected_files)} selected)")
            continue
        if command == "/history":
            use_history = parse_toggle(argument, use_history)
            print(f"Conversation history {'on' if use_history else 'off'}")
            continue

        if command == "/regen":
            await session.regenerate()
        else:
            try:
                await session.submit(line, use_files=use_files, use_conversation=use_history)
            except ValidationError as e:
                print(f"Error: {e}")
                continue
        await _wait_for_response(session, printer)


def chat(
    prompt: str,
    query: str = None,
    response: str = "",
    files: str = None,
    input: str = "",
    endpoint: str = None,
    verbose: bool = False,
):
    """
    Run a prompt template and continue the conversation interactively.

    Args:
        prompt (str): The base prompt. Placeholders such as {{date}} or {{file:path}} are expanded.
        query (str): Follow-up to send right away (uses ``response`` as the previous answer).
        response (str): An answer you already have for the base prompt.
        files (str): Comma-separated list of selected files ("a.py,b.py").
        input (str): Value for {input} in the request schema.
        endpoint (str): Override the configured endpoint URL or alias.
        verbose (bool): Enable debug logging.
    """
    setup_logging(verbose)
    load_env()
    try:
        cfg = load_config()
        if endpoint:
            cfg["endpoint"]["url"] = endpoint
        config = endpoint_config_from_dict(cfg)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    printer = StreamPrinter()
    invoker = EndpointInvoker(native_assistant=build_native_assistant(cfg))
    session = ConversationSession(
        prompt,
        config,
        invoker=invoker,
        selected_files=parse_file_list(files),
        response=response,
        initial_query=query,
        input_text=input,
        on_update=printer,
        on_close=lambda: print("Closed."),
    )
    if response and not query:
        print(response)

    try:
        asyncio.run(run_chat(session, printer))
    except KeyboardInterrupt:
        print()
    except PromptLabError as e:
        print(f"Error: {e}")
        sys.exit(1)


def validate(endpoint: str = None, verbose: bool = False):
    """
    Check the configured endpoint and print the report as JSON.

    Args:
        endpoint (str): Override the configured endpoint URL or alias.
        verbose (bool): Enable debug logging.
    """
    setup_logging(verbose)
    load_env()
    try:
        cfg = load_config()
        if endpoint:
            cfg["endpoint"]["url"] = endpoint
        config = endpoint_config_from_dict(cfg)
    except ConfigError as e:
        print(json.dumps({"is_valid": False, "errors": [str(e)], "warnings": [], "checks": []}, indent=2))
        sys.exit(1)

    results = run_validation(config)
    report = dict(results)
    report["checks"] = [
        {"check": name, "ok": ok, "message": message} for name, ok, message in results["checks"]
    ]
    print(json.dumps(report, indent=2, ensure_ascii=False))
    if not results["is_valid"]:
        sys.exit(1)


def main():
    fire.Fire({"chat": chat, "validate": validate})


if __name__ == "__main__":
    main()
