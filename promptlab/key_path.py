"""Key-path lookups into decoded JSON responses.

A key path addresses the generated text inside an arbitrarily shaped
response, e.g. ``choices[0].text`` or ``output.message.content``. Dots
separate object keys; bracketed segments index into lists (or objects).
"""

import re
from typing import Any, List

_BRACKET_RE = re.compile(r"\[([^\]]+)\]")


def parse_key_path(path: str) -> List[str]:
    """Split a dotted/bracketed key path into tokens.

    ``"choices[0].text"`` -> ``["choices", "0", "text"]``. Empty tokens are
    discarded, so ``"a..b"`` and ``".a"`` are tolerated.
    """
    tokens: List[str] = []
    for segment in (path or "").strip().split("."):
        for token in _BRACKET_RE.split(segment):
            if token:
                tokens.append(token)
    return tokens


def _step(current: Any, token: str, missing: object) -> Any:
    if isinstance(current, dict):
        return current.get(token, missing)
    if isinstance(current, (list, tuple)):
        # isdigit() alone admits "²" and other non-ASCII digits int() rejects
        if not (token.isascii() and token.isdecimal()):
            return missing
        index = int(token)
        if index >= len(current):
            return missing
        return current[index]
    return missing


def extract(value: Any, path: str, default: Any = None) -> Any:
    """Return the value addressed by ``path`` inside ``value``.

    Short-circuits to ``default`` as soon as a segment is missing or the
    current value cannot be descended into. Never raises.
    """
    tokens = parse_key_path(path)
    if not tokens:
        return value if isinstance(value, (dict, list, tuple)) else default

    missing = object()
    current = value
    for token in tokens:
        current = _step(current, token, missing)
        if current is missing:
            return default
    return current
