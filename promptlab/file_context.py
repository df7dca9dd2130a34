"""Selected-file context for prompts.

Turns a list of file paths into descriptive text blocks that can be appended
to a prompt ("file details") or substituted for ``{{contents}}``.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_CHARS = 3000
_BINARY_SNIFF_BYTES = 1024


def _is_binary(sample: bytes) -> bool:
    return b"\x00" in sample


def read_text_file(path: Path, max_chars: Optional[int] = None) -> Optional[str]:
    """Read a text file, returning None for binary or unreadable files."""
    try:
        with open(path, "rb") as fh:
            if _is_binary(fh.read(_BINARY_SNIFF_BYTES)):
                return None
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning(f"Could not read {path}: {e}")
        return None
    if max_chars is not None and len(text) > max_chars:
        text = text[:max_chars]
    return text


def describe_file(path: str, max_chars: int = DEFAULT_MAX_FILE_CHARS) -> str:
    """Build the context block for one file."""
    p = Path(path).expanduser()
    lines = [f"File: {p.name}", f"Path: {p}"]
    if not p.exists():
        lines.append("Status: missing")
        return "\n".join(lines)
    if p.is_dir():
        entries = sorted(child.name for child in p.iterdir())
        lines.append("Kind: directory")
        lines.append(f"Entries: {', '.join(entries)}")
        return "\n".join(lines)

    lines.append(f"Size: {p.stat().st_size} bytes")
    text = read_text_file(p, max_chars=max_chars)
    if text is None:
        lines.append("Contents: (binary or unreadable)")
    else:
        lines.append(f"Contents:\n{text}")
    return "\n".join(lines)


async def get_file_content_prompts(
    paths: Iterable[str], max_chars: int = DEFAULT_MAX_FILE_CHARS
) -> List[str]:
    """Describe each selected file, off the event loop."""
    prompts = []
    for path in paths:
        try:
            prompts.append(await asyncio.to_thread(describe_file, path, max_chars))
        except OSError as e:
            logger.warning(f"Skipping {path}: {e}")
    return prompts
