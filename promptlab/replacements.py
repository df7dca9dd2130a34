"""Default keyed substitutions for prompt templates.

Builds the substitution context consumed by ``PlaceholderResolver``. Values
are computed lazily: a resolver only runs when its key appears in the
prompt.
"""

import getpass
import os
import socket
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Sequence

from promptlab.file_context import get_file_content_prompts
from promptlab.placeholders import SubstitutionContext


def _user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER", "")


def build_substitution_context(
    selected_files: Optional[Sequence[str]] = None,
    extra: Optional[SubstitutionContext] = None,
) -> SubstitutionContext:
    """Return the keyed context for one resolution pass.

    Args:
        selected_files: Paths the caller currently has selected.
        extra: Caller-supplied keys; these follow the built-ins and replace
            a built-in of the same name.
    """
    files = list(selected_files or [])

    async def contents() -> str:
        return "\n\n".join(await get_file_content_prompts(files))

    context: Dict = {
        "{{selectedFiles}}": lambda: ", ".join(files),
        "{{fileNames}}": lambda: ", ".join(Path(f).name for f in files),
        "{{contents}}": contents,
        "{{date}}": lambda: datetime.now().strftime("%B %d, %Y"),
        "{{time}}": lambda: datetime.now().strftime("%I:%M %p"),
        "{{day}}": lambda: datetime.now().strftime("%A"),
        "{{user}}": _user,
        "{{homedir}}": lambda: str(Path.home()),
        "{{hostname}}": socket.gethostname,
    }
    if extra:
        for key, resolver in extra.items():
            context.pop(key, None)
            context[key] = resolver
    return context
