"""Invocation results yielded by ``EndpointInvoker.invoke``.

``tag`` identifies the request a result belongs to: the request body for
HTTP endpoints, the base prompt for the built-in assistant.
"""

from dataclasses import dataclass
from typing import Union

from promptlab.errors import PromptLabError


@dataclass(frozen=True)
class Pending:
    tag: str = ""


@dataclass(frozen=True)
class Streaming:
    text: str
    done: bool = False
    tag: str = ""


@dataclass(frozen=True)
class Complete:
    text: str
    tag: str = ""


@dataclass(frozen=True)
class Failed:
    error: PromptLabError
    tag: str = ""

    @property
    def message(self) -> str:
        return str(self.error)


InvocationResult = Union[Pending, Streaming, Complete, Failed]
