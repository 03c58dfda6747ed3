from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from termchat.llm.types import Message
from termchat.types import ToolResult


class ToolName(str, Enum):
    """The builtin tool set.  Anything else dispatches as unknown or plugin."""

    READ_TERMINAL = "read_terminal"
    SEND_TO_TERMINAL = "send_to_terminal"
    SLEEP = "sleep"
    SUGGEST_TERMINAL_COMMAND = "suggest_terminal_command"
    GET_TERMINAL_HISTORY = "get_terminal_history"
    CREATE_FILE = "create_file"
    READ_FILE = "read_file"
    UPDATE_FILE = "update_file"
    APPEND_TO_FILE = "append_to_file"
    DELETE_FILE = "delete_file"
    FIND_AND_REPLACE_IN_FILE = "find_and_replace_in_file"
    LIST_FILES = "list_files"
    BROWSE_WEB = "browse_web"
    SEARCH_WEB = "search_web"
    SUMMARIZE_CHAT = "summarize_chat"


@dataclass
class ToolContext:
    """
    Per-call context handed to every tool.

    *history* is a snapshot taken before the tool round started.
    *replace_history* routes through the owning session actor; tools must
    not touch session state any other way.
    """

    session_id: str
    history: list[Message] = field(default_factory=list)
    replace_history: Callable[[list[Message]], Awaitable[None]] | None = None
    terminal_session_id: str | None = None


def normalize_schema(schema: dict) -> dict:
    s = dict(schema or {})
    s.setdefault("type", "object")
    s.setdefault("properties", {})
    s.setdefault("additionalProperties", False)
    return s


class Tool(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> dict: ...

    @abstractmethod
    async def execute(self, context: ToolContext, **kwargs) -> ToolResult: ...

    def to_openai_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": normalize_schema(self.parameters),
            },
        }
