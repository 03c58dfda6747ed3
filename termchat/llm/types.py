"""Core types for the LLM subsystem."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ToolCall:
    """
    A complete tool invocation requested by the model.

    ``arguments`` is kept as the raw text the model produced.  It is only
    parsed at dispatch time, where invalid JSON becomes a tool error.
    """

    id: str
    name: str
    arguments: str = ""

    def parsed_arguments(self) -> Any:
        """Decode ``arguments``; empty text decodes to ``{}``."""
        if not self.arguments.strip():
            return {}
        return json.loads(self.arguments)

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Message:
    """A single message in a conversation.  Never mutated once appended."""

    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_calls: tuple[ToolCall, ...] | None = None
    tool_call_id: str | None = None
    name: str | None = None  # tool name on "tool" messages

    def to_wire(self) -> dict[str, Any]:
        m: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            m["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        if self.tool_call_id:
            m["tool_call_id"] = self.tool_call_id
        if self.name:
            m["name"] = self.name
        return m


def system_message(content: str) -> Message:
    return Message(role="system", content=content)


def user_message(content: str) -> Message:
    return Message(role="user", content=content)


def assistant_message(content: str, tool_calls: list[ToolCall] | None = None) -> Message:
    return Message(
        role="assistant",
        content=content,
        tool_calls=tuple(tool_calls) if tool_calls else None,
    )


def tool_message(tool_call_id: str, content: str, name: str | None = None) -> Message:
    return Message(role="tool", content=content, tool_call_id=tool_call_id, name=name)


# ---------------------------------------------------------------------------
# Stream deltas
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentDelta:
    """A fragment of assistant text."""

    text: str


@dataclass(frozen=True)
class ThinkingDelta:
    """A fragment of reasoning text."""

    text: str


@dataclass(frozen=True)
class ToolCallFragment:
    """
    One piece of a streamed tool call.

    Fields the wire event did not carry are ``None``; they are never taken to
    mean "clear the value".
    """

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


@dataclass(frozen=True)
class FinishDelta:
    """The provider signalled the end of generation."""

    reason: str


StreamDelta = Union[ContentDelta, ThinkingDelta, ToolCallFragment, FinishDelta]


@dataclass
class AssembledAssistant:
    """
    The complete assistant response after consuming one stream.

    *error* is set when the stream ended early; whatever content had arrived
    before the failure is still present.
    """

    content: str = ""
    thinking: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    error: str | None = None
