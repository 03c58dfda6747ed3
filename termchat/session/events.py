"""
Downstream event model.

Every message the session sends to its client is a plain JSON-compatible
dict with a ``type`` key and an ISO ``timestamp``.  The factories below are
the only place these shapes are defined.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from termchat.llm.types import ToolCall
from termchat.types import ToolResult

SessionEvent = dict[str, Any]


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

EVENT_STREAM_START = "stream_start"
EVENT_STREAM_CHUNK = "stream_chunk"
EVENT_STREAM_END = "stream_end"
EVENT_TOOL_USAGE = "tool_usage"
EVENT_TOOL_RESULT = "tool_result"
EVENT_AI_STATUS = "ai_status"
EVENT_ERROR = "error"
EVENT_SYSTEM = "system"
EVENT_PONG = "pong"

STATUS_READY = "ready"
STATUS_THINKING = "thinking"
STATUS_WORKING = "working"
STATUS_STOPPED = "stopped"

ROLE_THINKING = "thinking"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _event(event_type: str, **fields: Any) -> SessionEvent:
    event: SessionEvent = {"type": event_type}
    event.update(fields)
    event["timestamp"] = _now()
    return event


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def stream_start_event(model: str) -> SessionEvent:
    return _event(EVENT_STREAM_START, model=model)


def stream_chunk_event(content: str, role: str | None = None) -> SessionEvent | None:
    """Create a ``stream_chunk`` event, or ``None`` for whitespace-only text."""
    if not content.strip():
        return None
    if role is not None:
        return _event(EVENT_STREAM_CHUNK, content=content, role=role)
    return _event(EVENT_STREAM_CHUNK, content=content)


def stream_end_event(reason: str) -> SessionEvent:
    return _event(EVENT_STREAM_END, reason=reason)


def tool_usage_event(tool_calls: list[ToolCall]) -> SessionEvent:
    return _event(
        EVENT_TOOL_USAGE,
        content=summarize_tool_calls(tool_calls),
        tool_calls=[tc.to_wire() for tc in tool_calls],
    )


def tool_result_event(tool_call: ToolCall, result: ToolResult) -> SessionEvent:
    return _event(
        EVENT_TOOL_RESULT,
        tool_name=tool_call.name,
        tool_call=tool_call.to_wire(),
        result=result.to_payload(),
    )


def ai_status_event(status: str) -> SessionEvent:
    return _event(EVENT_AI_STATUS, status=status)


def error_event(content: str) -> SessionEvent:
    return _event(EVENT_ERROR, content=content)


def system_event(content: str, **extra: Any) -> SessionEvent:
    return _event(EVENT_SYSTEM, content=content, **extra)


def pong_event() -> SessionEvent:
    return _event(EVENT_PONG)


# ---------------------------------------------------------------------------
# Tool usage summaries
# ---------------------------------------------------------------------------


def _argument(tool_call: ToolCall, key: str) -> str | None:
    try:
        args = json.loads(tool_call.arguments or "{}")
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(args, dict):
        return None
    value = args.get(key)
    return value if isinstance(value, str) and value else None


def _domain(url: str) -> str:
    if "." not in url:
        return url
    target = url if url.startswith("http") else f"https://{url}"
    return urlparse(target).hostname or url


def describe_tool_call(tool_call: ToolCall) -> str:
    if tool_call.name == "search_web":
        query = _argument(tool_call, "query") or "information"
        return f'Searching web for "{query}"...'
    if tool_call.name == "browse_web":
        url = _argument(tool_call, "url") or "a web page"
        return f"Browsing web: {_domain(url)}..."
    return f"Using {tool_call.name} tool"


def summarize_tool_calls(tool_calls: list[ToolCall]) -> str:
    if len(tool_calls) == 1:
        return describe_tool_call(tool_calls[0])
    names = ", ".join(tc.name for tc in tool_calls)
    return f"Using {len(tool_calls)} tools: {names}"
