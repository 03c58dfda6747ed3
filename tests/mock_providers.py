"""
Mock LLM providers for testing.

Provides scripted delta streams so tests can exercise the router, the
continuation controller and the session actor without hitting real APIs.
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Union

from termchat.llm.providers.base import Provider
from termchat.llm.router import LLMRouter
from termchat.llm.types import (
    ContentDelta,
    FinishDelta,
    Message,
    StreamDelta,
    ThinkingDelta,
    ToolCallFragment,
)

ScriptItem = Union[StreamDelta, BaseException, asyncio.Event]


class ScriptedProvider(Provider):
    """
    A provider that plays back one script per ``stream()`` call.

    Usage::

        provider = ScriptedProvider([
            tool_call_script("list_files", {"path": "."}),
            text_script("Done."),
        ])

    Script items are yielded in order.  An exception instance is raised at
    that point in the stream; an ``asyncio.Event`` pauses the stream until
    the event is set.  Calls beyond the last script replay the last one.

    Parameters
    ----------
    scripts:
        One list of items per expected call.
    model_name:
        Value returned by ``model``.
    """

    def __init__(
        self,
        scripts: list[list[ScriptItem]] | None = None,
        model_name: str = "mock-model",
    ) -> None:
        self._scripts = scripts or [text_script("")]
        self._model_name = model_name
        self.call_count = 0
        self.calls: list[list[Message]] = []
        self.tools_seen: list[list[dict] | None] = []
        self.models_seen: list[str | None] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model(self) -> str:
        return self._model_name

    @property
    def last_messages(self) -> list[Message] | None:
        return self.calls[-1] if self.calls else None

    async def stream(
        self,
        messages: list[Message],
        tools: list[dict] | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamDelta]:
        index = min(self.call_count, len(self._scripts) - 1)
        self.call_count += 1
        self.calls.append(list(messages))
        self.tools_seen.append(tools)
        self.models_seen.append(model)

        for item in self._scripts[index]:
            if isinstance(item, asyncio.Event):
                await item.wait()
            elif isinstance(item, BaseException):
                raise item
            else:
                yield item


# ---------------------------------------------------------------------------
# Script builders
# ---------------------------------------------------------------------------


def text_script(text: str, *, pieces: int = 1) -> list[ScriptItem]:
    """Plain text reply split into *pieces* content deltas."""
    if not text:
        return [FinishDelta("stop")]
    size = max(1, len(text) // pieces)
    parts = [text[i:i + size] for i in range(0, len(text), size)]
    return [ContentDelta(p) for p in parts] + [FinishDelta("stop")]


def thinking_script(thinking: str, text: str) -> list[ScriptItem]:
    return [ThinkingDelta(thinking), ContentDelta(text), FinishDelta("stop")]


def tool_call_script(
    name: str,
    arguments: dict | str | None = None,
    *,
    call_id: str = "call_1",
    content: str = "",
    index: int = 0,
) -> list[ScriptItem]:
    """A single tool call whose arguments arrive split in two fragments."""
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments or {})
    half = len(raw) // 2
    items: list[ScriptItem] = []
    if content:
        items.append(ContentDelta(content))
    items.extend([
        ToolCallFragment(index=index, id=call_id, name=name, arguments=raw[:half]),
        ToolCallFragment(index=index, arguments=raw[half:]),
        FinishDelta("tool_calls"),
    ])
    return items


def multi_tool_script(calls: list[tuple[str, dict, str]]) -> list[ScriptItem]:
    """Several parallel calls, fragments interleaved by index."""
    items: list[ScriptItem] = []
    for i, (name, _args, call_id) in enumerate(calls):
        items.append(ToolCallFragment(index=i, id=call_id, name=name))
    for i, (_name, args, _call_id) in enumerate(calls):
        items.append(ToolCallFragment(index=i, arguments=json.dumps(args)))
    items.append(FinishDelta("tool_calls"))
    return items


def make_router(provider: Provider) -> LLMRouter:
    router = LLMRouter()
    router.register_provider("mock", provider)
    return router
