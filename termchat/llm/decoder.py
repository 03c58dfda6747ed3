"""
Server-Sent Events decoder for OpenAI-compatible chat-completion streams.

Turns the raw response byte stream into typed ``StreamDelta`` values:

  - ``data: [DONE]`` yields a single ``FinishDelta("stop")`` and ends the
    sequence.  Nothing is produced after it.
  - Lines that do not start with ``data:`` (comments, ``event:``, ``id:``,
    blank event separators) are ignored.
  - A payload that is not valid JSON, or does not have the expected shape,
    is dropped.  Decoding continues with the next event.

There is no retry logic here.  A failure of the underlying byte stream
propagates out of ``StreamDecoder.decode`` unchanged; the provider wraps it
into a ``TransportError``.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator

from termchat.errors import DecodeError
from termchat.llm.types import (
    ContentDelta,
    FinishDelta,
    StreamDelta,
    ThinkingDelta,
    ToolCallFragment,
)

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

# Providers disagree on where reasoning text lives.
_REASONING_KEYS = ("reasoning", "reasoning_content", "thinking")


class StreamDecoder:
    """
    Incremental SSE decoder.

    Feed it bytes (or text) as they arrive with ``feed()``; each call returns
    the deltas completed by that chunk.  ``decode()`` wraps the same logic
    around an async byte iterator.  A decoder instance handles exactly one
    stream and cannot be restarted.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False
        self.dropped_events = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, chunk: bytes | str) -> list[StreamDelta]:
        """Consume a chunk and return the deltas for every completed line."""
        if self.done:
            return []
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk

        deltas: list[StreamDelta] = []
        while "\n" in self._buffer and not self.done:
            line, self._buffer = self._buffer.split("\n", 1)
            deltas.extend(self._decode_line(line))
        return deltas

    def close(self) -> list[StreamDelta]:
        """Flush a trailing line that was not newline-terminated."""
        if self.done:
            return []
        self._buffer += self._utf8.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        return self._decode_line(line)

    async def decode(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamDelta]:
        """Yield deltas lazily from an async byte iterator."""
        async for chunk in chunks:
            for delta in self.feed(chunk):
                yield delta
            if self.done:
                return
        for delta in self.close():
            yield delta

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _decode_line(self, line: str) -> list[StreamDelta]:
        line = line.rstrip("\r")
        if not line.startswith("data:"):
            return []

        data_str = line[len("data:"):].strip()
        if data_str == DONE_SENTINEL:
            self.done = True
            return [FinishDelta("stop")]

        try:
            return parse_event(data_str)
        except DecodeError as exc:
            self.dropped_events += 1
            logger.debug("Dropping malformed stream event: %s", exc)
            return []


async def decode_sse(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamDelta]:
    """Convenience wrapper: decode one SSE byte stream."""
    async for delta in StreamDecoder().decode(chunks):
        yield delta


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def parse_event(data_str: str) -> list[StreamDelta]:
    """
    Convert one ``data:`` payload into deltas.

    Within one event the order is: thinking, content, tool-call fragments,
    finish.  Raises ``DecodeError`` for payloads that are not JSON objects or
    whose ``choices`` entry is malformed.
    """
    try:
        data = json.loads(data_str)
    except (json.JSONDecodeError, ValueError) as exc:
        raise DecodeError(f"invalid JSON: {data_str[:200]!r}") from exc
    if not isinstance(data, dict):
        raise DecodeError(f"payload is not an object: {data_str[:200]!r}")

    choices = data.get("choices")
    if not choices:
        # usage reports and keep-alives carry no choices
        return []
    if not isinstance(choices, list) or not isinstance(choices[0], dict):
        raise DecodeError("malformed choices")

    choice = choices[0]
    delta = choice.get("delta") or {}
    if not isinstance(delta, dict):
        raise DecodeError("malformed delta")

    out: list[StreamDelta] = []

    for key in _REASONING_KEYS:
        reasoning = delta.get(key)
        if isinstance(reasoning, str) and reasoning:
            out.append(ThinkingDelta(reasoning))
            break

    content = delta.get("content")
    if isinstance(content, str) and content:
        if delta.get("role") == "thinking":
            out.append(ThinkingDelta(content))
        else:
            out.append(ContentDelta(content))

    raw_calls = delta.get("tool_calls")
    if isinstance(raw_calls, list):
        for position, raw in enumerate(raw_calls):
            fragment = _parse_fragment(raw, position)
            if fragment is not None:
                out.append(fragment)

    finish_reason = choice.get("finish_reason")
    if isinstance(finish_reason, str) and finish_reason:
        out.append(FinishDelta(finish_reason))

    return out


def _parse_fragment(raw: Any, position: int) -> ToolCallFragment | None:
    if not isinstance(raw, dict):
        return None
    index = raw.get("index", position)
    if not isinstance(index, int) or isinstance(index, bool) or index < 0:
        return None
    func = raw.get("function")
    if not isinstance(func, dict):
        func = {}
    return ToolCallFragment(
        index=index,
        id=_str_or_none(raw.get("id")),
        name=_str_or_none(func.get("name")),
        arguments=_str_or_none(func.get("arguments")),
    )


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None
