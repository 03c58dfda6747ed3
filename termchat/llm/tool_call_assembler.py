"""
Assembles streamed tool-call fragments into complete ToolCall objects.

Design goals:
  - Entries live in a list indexed by the fragment ``index``.  A fragment for
    an index beyond the current end grows the list; the gap is filled with
    empty placeholders.
  - ``id`` and ``name`` keep the last non-empty value seen.  A fragment that
    omits them never clears what is already there.
  - Argument fragments are concatenated in arrival order.  The text is not
    parsed here; invalid JSON is the dispatcher's concern.
  - ``finish()`` returns one ``ToolCall`` per entry that received any
    fragment, in index order.  Entries without an id get a generated one.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field

from termchat.llm.types import ToolCall, ToolCallFragment


def generate_call_id() -> str:
    return "call_" + secrets.token_hex(12)


@dataclass
class _Entry:
    id: str = ""
    name: str = ""
    arguments: list[str] = field(default_factory=list)
    seen: bool = False


class ToolCallAssembler:
    """Buffers ``ToolCallFragment`` deltas for one stream."""

    def __init__(self) -> None:
        self._entries: list[_Entry] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, fragment: ToolCallFragment) -> None:
        """Merge a single fragment into the entry at ``fragment.index``."""
        while len(self._entries) <= fragment.index:
            self._entries.append(_Entry())

        entry = self._entries[fragment.index]
        entry.seen = True

        if fragment.id:
            entry.id = fragment.id
        if fragment.name:
            entry.name = fragment.name
        if fragment.arguments:
            entry.arguments.append(fragment.arguments)

    def finish(self) -> list[ToolCall]:
        """
        Produce the final ordered list of tool calls.

        Placeholders that never received a fragment are skipped.  The
        assembler keeps its state, so calling ``finish()`` twice returns
        calls with the same ids.
        """
        calls: list[ToolCall] = []
        for entry in self._entries:
            if not entry.seen:
                continue
            if not entry.id:
                entry.id = generate_call_id()
            calls.append(
                ToolCall(
                    id=entry.id,
                    name=entry.name.strip(),
                    arguments="".join(entry.arguments),
                )
            )
        return calls

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._entries.clear()

    @property
    def has_calls(self) -> bool:
        return any(e.seen for e in self._entries)
