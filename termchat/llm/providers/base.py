"""Abstract base class for LLM providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from termchat.llm.types import Message, StreamDelta


class Provider(ABC):
    """
    A provider encapsulates access to a single LLM endpoint.

    Implementations adapt their wire format into ``StreamDelta`` values so
    the session layer never sees provider-specific JSON.  Stream-ending
    failures are raised as ``TransportError`` or ``ProviderError``.
    """

    @abstractmethod
    async def stream(
        self,
        messages: list[Message],
        tools: list[dict] | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamDelta]:
        """Start a streaming chat completion and yield its deltas."""
        ...
        # Make the method an async generator so sub-classes can ``yield``.
        if False:  # pragma: no cover
            yield  # type: ignore[misc]

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g. ``"openrouter"``)."""
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Default model identifier."""
        ...
