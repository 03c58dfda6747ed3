"""
LLM Router -- manages named providers and drains streams into responses.

The router is the entry point for the rest of termchat when it needs an LLM
response.  ``stream()`` forwards deltas from the active provider untouched;
``complete()`` consumes a whole stream and returns an ``AssembledAssistant``.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, AsyncIterator

from termchat.llm.providers.base import Provider
from termchat.llm.tool_call_assembler import ToolCallAssembler
from termchat.llm.types import (
    AssembledAssistant,
    ContentDelta,
    FinishDelta,
    Message,
    StreamDelta,
    ThinkingDelta,
    ToolCallFragment,
)

if TYPE_CHECKING:
    from termchat.config import LLMConfig

logger = logging.getLogger(__name__)


class LLMRouter:
    """Routes chat requests to a named provider."""

    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}
        self._active: str | None = None

    # ------------------------------------------------------------------
    # Provider management
    # ------------------------------------------------------------------

    def register_provider(self, name: str, provider: Provider) -> None:
        """Register a provider under *name*.  Overwrites any existing entry."""
        self._providers[name] = provider
        if self._active is None:
            self._active = name

    def set_active(self, name: str) -> None:
        """
        Switch the active provider.

        Raises ``KeyError`` if *name* has not been registered.
        """
        if name not in self._providers:
            raise KeyError(
                f"Unknown provider {name!r}. "
                f"Registered: {list(self._providers)}"
            )
        self._active = name

    @property
    def active_name(self) -> str | None:
        return self._active

    @property
    def active_provider(self) -> Provider:
        """
        Return the active ``Provider`` instance.

        Raises ``RuntimeError`` if no provider is active.
        """
        if self._active is None or self._active not in self._providers:
            raise RuntimeError("No active LLM provider")
        return self._providers[self._active]

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def stream(
        self,
        messages: list[Message],
        tools: list[dict] | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamDelta]:
        provider = self.active_provider
        async for delta in provider.stream(
            messages,
            tools,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        ):
            yield delta

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict] | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AssembledAssistant:
        """
        Consume the full stream and return an ``AssembledAssistant``.

        Stream errors propagate; callers that need partial content should
        drive ``stream()`` themselves.
        """
        result = AssembledAssistant()
        assembler = ToolCallAssembler()
        content_parts: list[str] = []
        thinking_parts: list[str] = []

        async for delta in self.stream(
            messages,
            tools,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        ):
            if isinstance(delta, ContentDelta):
                content_parts.append(delta.text)
            elif isinstance(delta, ThinkingDelta):
                thinking_parts.append(delta.text)
            elif isinstance(delta, ToolCallFragment):
                assembler.feed(delta)
            elif isinstance(delta, FinishDelta) and result.finish_reason is None:
                result.finish_reason = delta.reason

        result.content = "".join(content_parts)
        result.thinking = "".join(thinking_parts)
        result.tool_calls = assembler.finish()
        return result


def check_api_key(llm: LLMConfig) -> str | None:
    """Return a user-facing warning when the configured API key looks unusable."""
    api_key = os.environ.get(llm.api_key_env, "") if llm.api_key_env else ""
    if not api_key:
        return (
            f"No API key found in {llm.api_key_env or '(unset)'}. "
            "Set it and restart the application."
        )
    if len(api_key) < 10:
        return f"The API key in {llm.api_key_env} appears to be invalid. Please check it."
    return None


def build_router(llm: LLMConfig) -> LLMRouter:
    """Create a router with one OpenAI-compatible provider from config."""
    from termchat.llm.providers.openai_compat import OpenAICompatProvider

    api_key = os.environ.get(llm.api_key_env, "") if llm.api_key_env else ""
    warning = check_api_key(llm)
    if warning:
        logger.warning("%s Requests to %s may be rejected", warning, llm.provider)

    extra_headers: dict[str, str] = {}
    if llm.provider == "openrouter":
        extra_headers = {"HTTP-Referer": "http://localhost", "X-Title": "termchat"}

    provider = OpenAICompatProvider(
        url=llm.api_base,
        model=llm.model,
        api_key=api_key,
        timeout=float(llm.timeout_seconds),
        temperature=llm.temperature,
        max_tokens=llm.max_tokens,
        provider_name=llm.provider,
        extra_headers=extra_headers,
    )
    router = LLMRouter()
    router.register_provider(llm.provider, provider)
    return router
