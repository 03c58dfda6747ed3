"""
OpenAI-compatible chat-completion provider.

Works with any endpoint that speaks the ``/chat/completions`` streaming wire
protocol: OpenRouter, Groq, DeepInfra, vLLM, LM Studio and so on.

Dependencies: ``httpx`` (async HTTP client).  No vendor SDK needed.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

import httpx

from termchat.errors import ProviderError, TransportError
from termchat.llm.decoder import StreamDecoder
from termchat.llm.providers.base import Provider
from termchat.llm.types import Message, StreamDelta

logger = logging.getLogger(__name__)


class OpenAICompatProvider(Provider):
    """
    Stream-capable provider for any OpenAI-API-compatible endpoint.

    Parameters
    ----------
    url:
        Base URL of the API, e.g. ``"https://openrouter.ai/api/v1"``.
    model:
        Model identifier sent in the ``model`` field.
    api_key:
        Bearer token.  Pass ``""`` for unauthenticated local endpoints.
    timeout:
        Upper bound in seconds for connecting and for each read.
    temperature, max_tokens:
        Request defaults, overridable per call.
    provider_name:
        Label used in logs and ``stream_start`` events.
    transport:
        Optional ``httpx`` transport, mainly for tests.
    extra_headers:
        Headers merged into every request.
    """

    def __init__(
        self,
        url: str,
        model: str,
        api_key: str = "",
        timeout: float = 120.0,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        provider_name: str = "openai-compat",
        transport: httpx.AsyncBaseTransport | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._timeout = timeout
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._name = provider_name
        self._transport = transport
        self._extra_headers = dict(extra_headers or {})

    # ------------------------------------------------------------------
    # Provider interface
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    async def stream(
        self,
        messages: list[Message],
        tools: list[dict] | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamDelta]:
        body = self.build_body(
            messages,
            tools,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        url = f"{self._url}/chat/completions"
        decoder = StreamDecoder()

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST", url, json=body, headers=self._build_headers()
                ) as response:
                    if response.status_code < 200 or response.status_code >= 300:
                        raw = await response.aread()
                        text = raw.decode("utf-8", errors="replace")
                        logger.warning(
                            "Provider %s returned HTTP %d", self._name, response.status_code
                        )
                        raise ProviderError(response.status_code, text)

                    async for delta in decoder.decode(response.aiter_bytes()):
                        yield delta
        except httpx.TimeoutException as exc:
            logger.warning("Provider %s timed out: %s", self._name, exc)
            raise TransportError(f"Request timed out after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("Provider %s transport failure: %s", self._name, exc)
            raise TransportError(f"Network error: {exc}") from exc

        if decoder.dropped_events:
            logger.debug(
                "Stream from %s dropped %d malformed event(s)",
                self._name,
                decoder.dropped_events,
            )

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        headers.update(self._extra_headers)
        return headers

    def build_body(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict:
        body: dict = {
            "model": model or self._model,
            "messages": [m.to_wire() for m in messages],
            "temperature": self._temperature if temperature is None else temperature,
            "max_tokens": self._max_tokens if max_tokens is None else max_tokens,
            "stream": True,
        }
        if tools:
            body["tools"] = tools
            body["tool_choice"] = "auto"
        logger.info(
            "REQUEST: provider=%s model=%s tools=%d messages=%d",
            self._name,
            body["model"],
            len(tools) if tools else 0,
            len(messages),
        )
        return body
