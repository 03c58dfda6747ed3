"""
Continuation controller -- drives one turn from first stream to final text.

The controller:
1. Streams a generation request built from the full ordered history
2. Forwards content and thinking deltas as ``stream_chunk`` events
3. Assembles tool calls once the stream finishes
4. Executes them in declared order through the dispatcher
5. Appends the results and issues a continuation request
6. Loops until a response carries no tool calls, or the round cap is hit

All history reads and writes go through the *host* (the owning session
actor), which must provide ``session_id``, ``terminal_session_id``,
``get_history()``, ``append(*messages)``, ``replace_history(messages)``
and ``set_state(state)``.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from termchat.errors import StreamError
from termchat.llm.router import LLMRouter
from termchat.llm.tool_call_assembler import ToolCallAssembler
from termchat.llm.types import (
    AssembledAssistant,
    ContentDelta,
    FinishDelta,
    Message,
    ThinkingDelta,
    ToolCall,
    ToolCallFragment,
    assistant_message,
    tool_message,
    user_message,
)
from termchat.session.actor import SessionActor, SessionState
from termchat.session.events import (
    ROLE_THINKING,
    STATUS_THINKING,
    STATUS_WORKING,
    SessionEvent,
    ai_status_event,
    error_event,
    stream_chunk_event,
    stream_end_event,
    stream_start_event,
    tool_result_event,
    tool_usage_event,
)
from termchat.tools.base import ToolContext
from termchat.tools.dispatch import ToolDispatcher, result_content

logger = logging.getLogger(__name__)

Emit = Callable[[SessionEvent], Awaitable[None]]

CONTINUATION_PROMPT = (
    "Based on the tool results above, continue to fully answer the user's "
    "original question. If you need more information, use additional tools. "
    "If you have enough information, provide a complete answer. Continue "
    "taking actions until you've completely fulfilled the user's request."
)


def build_continuation_prompt(original_request: str) -> str:
    if not original_request:
        return CONTINUATION_PROMPT
    return f"{CONTINUATION_PROMPT}\n\nOriginal user request: {original_request}"


def max_continuations_message(limit: int) -> str:
    return (
        f"Reached maximum of {limit} tool call rounds. "
        "Please provide more specific guidance."
    )


class ContinuationController:
    """
    Runs the generate / execute / continue loop for one session.

    Parameters
    ----------
    router : LLMRouter
        Provider router used for every generation request.
    dispatcher : ToolDispatcher
        Executes assembled tool calls.  Its registry also supplies the tool
        schemas sent with each request.
    model : str | None
        Model override; ``None`` uses the provider default.
    max_continuations : int
        Max tool-call rounds per turn before the turn is ended.
    """

    def __init__(
        self,
        router: LLMRouter,
        dispatcher: ToolDispatcher,
        *,
        model: str | None = None,
        max_continuations: int = 20,
    ) -> None:
        self.router = router
        self.dispatcher = dispatcher
        self.model = model or None
        self.max_continuations = max_continuations

    @property
    def model_name(self) -> str:
        if self.model:
            return self.model
        try:
            return self.router.active_provider.model
        except RuntimeError:
            return ""

    def tool_schemas(self) -> list[dict] | None:
        return self.dispatcher.registry.to_openai_schema() or None

    # ------------------------------------------------------------------
    # Turn entry points
    # ------------------------------------------------------------------

    async def run_turn(self, host: SessionActor, user_request: str, emit: Emit) -> int:
        """
        Run a turn whose user message is already in the host's history.

        Returns the number of tool rounds performed.
        """
        await emit(ai_status_event(STATUS_THINKING))
        history = await host.get_history()
        response = await self.generate(host, history, emit)
        return await self.follow_through(host, response, user_request, emit)

    async def continue_autonomously(
        self,
        host: SessionActor,
        tool_results: list[Message],
        original_request: str,
        emit: Emit,
    ) -> AssembledAssistant:
        """
        Append *tool_results* and issue one follow-up generation request.

        The continuation prompt rides along as a trailing user message; it
        is not stored in history.
        """
        if tool_results:
            await host.append(*tool_results)
        await emit(ai_status_event(STATUS_THINKING))
        history = await host.get_history()
        prompt = user_message(build_continuation_prompt(original_request))
        return await self.generate(host, history + [prompt], emit)

    async def follow_through(
        self,
        host: SessionActor,
        response: AssembledAssistant,
        original_request: str,
        emit: Emit,
    ) -> int:
        """Handle *response* and every follow-up until the turn completes."""
        rounds = 0
        while True:
            if response.error is not None:
                # Partial text is kept as a finished message, never retried.
                if response.content:
                    await host.append(assistant_message(response.content))
                await emit(error_event(response.error))
                return rounds

            if not response.tool_calls:
                await host.append(assistant_message(response.content))
                return rounds

            if rounds >= self.max_continuations:
                msg = max_continuations_message(self.max_continuations)
                logger.warning("Session %s: %s", host.session_id, msg)
                await host.append(assistant_message(msg))
                chunk = stream_chunk_event(msg)
                if chunk is not None:
                    await emit(chunk)
                return rounds

            rounds += 1
            await host.append(assistant_message(response.content, response.tool_calls))
            await emit(tool_usage_event(response.tool_calls))
            await emit(ai_status_event(STATUS_WORKING))

            results = await self.execute_tools(host, response.tool_calls, emit)
            response = await self.continue_autonomously(host, results, original_request, emit)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self, host: SessionActor, messages: list[Message], emit: Emit
    ) -> AssembledAssistant:
        """
        Stream one generation request and assemble the response.

        Stream failures do not raise; they are reported through
        ``AssembledAssistant.error`` with whatever content arrived first.
        """
        await host.set_state(SessionState.STREAMING)
        await emit(stream_start_event(self.model_name))

        result = AssembledAssistant()
        assembler = ToolCallAssembler()
        content_parts: list[str] = []
        thinking_parts: list[str] = []

        try:
            async for delta in self.router.stream(
                messages, self.tool_schemas(), model=self.model
            ):
                if isinstance(delta, ContentDelta):
                    content_parts.append(delta.text)
                    chunk = stream_chunk_event(delta.text)
                    if chunk is not None:
                        await emit(chunk)
                elif isinstance(delta, ThinkingDelta):
                    thinking_parts.append(delta.text)
                    chunk = stream_chunk_event(delta.text, role=ROLE_THINKING)
                    if chunk is not None:
                        await emit(chunk)
                elif isinstance(delta, ToolCallFragment):
                    assembler.feed(delta)
                elif isinstance(delta, FinishDelta) and result.finish_reason is None:
                    result.finish_reason = delta.reason
        except StreamError as exc:
            logger.warning("Session %s: stream failed: %s", host.session_id, exc)
            result.error = str(exc)

        result.content = "".join(content_parts)
        result.thinking = "".join(thinking_parts)
        if result.error is not None:
            await emit(stream_end_event("error"))
            return result

        result.tool_calls = assembler.finish()
        reason = "tool_calls" if result.tool_calls else (result.finish_reason or "stop")
        await emit(stream_end_event(reason))
        return result

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    async def execute_tools(
        self, host: SessionActor, tool_calls: list[ToolCall], emit: Emit
    ) -> list[Message]:
        """
        Execute *tool_calls* in declared order.

        Returns one ``tool`` message per call; the caller appends them.
        """
        await host.set_state(SessionState.EXECUTING_TOOLS)
        results: list[Message] = []
        for tc in tool_calls:
            context = ToolContext(
                session_id=host.session_id,
                history=await host.get_history(),
                replace_history=host.replace_history,
                terminal_session_id=host.terminal_session_id,
            )
            result = await self.dispatcher.execute(tc.name, tc.arguments, context)
            results.append(tool_message(tc.id, result_content(result), name=tc.name))
            await emit(tool_result_event(tc, result))
        return results
