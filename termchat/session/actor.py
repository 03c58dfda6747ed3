"""
Session actor -- one per conversation.

The actor owns the message history, the run state and the ``stopped`` flag.
Every read and write of that state is a command on a single inbox queue
drained by one control task, so operations are serialized without locks.

A turn (stream, tool rounds, continuations) runs in its own task and talks
back to the actor through the same inbox.  The control loop therefore never
waits on network or tool I/O, and ``stop`` is observed at the next
``submit`` rather than interrupting the turn in flight.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from termchat.errors import (
    SessionClosedError,
    SessionStoppedError,
    StreamError,
    ToolExecutionError,
)
from termchat.llm.types import Message, system_message, user_message
from termchat.session.events import (
    STATUS_READY,
    STATUS_STOPPED,
    SessionEvent,
    ai_status_event,
    error_event,
)

if TYPE_CHECKING:
    from termchat.session.continuation import ContinuationController
    from termchat.session.summarize import ConversationSummarizer

logger = logging.getLogger(__name__)

STOPPED_MESSAGE = "AI session is currently stopped. Send a 'start_ai' message to resume."
GLOBALLY_STOPPED_MESSAGE = "AI is globally stopped."


def last_user_request(history: list[Message]) -> str:
    for message in reversed(history):
        if message.role == "user":
            return message.content
    return ""


class SessionState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    EXECUTING_TOOLS = "executing_tools"


class TurnStream:
    """
    Live sequence of downstream events for one turn.

    Iterate with ``async for``; iteration ends when the turn is complete.
    The buffer is unbounded so a slow consumer never stalls the turn.
    """

    def __init__(self, content: str = "", tool_results: list[Message] | None = None) -> None:
        self.content = content
        self.tool_results = tool_results
        self._queue: asyncio.Queue[SessionEvent | None] = asyncio.Queue()
        self._finished = False

    @property
    def is_continuation(self) -> bool:
        return self.tool_results is not None

    @property
    def finished(self) -> bool:
        return self._finished

    async def emit(self, event: SessionEvent) -> None:
        self.put(event)

    def put(self, event: SessionEvent) -> None:
        if not self._finished:
            self._queue.put_nowait(event)

    def finish(self) -> None:
        if not self._finished:
            self._finished = True
            self._queue.put_nowait(None)

    def __aiter__(self) -> TurnStream:
        return self

    async def __anext__(self) -> SessionEvent:
        event = await self._queue.get()
        if event is None:
            # Keep the sentinel so repeated iteration also terminates.
            self._queue.put_nowait(None)
            raise StopAsyncIteration
        return event

    async def collect(self) -> list[SessionEvent]:
        """Drain the turn and return every event."""
        return [event async for event in self]


@dataclass
class _Command:
    op: str
    payload: Any = None
    reply: asyncio.Future | None = None


class SessionActor:
    """
    Serialized owner of one conversation.

    Parameters
    ----------
    session_id : str
        Identifier used in logs and handed to tools.
    controller : ContinuationController
        Runs the generate / execute / continue loop of each turn.
    system_prompt : str
        Seeds the history with a system message when non-empty.
    summarizer : ConversationSummarizer | None
        Enables automatic compaction before a turn once the history grows
        past the summarizer's threshold.
    terminal_session_id : str | None
        Terminal session the terminal tools act on.
    is_globally_stopped : callable
        Global kill switch, consulted on every ``submit``.
    """

    def __init__(
        self,
        session_id: str,
        controller: ContinuationController,
        *,
        system_prompt: str = "",
        summarizer: ConversationSummarizer | None = None,
        terminal_session_id: str | None = None,
        is_globally_stopped: Callable[[], bool] | None = None,
    ) -> None:
        self.session_id = session_id
        self.terminal_session_id = terminal_session_id
        self._controller = controller
        self._summarizer = summarizer
        self._is_globally_stopped = is_globally_stopped or (lambda: False)

        self._messages: list[Message] = []
        if system_prompt:
            self._messages.append(system_message(system_prompt))
        self._state = SessionState.IDLE
        self._stopped = False
        self._closed = False

        self._inbox: asyncio.Queue[_Command] = asyncio.Queue()
        self._loop_task: asyncio.Task | None = None
        self._turn_task: asyncio.Task | None = None
        self._current: TurnStream | None = None
        self._pending: deque[TurnStream] = deque()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the control task.  Called implicitly by every operation."""
        if self._loop_task is None and not self._closed:
            self._loop_task = asyncio.create_task(
                self._run(), name=f"session-{self.session_id}"
            )

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Cancel the turn in flight, end all pending turns and stop the actor."""
        if self._closed:
            return
        if self._loop_task is None:
            self._closed = True
            return
        try:
            await self._call("close")
        except SessionClosedError:
            pass
        await asyncio.gather(self._loop_task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def submit(self, content: str) -> TurnStream:
        """
        Accept a new user message and return the turn's event stream.

        Raises ``SessionStoppedError`` when the session or the whole process
        is stopped.  A submit that arrives while a turn is in flight is
        queued and started once the actor is idle again.
        """
        return await self._call("submit", content)

    async def continue_autonomously(self, tool_results: list[Message]) -> TurnStream:
        """Append *tool_results* and let the agent continue without user input."""
        return await self._call("continue", list(tool_results))

    async def get_history(self) -> list[Message]:
        return await self._call("get_history")

    async def replace_history(self, messages: list[Message]) -> None:
        await self._call("replace_history", list(messages))

    async def append(self, *messages: Message) -> None:
        await self._call("append", list(messages))

    async def clear_history(self) -> int:
        """Drop every non-system message.  Returns how many were removed."""
        return await self._call("clear_history")

    async def stop(self) -> None:
        await self._call("stop")

    async def resume(self) -> None:
        await self._call("resume")

    async def stopped(self) -> bool:
        return await self._call("stopped")

    async def state(self) -> SessionState:
        return await self._call("state")

    async def set_state(self, state: SessionState) -> None:
        await self._call("set_state", state)

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    async def _call(self, op: str, payload: Any = None) -> Any:
        if self._closed:
            raise SessionClosedError(f"Session {self.session_id} is closed")
        self.start()
        reply: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait(_Command(op, payload, reply))
        return await reply

    async def _run(self) -> None:
        while True:
            cmd = await self._inbox.get()
            handler = getattr(self, f"_op_{cmd.op}")
            try:
                result = handler(cmd.payload)
            except Exception as exc:
                if cmd.reply is None:
                    logger.exception("Session %s: %s command failed", self.session_id, cmd.op)
                elif not cmd.reply.done():
                    cmd.reply.set_exception(exc)
            else:
                if cmd.reply is not None and not cmd.reply.done():
                    cmd.reply.set_result(result)
            if cmd.op == "close":
                break

        # Anything still queued after close fails instead of hanging.
        while not self._inbox.empty():
            cmd = self._inbox.get_nowait()
            if cmd.reply is not None and not cmd.reply.done():
                cmd.reply.set_exception(
                    SessionClosedError(f"Session {self.session_id} is closed")
                )

    # -- command handlers (run on the control task only) ----------------

    def _op_submit(self, content: str) -> TurnStream:
        if self._is_globally_stopped():
            raise SessionStoppedError(GLOBALLY_STOPPED_MESSAGE, globally=True)
        if self._stopped:
            raise SessionStoppedError(STOPPED_MESSAGE)
        turn = TurnStream(content)
        self._enqueue(turn)
        return turn

    def _op_continue(self, tool_results: list[Message]) -> TurnStream:
        turn = TurnStream(tool_results=tool_results)
        self._enqueue(turn)
        return turn

    def _op_get_history(self, _: Any) -> list[Message]:
        return list(self._messages)

    def _op_replace_history(self, messages: list[Message]) -> None:
        logger.info(
            "Session %s: history replaced (%d -> %d messages)",
            self.session_id,
            len(self._messages),
            len(messages),
        )
        self._messages = messages

    def _op_append(self, messages: list[Message]) -> None:
        self._messages.extend(messages)

    def _op_clear_history(self, _: Any) -> int:
        kept = [m for m in self._messages if m.role == "system"]
        removed = len(self._messages) - len(kept)
        self._messages = kept
        return removed

    def _op_stop(self, _: Any) -> None:
        self._stopped = True

    def _op_resume(self, _: Any) -> None:
        self._stopped = False

    def _op_stopped(self, _: Any) -> bool:
        return self._stopped

    def _op_state(self, _: Any) -> SessionState:
        return self._state

    def _op_set_state(self, state: SessionState) -> None:
        self._state = state

    def _op_turn_finished(self, turn: TurnStream) -> None:
        turn.put(ai_status_event(STATUS_STOPPED if self._stopped else STATUS_READY))
        turn.finish()
        self._current = None
        self._turn_task = None
        self._state = SessionState.IDLE
        if self._pending:
            self._start_turn(self._pending.popleft())

    def _op_close(self, _: Any) -> None:
        self._closed = True
        if self._turn_task is not None:
            self._turn_task.cancel()
        for turn in [self._current, *self._pending]:
            if turn is not None:
                turn.finish()
        self._pending.clear()
        self._current = None
        self._turn_task = None

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def _enqueue(self, turn: TurnStream) -> None:
        if self._current is None:
            self._start_turn(turn)
        else:
            self._pending.append(turn)

    def _start_turn(self, turn: TurnStream) -> None:
        self._current = turn
        self._state = SessionState.STREAMING
        self._turn_task = asyncio.create_task(
            self._run_turn(turn), name=f"turn-{self.session_id}"
        )

    async def _run_turn(self, turn: TurnStream) -> None:
        try:
            if turn.is_continuation:
                history = await self.get_history()
                response = await self._controller.continue_autonomously(
                    self,
                    turn.tool_results or [],
                    last_user_request(history),
                    turn.emit,
                )
                await self._controller.follow_through(
                    self, response, last_user_request(history), turn.emit
                )
            else:
                await self._maybe_auto_summarize()
                await self.append(user_message(turn.content))
                await self._controller.run_turn(self, turn.content, turn.emit)
        except SessionClosedError:
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Session %s: turn failed", self.session_id)
            await turn.emit(error_event(f"Unexpected error: {exc}"))
        finally:
            if not self._closed:
                self._inbox.put_nowait(_Command("turn_finished", turn))

    async def _maybe_auto_summarize(self) -> None:
        if self._summarizer is None:
            return
        history = await self.get_history()
        if not self._summarizer.should_auto_summarize(history):
            return
        try:
            outcome = await self._summarizer.summarize(history, "automatic_length_limit")
        except (StreamError, ToolExecutionError) as exc:
            logger.warning("Session %s: automatic summarization failed: %s", self.session_id, exc)
            return
        if outcome.action == "summarized":
            await self.replace_history(outcome.messages)