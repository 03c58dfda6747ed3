"""
One client connection bound to one session.

Translates inbound client events into session actor operations and forwards
the actor's downstream events to the client.  Turns are forwarded from
background tasks so the inbound read loop is never blocked by a turn.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Sequence

from termchat.errors import SessionClosedError, SessionStoppedError
from termchat.session.actor import GLOBALLY_STOPPED_MESSAGE, SessionActor, TurnStream
from termchat.session.events import (
    STATUS_READY,
    STATUS_STOPPED,
    SessionEvent,
    ai_status_event,
    error_event,
    pong_event,
    system_event,
)
from termchat.session.registry import STATUS_RUNNING, STATUS_STOPPED as REGISTRY_STOPPED, SessionRegistry

logger = logging.getLogger(__name__)

Send = Callable[[SessionEvent], Awaitable[None]]

UNKNOWN_MESSAGE_TYPE = "Unknown message type"
WELCOME_MESSAGE = "Connected to AI assistant. Ask me anything about your terminal."
WELCOME_WARNINGS_PREFIX = "Chat system connected with warnings: "


class ChatConnection:
    """
    Protocol handler for one client.

    Parameters
    ----------
    session_id : str
        Registry key of the session.
    actor : SessionActor
        The session this connection drives.
    registry : SessionRegistry
        Process-wide session table; stop/start go through it.
    warnings : Sequence[str]
        Setup problems reported in the welcome message, e.g. a missing API
        key.
    send : callable
        Async callback delivering one event to the client.
    """

    def __init__(
        self,
        session_id: str,
        actor: SessionActor,
        registry: SessionRegistry,
        send: Send,
        warnings: Sequence[str] = (),
    ) -> None:
        self.session_id = session_id
        self.actor = actor
        self.registry = registry
        self._send = send
        self.warnings = list(warnings)
        self._forwarders: set[asyncio.Task] = set()

    async def open(self) -> None:
        if self.registry.is_globally_stopped():
            await self.send(error_event(GLOBALLY_STOPPED_MESSAGE))
            return
        if self.warnings:
            await self.send(system_event(
                WELCOME_WARNINGS_PREFIX + " ".join(self.warnings),
                session_id=self.session_id,
                warnings=self.warnings,
            ))
        else:
            await self.send(system_event(WELCOME_MESSAGE, session_id=self.session_id))
        await self.send(ai_status_event(STATUS_READY))

    async def close(self) -> None:
        for task in list(self._forwarders):
            task.cancel()
        if self._forwarders:
            await asyncio.gather(*self._forwarders, return_exceptions=True)
        await self.registry.remove(self.session_id)

    async def send(self, event: SessionEvent) -> None:
        try:
            await self._send(event)
        except (ConnectionError, RuntimeError) as exc:
            logger.debug("Session %s: dropping event, client gone (%s)", self.session_id, exc)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_raw(self, raw: str) -> None:
        """Handle one text frame.  Anything that is not a JSON object is chat text."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            data = None
        if not isinstance(data, dict):
            data = {"type": "chat_message", "content": raw}
        await self.handle(data)

    async def handle(self, data: dict[str, Any]) -> None:
        msg_type = data.get("type", "")

        if msg_type == "chat_message":
            await self._chat(str(data.get("content", "")))
        elif msg_type == "stop_ai":
            await self.registry.update_status(self.session_id, REGISTRY_STOPPED)
            await self.send(ai_status_event(STATUS_STOPPED))
        elif msg_type == "start_ai":
            await self.registry.update_status(self.session_id, STATUS_RUNNING)
            await self.send(ai_status_event(STATUS_READY))
        elif msg_type == "clear_history":
            removed = await self.actor.clear_history()
            await self.send(system_event("Chat history cleared", removed=removed))
        elif msg_type == "ping":
            await self.send(pong_event())
        else:
            await self.send(error_event(UNKNOWN_MESSAGE_TYPE))

    async def _chat(self, content: str) -> None:
        content = content.strip()
        if not content:
            return
        try:
            turn = await self.actor.submit(content)
        except SessionStoppedError as exc:
            await self.send(error_event(str(exc)))
            return
        except SessionClosedError:
            return
        await self.registry.touch(self.session_id)
        task = asyncio.create_task(self._forward(turn))
        self._forwarders.add(task)
        task.add_done_callback(self._forwarders.discard)

    async def _forward(self, turn: TurnStream) -> None:
        async for event in turn:
            await self.send(event)
