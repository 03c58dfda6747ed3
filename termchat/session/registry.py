"""
Process-wide session registry.

Maps session ids to their actors and a coarse status, and carries the global
kill switch.  Mutations are serialized behind one ``asyncio.Lock``; reads
return copies so callers never observe a half-applied change.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from termchat.session.actor import SessionActor

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_STOPPED = "stopped"
STATUS_ERROR = "error"

_STATUSES = (STATUS_RUNNING, STATUS_STOPPED, STATUS_ERROR)


def new_session_id() -> str:
    return f"chat_{secrets.token_hex(6)}"


@dataclass
class RegistryEntry:
    session_id: str
    actor: SessionActor
    status: str = STATUS_RUNNING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }


class SessionRegistry:
    """Concurrency-safe table of live sessions."""

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._lock = asyncio.Lock()
        self._globally_stopped = False

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, session_id: str, actor: SessionActor) -> RegistryEntry:
        async with self._lock:
            if session_id in self._entries:
                raise ValueError(f"Session {session_id!r} already registered")
            entry = RegistryEntry(session_id=session_id, actor=actor)
            self._entries[session_id] = entry
        logger.info("Session %s registered (%d active)", session_id, len(self._entries))
        return entry

    async def remove(self, session_id: str) -> RegistryEntry | None:
        """Unregister and close a session.  Unknown ids are ignored."""
        async with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            return None
        await entry.actor.close()
        logger.info("Session %s removed (%d active)", session_id, len(self._entries))
        return entry

    async def update_status(self, session_id: str, status: str) -> RegistryEntry:
        """
        Set a session's status.

        ``running`` and ``stopped`` are forwarded to the actor as
        ``resume`` / ``stop``.  Raises ``KeyError`` for unknown sessions.
        """
        if status not in _STATUSES:
            raise ValueError(f"Unknown session status {status!r}")
        async with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                raise KeyError(session_id)
            entry.status = status
            entry.last_activity = datetime.now(timezone.utc)
            actor = entry.actor
        if status == STATUS_STOPPED:
            await actor.stop()
        elif status == STATUS_RUNNING:
            await actor.resume()
        return entry

    async def touch(self, session_id: str) -> None:
        async with self._lock:
            entry = self._entries.get(session_id)
            if entry is not None:
                entry.last_activity = datetime.now(timezone.utc)

    async def set_global_stopped(self, stopped: bool) -> None:
        async with self._lock:
            self._globally_stopped = stopped
        logger.warning("Global AI stop %s", "engaged" if stopped else "released")

    async def close_all(self) -> None:
        async with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            await entry.actor.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def is_globally_stopped(self) -> bool:
        return self._globally_stopped

    async def get(self, session_id: str) -> RegistryEntry | None:
        async with self._lock:
            return self._entries.get(session_id)

    async def snapshot(self) -> list[dict[str, Any]]:
        async with self._lock:
            return [entry.to_dict() for entry in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)
