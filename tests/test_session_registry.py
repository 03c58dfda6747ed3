"""Tests for the process-wide session registry."""

from __future__ import annotations

import asyncio
import re

import pytest

from tests.mock_providers import ScriptedProvider, make_router, text_script
from termchat.errors import SessionStoppedError
from termchat.session.actor import SessionActor
from termchat.session.continuation import ContinuationController
from termchat.session.registry import (
    STATUS_RUNNING,
    STATUS_STOPPED,
    SessionRegistry,
    new_session_id,
)
from termchat.tools.dispatch import ToolDispatcher
from termchat.tools.registry import ToolRegistry


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def new_actor(registry):
    controller = ContinuationController(
        make_router(ScriptedProvider([text_script("ok")])),
        ToolDispatcher(ToolRegistry()),
    )

    def _new(session_id):
        return SessionActor(
            session_id, controller, is_globally_stopped=registry.is_globally_stopped
        )

    return _new


def test_session_id_format():
    assert re.fullmatch(r"chat_[0-9a-f]{12}", new_session_id())
    assert new_session_id() != new_session_id()


class TestMutations:
    async def test_create_and_get(self, registry, new_actor):
        actor = new_actor("chat_a")
        entry = await registry.create("chat_a", actor)
        assert entry.status == STATUS_RUNNING
        assert (await registry.get("chat_a")).actor is actor
        assert len(registry) == 1

    async def test_duplicate_create_raises(self, registry, new_actor):
        await registry.create("chat_a", new_actor("chat_a"))
        with pytest.raises(ValueError):
            await registry.create("chat_a", new_actor("chat_a"))

    async def test_remove_closes_actor(self, registry, new_actor):
        actor = new_actor("chat_a")
        await registry.create("chat_a", actor)
        removed = await registry.remove("chat_a")
        assert removed.actor is actor
        assert actor.closed
        assert await registry.get("chat_a") is None

    async def test_remove_unknown_is_ignored(self, registry):
        assert await registry.remove("chat_missing") is None

    async def test_concurrent_creates(self, registry, new_actor):
        ids = [f"chat_{i}" for i in range(20)]
        await asyncio.gather(*(registry.create(i, new_actor(i)) for i in ids))
        snapshot = await registry.snapshot()
        assert sorted(s["session_id"] for s in snapshot) == sorted(ids)
        await registry.close_all()
        assert len(registry) == 0


class TestStatus:
    async def test_stopped_status_stops_actor(self, registry, new_actor):
        actor = new_actor("chat_a")
        await registry.create("chat_a", actor)

        await registry.update_status("chat_a", STATUS_STOPPED)
        assert await actor.stopped()
        with pytest.raises(SessionStoppedError):
            await actor.submit("hi")

        entry = await registry.update_status("chat_a", STATUS_RUNNING)
        assert entry.status == STATUS_RUNNING
        assert not await actor.stopped()
        await actor.close()

    async def test_unknown_session(self, registry):
        with pytest.raises(KeyError):
            await registry.update_status("chat_missing", STATUS_STOPPED)

    async def test_unknown_status(self, registry, new_actor):
        await registry.create("chat_a", new_actor("chat_a"))
        with pytest.raises(ValueError):
            await registry.update_status("chat_a", "paused")

    async def test_snapshot_shape(self, registry, new_actor):
        await registry.create("chat_a", new_actor("chat_a"))
        (row,) = await registry.snapshot()
        assert set(row) == {"session_id", "status", "created_at", "last_activity"}


class TestGlobalStop:
    async def test_kill_switch_blocks_every_session(self, registry, new_actor):
        first, second = new_actor("chat_a"), new_actor("chat_b")
        await registry.create("chat_a", first)
        await registry.create("chat_b", second)

        await registry.set_global_stopped(True)
        assert registry.is_globally_stopped()
        for actor in (first, second):
            with pytest.raises(SessionStoppedError) as exc_info:
                await actor.submit("hi")
            assert exc_info.value.globally

        await registry.set_global_stopped(False)
        turn = await first.submit("hi")
        await turn.collect()
        await registry.close_all()
