"""Tests for the client protocol handler and the FastAPI binding."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from tests.mock_providers import ScriptedProvider, make_router, text_script
from tests.mock_tools import FakeWeb
from termchat.backends.local import LocalFileSystem
from termchat.config import TermchatConfig, load_config
from termchat.runtime import Runtime
from termchat.server.app import create_app
from termchat.server.connection import (
    UNKNOWN_MESSAGE_TYPE,
    WELCOME_MESSAGE,
    WELCOME_WARNINGS_PREFIX,
    ChatConnection,
)
from termchat.session.actor import GLOBALLY_STOPPED_MESSAGE, STOPPED_MESSAGE
from termchat.session.registry import STATUS_STOPPED


def _runtime(tmp_path, provider):
    return Runtime(
        TermchatConfig(),
        router=make_router(provider),
        filesystem=LocalFileSystem(tmp_path),
        web=FakeWeb(),
    )


@pytest.fixture
async def conn(tmp_path):
    """A ChatConnection whose sent events are collected in ``conn.sent``."""
    provider = ScriptedProvider([text_script("Hello!")])
    runtime = _runtime(tmp_path, provider)
    actor = runtime.new_actor("chat_test")
    await runtime.sessions.create("chat_test", actor)
    sent = []

    async def send(event):
        sent.append(event)

    connection = ChatConnection("chat_test", actor, runtime.sessions, send)
    connection.sent = sent
    connection.provider = provider
    yield connection
    await runtime.sessions.close_all()


async def _drain(connection):
    await asyncio.gather(*list(connection._forwarders))


class TestChatConnection:
    async def test_open_sends_welcome_and_ready(self, conn):
        await conn.open()
        assert conn.sent[0]["type"] == "system"
        assert conn.sent[0]["content"] == WELCOME_MESSAGE
        assert conn.sent[0]["session_id"] == "chat_test"
        assert conn.sent[1]["status"] == "ready"

    async def test_open_reports_setup_warnings(self, conn):
        conn.warnings = ["No API key found in OPENROUTER_API_KEY."]
        await conn.open()
        welcome = conn.sent[0]
        assert welcome["type"] == "system"
        assert welcome["content"] == WELCOME_WARNINGS_PREFIX + "No API key found in OPENROUTER_API_KEY."
        assert welcome["warnings"] == conn.warnings
        assert conn.sent[1]["status"] == "ready"

    async def test_chat_message_streams_turn(self, conn):
        await conn.handle({"type": "chat_message", "content": "hi"})
        await _drain(conn)

        types = [e["type"] for e in conn.sent]
        assert "stream_start" in types
        assert [e["content"] for e in conn.sent if e["type"] == "stream_chunk"] == ["Hello!"]
        assert conn.sent[-1]["type"] == "ai_status"
        assert conn.sent[-1]["status"] == "ready"

    async def test_plain_text_frame_is_chat(self, conn):
        await conn.handle_raw("just text")
        await _drain(conn)
        assert conn.provider.calls[0][-1].content == "just text"

    async def test_blank_chat_is_ignored(self, conn):
        await conn.handle({"type": "chat_message", "content": "   "})
        assert conn.sent == []
        assert conn.provider.call_count == 0

    async def test_ping(self, conn):
        await conn.handle_raw(json.dumps({"type": "ping"}))
        assert conn.sent[0]["type"] == "pong"

    async def test_unknown_type(self, conn):
        await conn.handle({"type": "dance"})
        assert conn.sent[0]["type"] == "error"
        assert conn.sent[0]["content"] == UNKNOWN_MESSAGE_TYPE

    async def test_stop_and_start(self, conn):
        await conn.handle({"type": "stop_ai"})
        assert conn.sent[-1]["status"] == "stopped"
        assert (await conn.registry.get("chat_test")).status == STATUS_STOPPED

        await conn.handle({"type": "chat_message", "content": "hi"})
        assert conn.sent[-1]["type"] == "error"
        assert conn.sent[-1]["content"] == STOPPED_MESSAGE

        await conn.handle({"type": "start_ai"})
        assert conn.sent[-1]["status"] == "ready"
        await conn.handle({"type": "chat_message", "content": "hi"})
        await _drain(conn)
        assert conn.provider.call_count == 1

    async def test_global_stop(self, conn):
        await conn.registry.set_global_stopped(True)
        await conn.handle({"type": "chat_message", "content": "hi"})
        assert conn.sent[-1]["content"] == GLOBALLY_STOPPED_MESSAGE

    async def test_clear_history(self, conn):
        await conn.handle({"type": "chat_message", "content": "hi"})
        await _drain(conn)
        await conn.handle({"type": "clear_history"})
        assert conn.sent[-1]["type"] == "system"
        assert conn.sent[-1]["removed"] == 2
        assert [m.role for m in await conn.actor.get_history()] == ["system"]

    async def test_close_unregisters(self, conn):
        await conn.close()
        assert await conn.registry.get("chat_test") is None
        assert conn.actor.closed

    async def test_send_failure_is_swallowed(self, conn):
        async def broken(event):
            raise ConnectionError("gone")

        conn._send = broken
        await conn.handle({"type": "ping"})


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------


@pytest.fixture
def client(tmp_path):
    runtime = _runtime(tmp_path, ScriptedProvider([text_script("Hi from the model")]))
    with TestClient(create_app(runtime)) as test_client:
        yield test_client


def _receive_until_ready(ws):
    events = []
    while True:
        event = ws.receive_json()
        events.append(event)
        if event["type"] == "ai_status" and event["status"] == "ready":
            return events


class TestApp:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["sessions"] == 0
        assert body["globally_stopped"] is False

    def test_websocket_turn(self, client):
        with client.websocket_connect("/ws") as ws:
            welcome = ws.receive_json()
            assert welcome["type"] == "system"
            assert ws.receive_json()["status"] == "ready"

            sessions = client.get("/sessions").json()["sessions"]
            assert [s["session_id"] for s in sessions] == [welcome["session_id"]]

            ws.send_json({"type": "chat_message", "content": "hello"})
            events = _receive_until_ready(ws)
            chunks = [e["content"] for e in events if e["type"] == "stream_chunk"]
            assert "".join(chunks) == "Hi from the model"

            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_admin_kill_switch(self, client):
        assert client.post("/admin/stop").json()["globally_stopped"] is True
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["content"] == GLOBALLY_STOPPED_MESSAGE
            ws.send_json({"type": "chat_message", "content": "hello"})
            assert ws.receive_json()["content"] == GLOBALLY_STOPPED_MESSAGE

        assert client.post("/admin/start").json()["globally_stopped"] is False
        assert client.get("/health").json()["globally_stopped"] is False


class TestApiKeyWarning:
    def test_missing_key_reported_on_connect(self, tmp_path, monkeypatch):
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        cfg = load_config(tmp_path / "absent.yaml")
        runtime = Runtime(cfg, filesystem=LocalFileSystem(tmp_path), web=FakeWeb())
        assert runtime.api_key_warning.startswith("No API key found in OPENROUTER_API_KEY")

        with TestClient(create_app(runtime)) as test_client:
            with test_client.websocket_connect("/ws") as ws:
                welcome = ws.receive_json()
                assert welcome["content"].startswith(WELCOME_WARNINGS_PREFIX)
                assert welcome["warnings"] == [runtime.api_key_warning]

    def test_injected_router_skips_check(self, tmp_path, monkeypatch):
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        runtime = _runtime(tmp_path, ScriptedProvider([]))
        assert runtime.api_key_warning is None
