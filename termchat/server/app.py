"""
FastAPI application exposing chat sessions over websockets.

Routes:
    WS   /ws           one chat session per websocket connection
    GET  /health       liveness and session count
    GET  /sessions     registry snapshot
    POST /admin/stop   engage the global kill switch
    POST /admin/start  release the global kill switch
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from termchat import __version__
from termchat.runtime import Runtime
from termchat.server.connection import ChatConnection
from termchat.session.events import SessionEvent, error_event
from termchat.session.registry import new_session_id

logger = logging.getLogger(__name__)

router = APIRouter()


def _runtime(app: FastAPI) -> Runtime:
    return app.state.runtime


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    runtime = _runtime(websocket.app)
    await websocket.accept()

    session_id = new_session_id()
    actor = runtime.new_actor(session_id)
    await runtime.sessions.create(session_id, actor)
    logger.info("WebSocket connected: %s", session_id)

    async def send(event: SessionEvent) -> None:
        if websocket.client_state != WebSocketState.CONNECTED:
            raise ConnectionError("websocket closed")
        try:
            await websocket.send_text(json.dumps(event, default=str))
        except WebSocketDisconnect as exc:
            raise ConnectionError(f"websocket closed (code {exc.code})") from exc

    warnings = [runtime.api_key_warning] if runtime.api_key_warning else []
    connection = ChatConnection(session_id, actor, runtime.sessions, send, warnings)
    try:
        await connection.open()
        while True:
            raw = await websocket.receive_text()
            if len(raw.encode("utf-8")) > runtime.cfg.server.max_message_bytes:
                await connection.send(error_event("Message too large"))
                continue
            await connection.handle_raw(raw)
    except WebSocketDisconnect as exc:
        logger.info("WebSocket disconnected: %s (code: %s)", session_id, exc.code)
    finally:
        await connection.close()


# ---------------------------------------------------------------------------
# REST
# ---------------------------------------------------------------------------


@router.get("/health")
async def health(request: Request) -> dict:
    sessions = _runtime(request.app).sessions
    return {
        "status": "ok",
        "version": __version__,
        "sessions": len(sessions),
        "globally_stopped": sessions.is_globally_stopped(),
    }


@router.get("/sessions")
async def list_sessions(request: Request) -> dict:
    return {"sessions": await _runtime(request.app).sessions.snapshot()}


@router.post("/admin/stop")
async def admin_stop(request: Request) -> dict:
    await _runtime(request.app).sessions.set_global_stopped(True)
    return {"ok": True, "globally_stopped": True}


@router.post("/admin/start")
async def admin_start(request: Request) -> dict:
    await _runtime(request.app).sessions.set_global_stopped(False)
    return {"ok": True, "globally_stopped": False}


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(runtime: Runtime) -> FastAPI:
    """Build the FastAPI app serving *runtime*'s sessions."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await runtime.sessions.close_all()

    app = FastAPI(title="termchat", version=__version__, lifespan=lifespan)
    app.state.runtime = runtime
    app.include_router(router)
    return app


def run_server(runtime: Runtime, host: str | None = None, port: int | None = None) -> None:
    import uvicorn

    server_cfg = runtime.cfg.server
    uvicorn.run(
        create_app(runtime),
        host=host or server_cfg.host,
        port=port or server_cfg.port,
        log_level=runtime.cfg.logging.level.lower(),
    )
