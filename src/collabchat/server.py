"""FastAPI server for collabchat rooms."""

import asyncio
import logging

from fastapi import FastAPI, Header, Query, WebSocket, WebSocketDisconnect

from .auth import SessionAuthenticator, extract_token
from .backends import get_generator, get_project_store
from .config import get_jwt_secret
from .core import Session
from .errors import HandshakeError
from .protocol import (
    DELETE_MESSAGE,
    PROJECT_MESSAGE,
    connect_frame,
    delete_from_dict,
    message_from_dict,
    parse_frame,
)
from .relay import AIRelay
from .rooms import RoomRegistry
from .router import MessageRouter

logger = logging.getLogger(__name__)

app = FastAPI(title="collabchat", version="0.1.0")

# Collaborators (built on first use)
_registry: RoomRegistry | None = None
_router: MessageRouter | None = None
_authenticator: SessionAuthenticator | None = None


def _get_registry() -> RoomRegistry:
    global _registry
    if _registry is None:
        _registry = RoomRegistry()
    return _registry


def _get_router() -> MessageRouter:
    """Lazily build the router and its AI relay."""
    global _router
    if _router is None:
        generator = get_generator()
        logger.info("Using generator: %s", generator.name)
        _router = MessageRouter(_get_registry())
        _router.relay = AIRelay(generator, _router)
    return _router


def _get_authenticator() -> SessionAuthenticator:
    global _authenticator
    if _authenticator is None:
        store = get_project_store()
        logger.info("Using project store: %s", store.name)
        _authenticator = SessionAuthenticator(store, get_jwt_secret())
    return _authenticator


def _who(session: Session) -> str:
    return session.identity.email or session.identity.id


async def _pump(websocket: WebSocket, session: Session) -> None:
    """Write queued frames to the socket until it fails or is cancelled."""
    while True:
        frame = await session.outbox.get()
        try:
            await websocket.send_json(frame)
        except Exception as e:
            logger.warning("Failed to send to %s in room %s: %s", session.connection_id, session.room_id, e)
            return


def _dispatch(router: MessageRouter, session: Session, raw) -> None:
    try:
        event, data = parse_frame(raw)
        if event == PROJECT_MESSAGE:
            msg = message_from_dict(data, fallback=session.identity)
        elif event == DELETE_MESSAGE:
            notice = delete_from_dict(data)
        else:
            raise ValueError(f"{event} is not a client event")
    except ValueError as e:
        logger.warning("Ignoring bad frame from %s: %s", session.connection_id, e)
        return

    if event == PROJECT_MESSAGE:
        router.handle_chat(session, msg)
    else:
        router.handle_delete(session, notice)


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.get("/api/rooms/{project_id}")
async def get_room(project_id: str):
    """Return how many sessions are connected to a project's room."""
    return {"room": project_id, "members": len(_get_registry().members(project_id))}


@app.websocket("/ws")
async def room_socket(
    websocket: WebSocket,
    project_id: str | None = Query(None, alias="projectId"),
    token: str | None = Query(None),
    authorization: str | None = Header(None),
):
    """Authenticate, join the project's room, then route frames until disconnect."""
    await websocket.accept()
    try:
        session = await _get_authenticator().authenticate(
            project_id, extract_token(token, authorization)
        )
    except HandshakeError as e:
        logger.warning("Rejected connection to project %s: %s", project_id, e.reason)
        await websocket.close(code=e.code, reason=e.reason)
        return

    registry = _get_registry()
    router = _get_router()
    session.deliver(connect_frame(session.connection_id, session.room_id, session.identity))
    registry.join(session.room_id, session)
    logger.info("User connected: %s to project %s", _who(session), session.room_id)
    writer = asyncio.create_task(_pump(websocket, session))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            _dispatch(router, session, raw)
    except WebSocketDisconnect:
        pass
    finally:
        registry.leave(session.room_id, session)
        if not registry.members(session.room_id):
            router.forget_room(session.room_id)
        writer.cancel()
        logger.info("User disconnected: %s from project %s", _who(session), session.room_id)
