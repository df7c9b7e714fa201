"""
socket_manager.py — Socket.IO server for space chat and notifications.

Rooms:
  user:<id>      private room joined on connect (join-request notifications)
  space:<id>     joined explicitly with ``joinSpace``; receives space events

The handshake must carry a valid access token (``auth={"token": ...}`` or
``?token=``). Emission from HTTP handlers goes through ``notify`` and never
raises: a client that misses an event re-fetches over REST.
"""

from typing import Optional
from urllib.parse import parse_qs

import socketio
from socketio.exceptions import ConnectionRefusedError as HandshakeRefused
from sqlalchemy import select

from config import Config
from database import AsyncSessionLocal
from dependencies import load_user
from errors import AppError
from logging_config import get_logger
from models_async import Space

logger = get_logger(__name__)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=Config.get_cors_origins(),
)
socket_app = socketio.ASGIApp(sio)


def user_room(user_id) -> str:
    return f"user:{user_id}"


def space_room(space_id) -> str:
    return f"space:{space_id}"


async def notify(event: str, payload: dict, room: str) -> None:
    """Best-effort emit; failures are logged, never raised."""
    try:
        await sio.emit(event, payload, room=room)
    except Exception as exc:
        logger.warning("socket.emit.failed", emit_event=event, room=room, error=str(exc))


def _handshake_token(environ: dict, auth: Optional[dict]) -> Optional[str]:
    if isinstance(auth, dict) and auth.get("token"):
        return str(auth["token"])
    query = parse_qs(environ.get("QUERY_STRING", ""))
    tokens = query.get("token")
    return tokens[0] if tokens else None


@sio.event
async def connect(sid, environ, auth=None):
    token = _handshake_token(environ, auth)
    if not token:
        raise HandshakeRefused("Authentication required")

    async with AsyncSessionLocal() as db:
        try:
            user = await load_user(db, token)
        except AppError as exc:
            logger.info("socket.connect.refused", sid=sid, reason=exc.message)
            raise HandshakeRefused(exc.message)

    await sio.save_session(sid, {"user_id": user.id})
    await sio.enter_room(sid, user_room(user.id))
    logger.info("socket.connected", sid=sid, user_id=user.id)


async def _can_view_space(space_id: str, user_id: int) -> bool:
    from services.space_service import is_member

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Space).where(Space.id == space_id))
        space = result.scalar_one_or_none()
        if not space:
            return False
        return space.is_public or is_member(space, user_id)


def _space_id(payload):
    return payload.get("spaceId") if isinstance(payload, dict) else None


@sio.on("joinSpace")
async def join_space(sid, payload=None):
    space_id = _space_id(payload)
    if not space_id:
        return {"ok": False, "error": "spaceId required"}

    session = await sio.get_session(sid)
    user_id = session.get("user_id")
    if not await _can_view_space(str(space_id), user_id):
        logger.info("socket.join_space.denied", sid=sid, space_id=space_id, user_id=user_id)
        return {"ok": False, "error": "Not allowed to join this space"}

    await sio.enter_room(sid, space_room(space_id))
    await notify("space:userJoined", {"spaceId": space_id, "userId": user_id}, space_room(space_id))
    return {"ok": True}


@sio.on("leaveSpace")
async def leave_space(sid, payload=None):
    space_id = _space_id(payload)
    if not space_id:
        return {"ok": False, "error": "spaceId required"}

    session = await sio.get_session(sid)
    await sio.leave_room(sid, space_room(space_id))
    await notify(
        "space:userLeft",
        {"spaceId": space_id, "userId": session.get("user_id")},
        space_room(space_id),
    )
    return {"ok": True}


@sio.event
async def disconnect(sid, *args):
    logger.info("socket.disconnected", sid=sid)
