"""WebSocket live channel for users and owners.

Frames in both directions are JSON objects ``{"event": ..., "data": {...}}``.
Events from one connection are handled in arrival order.
"""

import json
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.api.deps import get_session_router
from app.core.logging import get_logger
from app.core.owner_auth import AUTH_COOKIE, owner_id_from_token
from app.core.schemas_chat import ConnectionRole, InboundFrame
from app.core.session_registry import Connection
from app.core.session_router import SessionRouter

logger = get_logger(__name__)

router = APIRouter()

OWNER_ONLY_EVENTS = {"joinUser", "owner:ready", "get:active-users"}


class WebSocketChannel:
    """Channel that writes events as JSON frames on a FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        await self._websocket.send_json({"event": event, "data": payload})


async def dispatch(session_router: SessionRouter, connection: Connection, frame: InboundFrame) -> None:
    """Route one inbound frame to the session router."""
    event, data = frame.event, frame.data

    if event in OWNER_ONLY_EVENTS and connection.role is not ConnectionRole.OWNER:
        await session_router.send_error(connection, f"{event} is only available to owners")
        return

    if event == "message":
        if connection.role is ConnectionRole.USER:
            await session_router.handle_user_message(connection, data.get("text") or "")
        else:
            await session_router.handle_owner_message(
                connection, data.get("userId"), data.get("text") or ""
            )
    elif event == "setMetadata":
        await session_router.set_metadata(connection, data)
    elif event == "joinUser":
        await session_router.join_user(connection, data.get("userId"))
    elif event in ("owner:ready", "get:active-users"):
        await session_router.identify_owner(connection, data.get("ownerId"))
    else:
        await session_router.send_error(connection, f"Unknown event: {event}")


@router.websocket("/ws")
async def live_channel(
    websocket: WebSocket,
    role: ConnectionRole = Query(ConnectionRole.USER),
    user_id: str | None = Query(None, alias="userId"),
    owner_id: str | None = Query(None, alias="ownerId"),
    session_router: SessionRouter = Depends(get_session_router),
) -> None:
    """
    Live chat channel.

    Users connect with ``role=user&userId=..&ownerId=..``; owners with
    ``role=owner&ownerId=..`` or an ``auth_token`` cookie.
    """
    await websocket.accept()

    if role is ConnectionRole.OWNER:
        identity = owner_id or owner_id_from_token(websocket.cookies.get(AUTH_COOKIE))
        declared_owner_id = None
    else:
        identity = user_id
        declared_owner_id = owner_id

    try:
        connection = await session_router.register_connection(
            identity, role, WebSocketChannel(websocket), declared_owner_id
        )
    except Exception:
        logger.exception(f"Failed to register {role.value} connection")
        await websocket.close(code=1011)
        return

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = InboundFrame.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError):
                await session_router.send_error(connection, "Malformed frame")
                continue

            try:
                await dispatch(session_router, connection, frame)
            except Exception:
                logger.exception(
                    f"Failed to handle {frame.event}",
                    extra={"connection_id": connection.connection_id},
                )
                await session_router.send_error(connection, "Failed to process message")

    except WebSocketDisconnect:
        pass
    finally:
        await session_router.unregister(connection)
