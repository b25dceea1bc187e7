"""
Chat event handling for the realtime channel.

Client -> server events:
    auth          {"token": ...}        (only as the first frame, when no ?token=)
    send_message  {"receiverId", "content"}

Server -> client events:
    connected, receive_message, message_sent, user_online, user_offline,
    connect_error, error
"""
import json
import logging
import uuid
from typing import Any, Optional

from pydantic import ValidationError

from app.api.deps import get_user_from_token
from app.core.exceptions import ServiceError
from app.database import get_db_session
from app.models.user import User
from app.realtime.manager import Connection, ConnectionManager, Socket
from app.schemas.chat import MessageOut, SendMessagePayload
from app.services.chat_service import ChatService


logger = logging.getLogger(__name__)

AUTH_FAILED_CLOSE_CODE = 4401


def parse_frame(raw: Any) -> Optional[dict]:
    """Decode a client frame into a dict, None when it is not a JSON object."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
    return raw if isinstance(raw, dict) else None


def frame_event(frame: dict) -> Optional[str]:
    return frame.get("event") or frame.get("type")


def auth_token_from_frame(frame: Optional[dict]) -> Optional[str]:
    """Token carried by a first `auth` frame, in the frame itself or under `data`."""
    if not frame or frame_event(frame) != "auth":
        return None
    data = frame.get("data") if isinstance(frame.get("data"), dict) else {}
    return frame.get("token") or data.get("token")


async def authenticate(token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    async with get_db_session() as db:
        user = await get_user_from_token(db, token)
    if user is None or not user.is_active:
        return None
    return user


async def reject(socket, message: str = "Authentication error") -> None:
    await socket.send_json({"event": "connect_error", "data": {"message": message}})
    await socket.close(code=AUTH_FAILED_CLOSE_CODE)


async def handle_send_message(manager: ConnectionManager, connection: Connection, data: Any) -> None:
    """
    Persist a message and deliver it.

    The receiver's room gets `receive_message`; only the sending connection
    gets `message_sent`.
    """
    try:
        payload = SendMessagePayload.model_validate(data or {})
    except ValidationError as e:
        await manager.send(connection, "error", {"message": "Invalid message", "errors": e.errors()})
        return

    try:
        async with get_db_session() as db:
            message = await ChatService(db).send_message(
                connection.user_id, payload.receiver_id, payload.content
            )
            out = MessageOut.model_validate(message).model_dump(by_alias=True)
    except ServiceError as e:
        await manager.send(connection, "error", {"message": e.message})
        return

    await manager.emit_to_user(payload.receiver_id, "receive_message", out)
    await manager.send(connection, "message_sent", out)


async def dispatch(manager: ConnectionManager, connection: Connection, raw: Any) -> None:
    frame = parse_frame(raw)
    if frame is None:
        await manager.send(connection, "error", {"message": "Invalid frame"})
        return

    event = frame_event(frame)
    if event == "send_message":
        await handle_send_message(manager, connection, frame.get("data"))
    elif event == "auth":
        # Already authenticated
        return
    else:
        logger.debug(f"Ignoring unknown realtime event '{event}' from {connection.user_id}")


async def open_session(manager: ConnectionManager, socket: Socket, user: User) -> Connection:
    connection = await manager.connect(user.id, socket)
    await manager.send(connection, "connected", {
        "userId": user.id,
        "name": user.name,
        "onlineUsers": manager.presence.online_user_ids(),
    })
    return connection


def online_user_ids(manager: ConnectionManager) -> list[uuid.UUID]:
    return manager.presence.online_user_ids()
