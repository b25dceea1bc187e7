"""Chat API endpoints and the realtime WebSocket channel."""
import asyncio
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket

from app.api.deps import DB, require_capability
from app.config import settings
from app.models.user import User
from app.realtime import chat_handler
from app.realtime.manager import manager
from app.schemas.chat import ContactResponse, MessageOut, OnlineUsersResponse
from app.services.chat_service import ChatService


router = APIRouter()
ws_router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/contacts", response_model=List[ContactResponse])
async def list_contacts(
    db: DB,
    current_user: User = Depends(require_capability("chat", "use")),
):
    """Contacts with unread count, last message and online flag."""
    return await ChatService(db, manager.presence).contacts(current_user)


@router.get("/messages/{contact_id}", response_model=List[MessageOut])
async def get_messages(
    contact_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("chat", "use")),
):
    """Conversation with a contact, oldest first. Incoming messages are marked read."""
    return await ChatService(db).conversation(current_user, contact_id)


@router.get("/online", response_model=OnlineUsersResponse)
async def online_users(
    current_user: User = Depends(require_capability("chat", "use")),
):
    return OnlineUsersResponse(user_ids=chat_handler.online_user_ids(manager))


@ws_router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Realtime chat channel.

    Authenticate with `?token=<jwt>` or with a first frame
    `{"type": "auth", "token": "<jwt>"}` sent within WS_AUTH_TIMEOUT_SECONDS.
    """
    await websocket.accept()

    if not token:
        try:
            first = await asyncio.wait_for(
                websocket.receive(), timeout=settings.WS_AUTH_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            logger.info("Realtime socket did not authenticate in time")
            await chat_handler.reject(websocket)
            return
        if first["type"] == "websocket.disconnect":
            return
        token = chat_handler.auth_token_from_frame(chat_handler.parse_frame(first.get("text")))

    user = await chat_handler.authenticate(token)
    if user is None:
        await chat_handler.reject(websocket)
        return

    connection = await chat_handler.open_session(manager, websocket, user)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            await chat_handler.dispatch(manager, connection, raw if raw is not None else message.get("bytes"))
    finally:
        await manager.disconnect(connection)
