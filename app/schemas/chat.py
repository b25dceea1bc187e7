"""Chat (direct messaging) schemas."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class ContactResponse(BaseResponseSchema):
    id: UUID
    name: str
    email: str
    role: str
    online: bool = False
    unread_count: int = 0
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None


class ChatUser(BaseResponseSchema):
    id: UUID
    name: str


class MessageOut(BaseResponseSchema):
    id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    read: bool
    created_at: datetime
    sender: Optional[ChatUser] = None
    receiver: Optional[ChatUser] = None


class SendMessagePayload(BaseCreateSchema):
    """Payload of the `send_message` realtime event."""
    receiver_id: UUID
    content: str = Field(..., min_length=1)


class OnlineUsersResponse(BaseResponseSchema):
    user_ids: List[UUID]
