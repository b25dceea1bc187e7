"""
Direct messaging between platform users.

Who may talk to whom follows the partner hierarchy:
- admin: every other user
- consultor: the users of its partners, plus all admins
- partner: its consultant (if any), plus all admins
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, func, or_, and_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ServiceError, NotFoundError, AccessDeniedError
from app.models.message import Message
from app.models.partner import Partner
from app.models.user import User, UserRoleType
from app.realtime.presence import PresenceRegistry


logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, db: AsyncSession, presence: Optional[PresenceRegistry] = None):
        self.db = db
        self.presence = presence

    async def _contact_users(self, user: User) -> List[User]:
        if user.is_admin:
            result = await self.db.execute(
                select(User).where(User.id != user.id).order_by(User.name)
            )
            return list(result.scalars().all())

        contacts: List[User] = []
        if user.is_consultor:
            result = await self.db.execute(
                select(User)
                .join(Partner, Partner.user_id == User.id)
                .where(Partner.consultant_id == user.id)
            )
            contacts.extend(result.scalars().all())
        elif user.is_partner:
            result = await self.db.execute(
                select(User)
                .join(Partner, Partner.consultant_id == User.id)
                .where(Partner.user_id == user.id)
            )
            contacts.extend(result.scalars().all())

        admins = await self.db.execute(
            select(User).where(User.role == UserRoleType.ADMIN.value)
        )
        contacts.extend(admins.scalars().all())
        return contacts

    async def contacts(self, user: User) -> List[dict]:
        """
        Contacts of a user with unread count, last message and presence.

        Sorted by last message (newest first), then by name.
        """
        unique = {}
        for contact in await self._contact_users(user):
            if contact.id != user.id:
                unique.setdefault(contact.id, contact)

        rows = []
        for contact in unique.values():
            unread = await self.db.execute(
                select(func.count(Message.id)).where(
                    Message.sender_id == contact.id,
                    Message.receiver_id == user.id,
                    Message.read.is_(False),
                )
            )
            last = await self.db.execute(
                select(Message)
                .where(_conversation(user.id, contact.id))
                .order_by(Message.created_at.desc())
                .limit(1)
            )
            last_message = last.scalar_one_or_none()

            rows.append({
                "id": contact.id,
                "name": contact.name,
                "email": contact.email,
                "role": contact.role,
                "online": bool(self.presence and self.presence.is_online(contact.id)),
                "unread_count": unread.scalar() or 0,
                "last_message": last_message.content if last_message else None,
                "last_message_at": last_message.created_at if last_message else None,
            })

        rows.sort(key=lambda r: r["name"].lower())
        rows.sort(key=lambda r: _timestamp(r["last_message_at"]), reverse=True)
        return rows

    async def conversation(self, user: User, contact_id: uuid.UUID) -> List[Message]:
        """Messages exchanged with a contact, oldest first. Incoming ones are marked read."""
        result = await self.db.execute(
            select(Message)
            .options(selectinload(Message.sender), selectinload(Message.receiver))
            .where(_conversation(user.id, contact_id))
            .order_by(Message.created_at.asc())
        )
        messages = list(result.scalars().all())

        await self.db.execute(
            update(Message)
            .where(
                Message.sender_id == contact_id,
                Message.receiver_id == user.id,
                Message.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        return messages

    async def can_message(self, sender: User, receiver_id: uuid.UUID) -> bool:
        if sender.id == receiver_id:
            return False
        return any(contact.id == receiver_id for contact in await self._contact_users(sender))

    async def send_message(self, sender_id: uuid.UUID, receiver_id: uuid.UUID, content: str) -> Message:
        """
        Persist a message and return it with sender and receiver loaded.

        The receiver must be one of the sender's contacts.
        """
        if not content or not content.strip():
            raise ServiceError("Message content is required")
        if await self.db.get(User, receiver_id) is None:
            raise NotFoundError("Receiver not found")
        sender = await self.db.get(User, sender_id)
        if sender is None or not await self.can_message(sender, receiver_id):
            raise AccessDeniedError("You cannot message this user")

        message = Message(sender_id=sender_id, receiver_id=receiver_id, content=content, read=False)
        self.db.add(message)
        await self.db.flush()

        result = await self.db.execute(
            select(Message)
            .options(selectinload(Message.sender), selectinload(Message.receiver))
            .where(Message.id == message.id)
        )
        return result.scalar_one()


def _conversation(user_id: uuid.UUID, contact_id: uuid.UUID):
    return or_(
        and_(Message.sender_id == user_id, Message.receiver_id == contact_id),
        and_(Message.sender_id == contact_id, Message.receiver_id == user_id),
    )


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()
