"""User administration (admin only)."""
import logging
import uuid
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError, NotFoundError
from app.core.security import get_password_hash
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate


logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _email_owner(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(self, role: Optional[str] = None) -> List[User]:
        stmt = select(User).order_by(User.created_at.desc())
        if role:
            stmt = stmt.where(User.role == role)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_user(self, data: UserCreate) -> User:
        if await self._email_owner(data.email) is not None:
            raise ServiceError("User already exists")

        user = User(
            name=data.name,
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            role=data.role.value,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        logger.info(f"User created by admin: {user.email} ({user.role})")
        return user

    async def update_user(self, user_id: uuid.UUID, data: UserUpdate) -> User:
        user = await self.get_user(user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if "email" in changes:
            owner = await self._email_owner(changes["email"])
            if owner is not None and owner.id != user.id:
                raise ServiceError("User already exists")
            user.email = changes["email"].lower()
        if "name" in changes:
            user.name = changes["name"]
        if "role" in changes:
            user.role = changes["role"].value
        if "is_active" in changes:
            user.is_active = changes["is_active"]
        if "password" in changes:
            user.password_hash = get_password_hash(changes["password"])

        await self.db.flush()
        return user

    async def delete_user(self, user_id: uuid.UUID, current_user: User) -> None:
        if user_id == current_user.id:
            raise ServiceError("Cannot delete your own account")

        user = await self.get_user(user_id)
        await self.db.delete(user)
        await self.db.flush()
        logger.info(f"User {user_id} deleted by {current_user.id}")
