import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, UserRoleType
from app.core.exceptions import ServiceError, AccessDeniedError
from app.core.security import (
    verify_and_check_needs_rehash,
    get_password_hash,
    create_access_token,
)
from app.config import settings
from app.schemas.auth import RegisterRequest
from app.services.partner_service import PartnerService


logger = logging.getLogger(__name__)


class AuthError(ServiceError):
    """Authentication/registration failure."""
    pass


class AuthService:
    """Authentication service for registration, login and token issuing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def register(self, data: RegisterRequest, requested_by: Optional[User] = None) -> User:
        """
        Register a new user.

        Anyone may register as a partner; partner users also get a pending
        partner profile with the given contact data. Staff roles can only be
        registered by an authenticated admin.
        """
        if data.role != UserRoleType.PARTNER and (
            requested_by is None or not requested_by.is_admin
        ):
            raise AccessDeniedError("Only admins can register staff users")

        if await self.get_by_email(data.email) is not None:
            raise AuthError("User already exists")

        if data.role == UserRoleType.PARTNER:
            user = await PartnerService(self.db).create_partner_user(
                name=data.name,
                email=data.email,
                password=data.password,
                phone=data.phone,
                uf=data.uf,
                city=data.city,
            )
        else:
            user = User(
                name=data.name,
                email=data.email.lower(),
                password_hash=get_password_hash(data.password),
                role=data.role.value,
            )
            self.db.add(user)
            await self.db.flush()

        logger.info(f"User registered: {user.email} ({user.role})")
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate a user by email and password.

        Unknown e-mail and wrong password produce the same error. Hashes
        using deprecated parameters are upgraded transparently.
        """
        user = await self.get_by_email(email)
        if user is None:
            raise AuthError("Invalid credentials")

        is_valid, needs_rehash = verify_and_check_needs_rehash(password, user.password_hash)
        if not is_valid:
            raise AuthError("Invalid credentials")

        if not user.is_active:
            raise AccessDeniedError("User account is deactivated")

        if needs_rehash:
            user.password_hash = get_password_hash(password)
            await self.db.flush()

        return user

    def create_token(self, user: User) -> Tuple[str, int]:
        """
        Issue an access token for a user.

        Returns:
            Tuple of (access_token, expires_in_seconds)
        """
        token = create_access_token(
            subject=user.id,
            additional_claims={"role": user.role, "name": user.name},
        )
        return token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    async def login(self, email: str, password: str) -> Tuple[User, str, int]:
        user = await self.authenticate_user(email, password)
        token, expires_in = self.create_token(user)
        logger.info(f"User logged in: {user.email}")
        return user, token, expires_in
