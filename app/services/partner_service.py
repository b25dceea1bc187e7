"""
Partner Service

Manages referral partners:
- Public self registration (pending until approved)
- Approval (credentials generated and sent by WhatsApp) and rejection
- Consultant assignment
- Own profile (PIX key, contact data)
"""
import logging
import uuid
from datetime import date
from typing import Optional, List

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.exceptions import ServiceError, NotFoundError
from app.core.security import get_password_hash, generate_random_password
from app.models.partner import Partner, PartnerStatus
from app.models.user import User, UserRoleType
from app.schemas.partner import PartnerProfileUpdate, PublicPartnerRegister
from app.services.access_scope import AccessScope
from app.services.ledger_service import day_bounds
from app.services.whatsapp_service import get_whatsapp_service


logger = logging.getLogger(__name__)


class PartnerError(ServiceError):
    """Partner workflow violation."""
    pass


def approval_message(name: str, email: str, password: str) -> str:
    return (
        f"Hello {name}, your Tirvu partner account has been APPROVED! 🎉\n\n"
        f"Access the platform at: {settings.FRONTEND_URL}\n"
        f"Login: {email}\n"
        f"Password: {password}\n\n"
        "Welcome to the team!"
    )


def rejection_message(name: str, reason: str) -> str:
    return (
        f"Hello {name}, your Tirvu partnership request has been reviewed.\n\n"
        "Unfortunately it was not approved at this time.\n"
        f"Reason: {reason}\n\n"
        "Feel free to contact us with any questions."
    )


async def send_partner_text(phone: str, message: str) -> None:
    await get_whatsapp_service().send_text(phone, message)


class PartnerService:
    """Service for partner onboarding and profiles."""

    def __init__(self, db: AsyncSession, background_tasks: Optional[BackgroundTasks] = None):
        self.db = db
        self.background_tasks = background_tasks

    async def _notify(self, phone: Optional[str], message: str) -> None:
        if not phone:
            return
        if self.background_tasks is not None:
            self.background_tasks.add_task(send_partner_text, phone, message)
        else:
            await send_partner_text(phone, message)

    async def get_partner(self, partner_id: uuid.UUID) -> Partner:
        result = await self.db.execute(
            select(Partner)
            .options(selectinload(Partner.user), selectinload(Partner.consultant))
            .where(Partner.id == partner_id)
        )
        partner = result.scalar_one_or_none()
        if partner is None:
            raise NotFoundError("Partner not found")
        return partner

    async def list_partners(
        self,
        scope: AccessScope,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Partner]:
        """
        Partners visible to staff, newest first.

        Profiles owned by admin users are hidden. `status=all` disables the
        status filter.
        """
        stmt = (
            select(Partner)
            .options(selectinload(Partner.user), selectinload(Partner.consultant))
            .where(Partner.user.has(User.role != UserRoleType.ADMIN.value))
            .order_by(Partner.created_at.desc())
        )

        predicate = scope.partner_predicate()
        if predicate is not None:
            stmt = stmt.where(predicate)
        if status and status != "all":
            stmt = stmt.where(Partner.status == status)
        bounds = day_bounds(start_date, end_date)
        if bounds:
            stmt = stmt.where(Partner.created_at.between(*bounds))

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_consultants(self) -> List[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role == UserRoleType.CONSULTOR.value)
            .order_by(User.name)
        )
        return list(result.scalars().all())

    async def approve(self, partner_id: uuid.UUID, consultant_id: Optional[uuid.UUID] = None) -> str:
        """
        Approve a partner and issue new credentials.

        Returns:
            The generated plain password (8 hex chars), shown once to staff
        """
        partner = await self.get_partner(partner_id)
        if partner.status == PartnerStatus.APPROVED.value:
            raise PartnerError("Partner already approved")

        if consultant_id is not None:
            consultant = await self.db.get(User, consultant_id)
            if consultant is None or consultant.role != UserRoleType.CONSULTOR.value:
                raise NotFoundError("Consultant not found")
            partner.consultant_id = consultant_id

        password = generate_random_password()
        partner.user.password_hash = get_password_hash(password)
        partner.status = PartnerStatus.APPROVED.value
        partner.rejection_reason = None
        await self.db.flush()

        logger.info(f"Partner {partner.id} approved (consultant={partner.consultant_id})")
        await self._notify(
            partner.phone,
            approval_message(partner.user.name, partner.user.email, password),
        )
        return password

    async def reject(self, partner_id: uuid.UUID, reason: Optional[str]) -> Partner:
        if not reason or not reason.strip():
            raise PartnerError("Rejection reason is required")

        partner = await self.get_partner(partner_id)
        partner.status = PartnerStatus.REJECTED.value
        partner.rejection_reason = reason
        await self.db.flush()

        logger.info(f"Partner {partner.id} rejected")
        await self._notify(partner.phone, rejection_message(partner.user.name, reason))
        return partner

    # ==================== Own profile ====================

    async def get_profile(self, user_id: uuid.UUID) -> Partner:
        result = await self.db.execute(
            select(Partner)
            .options(selectinload(Partner.user), selectinload(Partner.consultant))
            .where(Partner.user_id == user_id)
        )
        partner = result.scalar_one_or_none()
        if partner is None:
            raise NotFoundError("Partner profile not found")
        return partner

    async def update_profile(self, user_id: uuid.UUID, data: PartnerProfileUpdate) -> Partner:
        partner = await self.get_profile(user_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if hasattr(value, "value"):
                value = value.value
            setattr(partner, field, value)
        await self.db.flush()
        return partner

    # ==================== Registration ====================

    async def email_taken(self, email: str) -> bool:
        result = await self.db.execute(select(User.id).where(User.email == email.lower()))
        return result.first() is not None

    async def create_partner_user(
        self,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        uf: Optional[str] = None,
        city: Optional[str] = None,
    ) -> User:
        """Create a partner-role user with a pending profile."""
        user = User(
            name=name,
            email=email.lower(),
            password_hash=get_password_hash(password),
            role=UserRoleType.PARTNER.value,
        )
        self.db.add(user)
        await self.db.flush()

        self.db.add(Partner(
            user_id=user.id,
            phone=phone,
            uf=uf,
            city=city,
            status=PartnerStatus.PENDING.value,
        ))
        await self.db.flush()
        return user

    async def register_public(self, data: PublicPartnerRegister) -> User:
        """Landing page registration; the real password is issued on approval."""
        if await self.email_taken(data.email):
            raise PartnerError("E-mail already registered")

        user = await self.create_partner_user(
            name=data.name,
            email=data.email,
            password=generate_random_password(nbytes=8),
            phone=data.phone,
            uf=data.uf,
            city=data.city,
        )
        logger.info(f"Public partner registration: {user.email}")
        return user
