"""
Lead Management Service

Handles the referral lead lifecycle:
- Creation by partners (own leads) and staff (on behalf of a partner)
- Partial updates, including the sale/commission sub-state
- Monthly quota on leads created without "speak on behalf" authorization
- Notes and follow-up tasks
- Notifications: automation webhook on creation, WhatsApp on closed sale

Notifications are scheduled after the write and never fail it.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, List, Tuple, Any, Callable

import httpx
from fastapi import BackgroundTasks
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.exceptions import ServiceError, NotFoundError, AccessDeniedError
from app.db_types import CENT, to_money
from app.models.lead import (
    Lead, LeadNote, LeadTask, LeadStatus, PaymentStatus, USER_SETTABLE_STATUSES,
)
from app.models.partner import Partner, PartnerStatus
from app.models.user import User, UserRoleType
from app.schemas.lead import (
    LeadCreate, LeadUpdate, LeadNoteCreate, LeadTaskCreate, LeadTaskUpdate,
)
from app.services.access_scope import AccessScope, get_own_partner
from app.services.ledger_service import day_bounds
from app.services.whatsapp_service import get_whatsapp_service, format_brl


logger = logging.getLogger(__name__)

# Defaults for the partner profile created for admins who register their own leads
ADMIN_PARTNER_UF = "DF"
ADMIN_PARTNER_CITY = "Distrito Federal"

PAYMENT_STATUS_LABELS = {
    PaymentStatus.AWAITING_PAYMENT.value: "Awaiting payment",
    PaymentStatus.PAYMENT_MADE.value: "Payment made",
}

SALE_FIELDS = (
    "sale_closed", "payment_status", "sale_value",
    "commission_percentage", "commission_value", "commission_proof",
)

# Columns that cannot be cleared through an update
REQUIRED_FIELDS = {"name", "type", "status", "sale_closed", "speak_on_behalf"}


class LeadError(ServiceError):
    """Lead business rule violation."""
    pass


def month_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """[first instant of the month, first instant of the next month) in UTC."""
    now = now or datetime.now(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def derive_commission(sale_value: Optional[Decimal], percentage: Optional[Decimal]) -> Optional[Decimal]:
    """sale_value * percentage / 100 rounded to cents, None if either is missing."""
    if sale_value is None or percentage is None:
        return None
    return (Decimal(sale_value) * Decimal(percentage) / Decimal(100)).quantize(CENT)


def sale_closed_message(partner_name: str, lead: Lead) -> str:
    label = PAYMENT_STATUS_LABELS.get(lead.payment_status, lead.payment_status or "-")
    return (
        f"Hello {partner_name}, congratulations! 🎉\n\n"
        f"The sale of lead *{lead.name}* has been confirmed!\n\n"
        f"💰 Sale value: {format_brl(lead.sale_value)}\n"
        f"💵 Your commission: {format_brl(lead.commission_value)}\n"
        f"📊 Payment status: *{label}*\n"
    )


async def post_lead_webhook(url: str, payload: dict) -> None:
    """Send a new lead to the automation webhook. Failures are logged only."""
    try:
        async with httpx.AsyncClient(timeout=settings.NOTIFICATION_TIMEOUT_SECONDS) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()
        logger.info(f"Lead webhook delivered for lead {payload.get('lead_id')}")
    except httpx.HTTPError as e:
        logger.error(f"Error sending lead webhook: {e}")


async def send_sale_closed_notification(phone: str, message: str, proof: Optional[str]) -> None:
    whatsapp = get_whatsapp_service()
    await whatsapp.send_text(phone, message)
    # The gateway's document endpoint has no caption, so the proof goes separately
    if proof:
        await whatsapp.send_file(phone, proof)


class LeadService:
    """Service for lead operations, always evaluated against an AccessScope."""

    def __init__(
        self,
        db: AsyncSession,
        scope: AccessScope,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        self.db = db
        self.scope = scope
        self.background_tasks = background_tasks

    async def _defer(self, func_: Callable, *args: Any) -> None:
        if self.background_tasks is not None:
            self.background_tasks.add_task(func_, *args)
        else:
            await func_(*args)

    # ==================== Lookup ====================

    async def get_lead(self, lead_id: uuid.UUID) -> Lead:
        """Lead visible to the requester (404 absent, 403 outside scope)."""
        lead = await self.db.get(Lead, lead_id)
        return self.scope.ensure_lead_visible(lead)

    async def list_leads(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        partner_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
    ) -> List[Tuple[Lead, int]]:
        """Leads newest first, each with its note count."""
        notes_count = (
            select(func.count(LeadNote.id))
            .where(LeadNote.lead_id == Lead.id)
            .correlate(Lead)
            .scalar_subquery()
        )
        stmt = (
            select(Lead, notes_count)
            .options(selectinload(Lead.partner).selectinload(Partner.user))
            .order_by(Lead.created_at.desc())
        )

        predicate = self.scope.lead_predicate(partner_id)
        if predicate is not None:
            stmt = stmt.where(predicate)
        if status:
            stmt = stmt.where(Lead.status == status)
        bounds = day_bounds(start_date, end_date)
        if bounds:
            stmt = stmt.where(Lead.created_at.between(*bounds))

        result = await self.db.execute(stmt)
        return [(lead, count or 0) for lead, count in result.all()]

    # ==================== Quota ====================

    async def count_opt_outs_this_month(self, partner_id: uuid.UUID, now: Optional[datetime] = None) -> int:
        """Leads created this calendar month without speak-on-behalf authorization."""
        start, end = month_bounds(now)
        result = await self.db.execute(
            select(func.count(Lead.id)).where(
                Lead.partner_id == partner_id,
                Lead.speak_on_behalf.is_(False),
                Lead.created_at >= start,
                Lead.created_at < end,
            )
        )
        return result.scalar() or 0

    async def check_speak_on_behalf_quota(self, partner_id: uuid.UUID) -> None:
        limit = settings.SPEAK_ON_BEHALF_MONTHLY_LIMIT
        if await self.count_opt_outs_this_month(partner_id) >= limit:
            raise LeadError(
                f"You have reached the monthly limit of {limit} leads without "
                "authorization for Tirvu to speak on your behalf."
            )

    # ==================== Create ====================

    async def _resolve_owner(self, requested_partner_id: Optional[uuid.UUID], user: User) -> Partner:
        if self.scope.role == UserRoleType.PARTNER.value:
            if self.scope.partner is None:
                raise NotFoundError("Partner profile not found")
            return self.scope.partner

        if requested_partner_id is not None:
            partner = await self.db.get(Partner, requested_partner_id)
            if partner is None:
                raise NotFoundError("Partner not found")
            if not self.scope.can_see_partner(partner.id):
                raise AccessDeniedError("Access denied")
            return partner

        if self.scope.role != UserRoleType.ADMIN.value:
            raise LeadError("partnerId is required")

        # Admins may register leads of their own through an auto-approved profile
        partner = await get_own_partner(self.db, user.id)
        if partner is None:
            partner = Partner(
                user_id=user.id,
                status=PartnerStatus.APPROVED.value,
                uf=ADMIN_PARTNER_UF,
                city=ADMIN_PARTNER_CITY,
            )
            self.db.add(partner)
            await self.db.flush()
            logger.info(f"Created partner profile for admin {user.id}")
        return partner

    async def create_lead(self, data: LeadCreate, user: User) -> Lead:
        partner = await self._resolve_owner(data.partner_id, user)
        speak_on_behalf = True if data.speak_on_behalf is None else data.speak_on_behalf

        if self.scope.role == UserRoleType.PARTNER.value and not speak_on_behalf:
            await self.check_speak_on_behalf_quota(partner.id)

        lead = Lead(
            partner_id=partner.id,
            name=data.name,
            company=data.company,
            email=data.email,
            phone=data.phone,
            type=data.type.value,
            document=data.document,
            value=to_money(data.value),
            status=data.status.value,
            observation=data.observation,
            number_of_employees=data.number_of_employees,
            speak_on_behalf=speak_on_behalf,
        )
        self.db.add(lead)
        await self.db.flush()
        await self.db.refresh(lead)

        logger.info(f"Lead {lead.id} created for partner {partner.id} by {user.role} {user.id}")

        if settings.LEAD_WEBHOOK_URL:
            await self._defer(
                post_lead_webhook,
                settings.LEAD_WEBHOOK_URL,
                await self._webhook_payload(lead, partner),
            )
        return lead

    async def _webhook_payload(self, lead: Lead, partner: Partner) -> dict:
        owner = await self.db.get(User, partner.user_id)
        return {
            "lead_id": str(lead.id),
            "partner_id": str(partner.user_id),
            "name": lead.name,
            "email": lead.email,
            "phone": lead.phone,
            "company": lead.company or "",
            "observation": lead.observation or "",
            "number_of_employees": lead.number_of_employees or "",
            "speak_on_behalf": lead.speak_on_behalf,
            "consultant_id": str(partner.consultant_id) if partner.consultant_id else None,
            "partner_name": owner.name if owner else "",
            "partner_phone": partner.phone or "",
        }

    # ==================== Update / Delete ====================

    async def update_lead(self, lead_id: uuid.UUID, data: LeadUpdate) -> Lead:
        lead = await self.get_lead(lead_id)
        changes = data.model_dump(exclude_unset=True)

        status = changes.get("status")
        if status is not None:
            status = LeadStatus(status)
            if status not in USER_SETTABLE_STATUSES and status.value != lead.status:
                raise LeadError(f"Status '{status.value}' can only be set by the CRM integration")

        if (
            self.scope.role == UserRoleType.PARTNER.value
            and changes.get("speak_on_behalf") is False
            and lead.speak_on_behalf
        ):
            await self.check_speak_on_behalf_quota(lead.partner_id)

        # Derive the commission from the resulting sale value and rate
        if "commission_value" not in changes and (
            "sale_value" in changes or "commission_percentage" in changes
        ):
            derived = derive_commission(
                changes.get("sale_value", lead.sale_value),
                changes.get("commission_percentage", lead.commission_percentage),
            )
            # A cleared sale value or rate clears the commission too
            changes["commission_value"] = derived

        sale_touched = any(
            name in changes and changes[name] != getattr(lead, name)
            for name in SALE_FIELDS
        )

        for field, value in changes.items():
            if value is None and field in REQUIRED_FIELDS:
                continue
            if hasattr(value, "value"):
                value = value.value
            if field == "value":
                value = to_money(value)
            setattr(lead, field, value)

        await self.db.flush()
        await self.db.refresh(lead)
        logger.info(f"Lead {lead.id} updated: {sorted(changes)}")

        if changes.get("sale_closed") is True and sale_touched:
            await self._notify_sale_closed(lead)
        return lead

    async def _notify_sale_closed(self, lead: Lead) -> None:
        result = await self.db.execute(
            select(Partner).options(selectinload(Partner.user)).where(Partner.id == lead.partner_id)
        )
        partner = result.scalar_one_or_none()
        if partner is None or not partner.phone:
            logger.info(f"Sale closed for lead {lead.id}; partner has no phone, skipping WhatsApp")
            return

        proof = None
        if lead.payment_status == PaymentStatus.PAYMENT_MADE.value and lead.commission_proof:
            proof = lead.commission_proof

        await self._defer(
            send_sale_closed_notification,
            partner.phone,
            sale_closed_message(partner.user.name, lead),
            proof,
        )

    async def delete_lead(self, lead_id: uuid.UUID) -> None:
        lead = await self.get_lead(lead_id)
        await self.db.delete(lead)
        await self.db.flush()
        logger.info(f"Lead {lead_id} deleted")

    # ==================== Notes ====================

    async def list_notes(self, lead_id: uuid.UUID) -> List[LeadNote]:
        await self.get_lead(lead_id)
        result = await self.db.execute(
            select(LeadNote)
            .options(selectinload(LeadNote.author))
            .where(LeadNote.lead_id == lead_id)
            .order_by(LeadNote.created_at.desc())
        )
        return list(result.scalars().all())

    async def add_note(self, lead_id: uuid.UUID, data: LeadNoteCreate, user: User) -> LeadNote:
        lead = await self.get_lead(lead_id)
        note = LeadNote(lead_id=lead.id, user_id=user.id, content=data.content)
        self.db.add(note)
        await self.db.flush()

        result = await self.db.execute(
            select(LeadNote).options(selectinload(LeadNote.author)).where(LeadNote.id == note.id)
        )
        return result.scalar_one()

    # ==================== Tasks ====================

    async def _load_task(self, task_id: uuid.UUID) -> Optional[LeadTask]:
        result = await self.db.execute(
            select(LeadTask).options(selectinload(LeadTask.author)).where(LeadTask.id == task_id)
        )
        return result.scalar_one_or_none()

    async def list_tasks(self, lead_id: uuid.UUID) -> List[LeadTask]:
        await self.get_lead(lead_id)
        result = await self.db.execute(
            select(LeadTask)
            .options(selectinload(LeadTask.author))
            .where(LeadTask.lead_id == lead_id)
            .order_by(LeadTask.done.asc(), LeadTask.created_at.desc())
        )
        return list(result.scalars().all())

    async def add_task(self, lead_id: uuid.UUID, data: LeadTaskCreate, user: User) -> LeadTask:
        lead = await self.get_lead(lead_id)
        task = LeadTask(
            lead_id=lead.id,
            user_id=user.id,
            title=data.title,
            description=data.description,
            due_date=data.due_date,
            duration=data.duration,
        )
        self.db.add(task)
        await self.db.flush()
        return await self._load_task(task.id)

    async def _get_task(self, lead_id: uuid.UUID, task_id: uuid.UUID) -> LeadTask:
        await self.get_lead(lead_id)
        task = await self._load_task(task_id)
        if task is None or task.lead_id != lead_id:
            raise NotFoundError("Task not found")
        return task

    async def update_task(self, lead_id: uuid.UUID, task_id: uuid.UUID, data: LeadTaskUpdate) -> LeadTask:
        """Apply the given fields; without any field the task's done flag is toggled."""
        task = await self._get_task(lead_id, task_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            changes = {"done": not task.done}

        for field, value in changes.items():
            setattr(task, field, value)
        await self.db.flush()
        return task

    async def delete_task(self, lead_id: uuid.UUID, task_id: uuid.UUID) -> None:
        task = await self._get_task(lead_id, task_id)
        await self.db.delete(task)
        await self.db.flush()
