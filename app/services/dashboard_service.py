"""Dashboard aggregates for partners and admins."""
import uuid
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError
from app.models.lead import Lead, LeadStatus
from app.models.partner import Partner, PartnerStatus
from app.models.transaction import Transaction
from app.models.user import User, UserRoleType
from app.services.access_scope import get_own_partner
from app.services.ledger_service import LedgerService


def conversion_rate(total: int, converted: int) -> float:
    """Percentage of converted leads, 2 decimals; 0 when there are no leads."""
    if total <= 0:
        return 0.0
    return round(converted / total * 100, 2)


class DashboardService:
    """KPIs for the two home pages."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerService(db)

    async def _count(self, stmt) -> int:
        return (await self.db.execute(stmt)).scalar() or 0

    async def partner_dashboard(self, user_id: uuid.UUID) -> dict:
        partner = await get_own_partner(self.db, user_id)
        if partner is None:
            raise NotFoundError("Partner profile not found")

        leads_count = await self._count(
            select(func.count(Lead.id)).where(Lead.partner_id == partner.id)
        )
        converted = await self._count(
            select(func.count(Lead.id)).where(
                Lead.partner_id == partner.id,
                Lead.status == LeadStatus.CONVERTED.value,
            )
        )
        summary = await self.ledger.summarize([partner.id])

        recent = await self.db.execute(
            select(Transaction)
            .where(Transaction.partner_id == partner.id)
            .order_by(Transaction.date.desc())
            .limit(5)
        )

        return {
            "kpis": {
                "total_earnings": summary.earnings,
                "leads_count": leads_count,
                "converted_leads": converted,
                "conversion_rate": conversion_rate(leads_count, converted),
                "total_sales": summary.total_sales,
                "total_received": summary.received,
                "balance": summary.balance,
                "manual_credits": summary.manual_credits,
            },
            "recent_transactions": list(recent.scalars().all()),
        }

    async def admin_dashboard(self) -> dict:
        # Partner profiles owned by admins exist only to hold their own leads
        non_admin = Partner.user.has(User.role != UserRoleType.ADMIN.value)

        async def partners_with(status: Optional[PartnerStatus] = None) -> int:
            stmt = select(func.count(Partner.id)).where(non_admin)
            if status is not None:
                stmt = stmt.where(Partner.status == status.value)
            return await self._count(stmt)

        total_leads = await self._count(select(func.count(Lead.id)))
        converted = await self._count(
            select(func.count(Lead.id)).where(Lead.status == LeadStatus.CONVERTED.value)
        )

        by_state = await self.db.execute(
            select(Partner.uf, func.count(Partner.id))
            .where(non_admin)
            .group_by(Partner.uf)
            .order_by(func.count(Partner.id).desc())
        )

        recent = await self.db.execute(
            select(Partner)
            .options(selectinload(Partner.user), selectinload(Partner.consultant))
            .where(non_admin)
            .order_by(Partner.created_at.desc())
            .limit(10)
        )

        summary = await self.ledger.summarize(None)

        return {
            "partner_stats": {
                "total": await partners_with(),
                "approved": await partners_with(PartnerStatus.APPROVED),
                "pending": await partners_with(PartnerStatus.PENDING),
                "rejected": await partners_with(PartnerStatus.REJECTED),
            },
            "lead_stats": {
                "total": total_leads,
                "converted": converted,
                "not_converted": total_leads - converted,
            },
            "partners_by_state": [
                {"uf": uf, "count": count} for uf, count in by_state.all()
            ],
            "financial_stats": {
                "total_sales": summary.total_sales,
                "total_commissions": summary.earnings,
                "total_paid": summary.received,
                "total_payable": summary.balance,
                "manual_credits": summary.manual_credits,
            },
            "recent_partners": list(recent.scalars().all()),
        }
