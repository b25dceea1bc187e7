"""
Commission ledger.

A partner's statement is built from two sources:
- commissions: leads with a closed sale (paid once payment_status is payment_made)
- manual transactions: credits and debits recorded by an admin

The movements list loads both as tagged LedgerEntry rows; the dashboards
reduce the same rows to a LedgerSummary with SQL aggregates.

    earnings = sum of commission entries
    received = paid commission entries + counted manual debits
    balance  = earnings - received

A manual debit linked to a lead whose commission is already paid is not
counted, otherwise the same payment would be received twice. Manual credits are
reported separately and are not part of earnings.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError, ServiceError
from app.db_types import ZERO, to_money
from app.models.lead import Lead, PaymentStatus
from app.models.partner import Partner
from app.models.transaction import Transaction, TransactionType
from app.schemas.finance import TransactionCreate


logger = logging.getLogger(__name__)


class EntryKind(str, Enum):
    COMMISSION = "commission"
    MANUAL_CREDIT = "manual_credit"
    MANUAL_DEBIT = "manual_debit"


@dataclass
class LedgerEntry:
    kind: EntryKind
    source_id: uuid.UUID
    partner_id: uuid.UUID
    amount: Decimal
    date: datetime
    description: str = ""
    lead_id: Optional[uuid.UUID] = None
    sale_value: Decimal = ZERO
    paid: bool = False
    has_proof: bool = False
    partner_name: Optional[str] = None
    partner_email: Optional[str] = None

    @property
    def movement_type(self) -> str:
        if self.kind == EntryKind.COMMISSION:
            return "commission"
        if self.kind == EntryKind.MANUAL_CREDIT:
            return TransactionType.CREDIT.value
        return TransactionType.DEBIT.value

    def to_movement(self) -> dict:
        prefix = "lead" if self.kind == EntryKind.COMMISSION else "trans"
        return {
            "id": f"{prefix}_{self.source_id}",
            "original_id": self.source_id,
            "type": self.movement_type,
            "date": self.date,
            "description": self.description,
            "value": self.amount,
            "status": "paid" if self.paid else "pending",
            "has_proof": self.has_proof,
            "partner_id": self.partner_id,
            "lead_id": self.lead_id,
            "partner_name": self.partner_name or "Unknown",
            "partner_email": self.partner_email,
        }


@dataclass
class LedgerSummary:
    total_sales: Decimal = ZERO
    earnings: Decimal = ZERO
    commissions_paid: Decimal = ZERO
    debits: Decimal = ZERO
    manual_credits: Decimal = ZERO
    # Debits skipped because their lead is already counted as paid
    skipped_debits: List[uuid.UUID] = field(default_factory=list)

    @property
    def received(self) -> Decimal:
        return to_money(self.commissions_paid + self.debits)

    @property
    def balance(self) -> Decimal:
        return to_money(self.earnings - self.received)


def commission_entry(lead: Lead) -> LedgerEntry:
    user = lead.partner.user if lead.partner is not None else None
    return LedgerEntry(
        kind=EntryKind.COMMISSION,
        source_id=lead.id,
        partner_id=lead.partner_id,
        amount=to_money(lead.commission_value),
        sale_value=to_money(lead.sale_value),
        date=lead.updated_at,
        description=f"Commission - Sale: {lead.name}",
        lead_id=lead.id,
        paid=lead.payment_status == PaymentStatus.PAYMENT_MADE.value,
        has_proof=bool(lead.commission_proof),
        partner_name=user.name if user else None,
        partner_email=user.email if user else None,
    )


def transaction_entry(transaction: Transaction) -> LedgerEntry:
    user = transaction.partner.user if transaction.partner is not None else None
    is_debit = transaction.type == TransactionType.DEBIT.value
    return LedgerEntry(
        kind=EntryKind.MANUAL_DEBIT if is_debit else EntryKind.MANUAL_CREDIT,
        source_id=transaction.id,
        partner_id=transaction.partner_id,
        amount=to_money(transaction.amount),
        date=transaction.date,
        description=transaction.description or "Manual movement",
        lead_id=transaction.lead_id,
        # Manual movements are effective as soon as they are recorded
        paid=True,
        partner_name=user.name if user else None,
        partner_email=user.email if user else None,
    )


def day_bounds(start_date: Optional[date], end_date: Optional[date]):
    """Inclusive [start 00:00, end 23:59:59.999999] in UTC; both dates are required."""
    if start_date is None or end_date is None:
        return None
    return (
        datetime.combine(start_date, time.min, tzinfo=timezone.utc),
        datetime.combine(end_date, time.max, tzinfo=timezone.utc),
    )


class LedgerService:
    """Loads ledger entries under a partner filter and reduces them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def entries(
        self,
        partner_ids: Optional[List[uuid.UUID]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[LedgerEntry]:
        """
        Tagged entries, newest first.

        Args:
            partner_ids: None for every partner, otherwise the partners to include
            start_date/end_date: optional window (both required to apply)
        """
        if partner_ids is not None and not partner_ids:
            return []

        lead_stmt = (
            select(Lead)
            .options(selectinload(Lead.partner).selectinload(Partner.user))
            .where(Lead.sale_closed.is_(True))
        )
        trans_stmt = (
            select(Transaction)
            .options(selectinload(Transaction.partner).selectinload(Partner.user))
        )

        if partner_ids is not None:
            lead_stmt = lead_stmt.where(Lead.partner_id.in_(partner_ids))
            trans_stmt = trans_stmt.where(Transaction.partner_id.in_(partner_ids))

        bounds = day_bounds(start_date, end_date)
        if bounds:
            lead_stmt = lead_stmt.where(Lead.updated_at.between(*bounds))
            trans_stmt = trans_stmt.where(Transaction.date.between(*bounds))

        leads = (await self.db.execute(lead_stmt)).scalars().all()
        transactions = (await self.db.execute(trans_stmt)).scalars().all()

        result = [commission_entry(lead) for lead in leads]
        result.extend(transaction_entry(t) for t in transactions)
        result.sort(key=lambda e: _sort_key(e.date), reverse=True)
        return result

    async def summarize(self, partner_ids: Optional[List[uuid.UUID]] = None) -> LedgerSummary:
        """
        All-time summary for the given partners (None = whole platform).

        Aggregated in SQL over the same rows entries() returns.
        """
        summary = LedgerSummary()
        if partner_ids is not None and not partner_ids:
            return summary

        is_paid = Lead.payment_status == PaymentStatus.PAYMENT_MADE.value
        closed = [Lead.sale_closed.is_(True)]
        if partner_ids is not None:
            closed.append(Lead.partner_id.in_(partner_ids))

        lead_totals = await self.db.execute(
            select(
                func.coalesce(func.sum(Lead.sale_value), 0),
                func.coalesce(func.sum(Lead.commission_value), 0),
                func.coalesce(func.sum(case((is_paid, Lead.commission_value), else_=0)), 0),
            ).where(*closed)
        )
        total_sales, earnings, commissions_paid = lead_totals.one()

        # Debits linked to a lead whose commission is already counted as paid
        paid_lead = (
            select(Lead.id)
            .where(Lead.id == Transaction.lead_id, is_paid, *closed)
            .exists()
        )
        is_debit = Transaction.type == TransactionType.DEBIT.value
        scope = []
        if partner_ids is not None:
            scope.append(Transaction.partner_id.in_(partner_ids))

        debits = await self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0))
            .where(is_debit, ~paid_lead, *scope)
        )
        credits = await self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0))
            .where(~is_debit, *scope)
        )
        skipped = await self.db.execute(
            select(Transaction.id).where(is_debit, paid_lead, *scope)
        )

        summary.total_sales = to_money(total_sales)
        summary.earnings = to_money(earnings)
        summary.commissions_paid = to_money(commissions_paid)
        summary.debits = to_money(debits.scalar())
        summary.manual_credits = to_money(credits.scalar())
        summary.skipped_debits = list(skipped.scalars().all())
        return summary

    async def movements(
        self,
        partner_ids: Optional[List[uuid.UUID]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[dict]:
        entries = await self.entries(partner_ids, start_date, end_date)
        return [entry.to_movement() for entry in entries]

    async def create_transaction(self, data: TransactionCreate) -> Transaction:
        """Record a manual credit/debit for a partner."""
        partner = await self.db.get(Partner, data.partner_id)
        if partner is None:
            raise NotFoundError("Partner not found")

        if data.lead_id is not None:
            lead = await self.db.get(Lead, data.lead_id)
            if lead is None:
                raise NotFoundError("Lead not found")
            if lead.partner_id != partner.id:
                raise ServiceError("Lead belongs to another partner")

        transaction = Transaction(
            partner_id=partner.id,
            lead_id=data.lead_id,
            type=data.type.value,
            amount=to_money(data.amount),
            description=data.description,
            date=data.date or datetime.now(timezone.utc),
        )
        self.db.add(transaction)
        await self.db.flush()
        await self.db.refresh(transaction)

        logger.info(
            f"Manual {transaction.type} of {transaction.amount} recorded for partner {partner.id}"
        )
        return transaction


def _sort_key(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored value is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
