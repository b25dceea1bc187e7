"""Manual ledger adjustments for partners.

Credits and debits recorded by admins alongside sale-driven commissions.
A debit may reference the lead whose commission it pays, which lets the
ledger skip it when that lead is already marked payment_made.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from app.models.partner import Partner
    from app.models.lead import Lead


class TransactionType(str, Enum):
    """Direction of a manual adjustment."""
    CREDIT = "credit"
    DEBIT = "debit"


class Transaction(Base):
    """Manual credit/debit on a partner's account."""
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    partner_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("partners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    lead_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("leads.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False, comment="credit, debit")
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    partner: Mapped["Partner"] = relationship("Partner", back_populates="transactions")
    lead: Mapped[Optional["Lead"]] = relationship("Lead")

    def __repr__(self) -> str:
        return f"<Transaction(type='{self.type}', amount={self.amount})>"
