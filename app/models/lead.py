"""
Lead Management Models.

This module contains models for:
- Leads referred by partners, with their sale/commission sub-state
- Notes attached to a lead
- Follow-up tasks attached to a lead
"""
import uuid
import enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import (
    String, Text, Boolean, DateTime, ForeignKey
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, MoneyType, PercentType

if TYPE_CHECKING:
    from app.models.partner import Partner
    from app.models.user import User


class LeadStatus(str, enum.Enum):
    """Status of lead in pipeline."""
    NEW = "new"
    CONTACT = "contact"
    NEGOTIATION = "negotiation"
    CONVERTED = "converted"
    LOST = "lost"
    # CRM stage aliases, only ever written by the Pipedrive webhook
    QUALIFIED = "qualified"
    MEETING_SCHEDULED = "meeting_scheduled"
    PROPOSAL_SENT = "proposal_sent"


# Statuses a user may set through the API
USER_SETTABLE_STATUSES = {
    LeadStatus.NEW,
    LeadStatus.CONTACT,
    LeadStatus.NEGOTIATION,
    LeadStatus.CONVERTED,
    LeadStatus.LOST,
}


class LeadType(str, enum.Enum):
    """Individual (PF) or company (PJ) lead."""
    PF = "PF"
    PJ = "PJ"


class PaymentStatus(str, enum.Enum):
    """Commission payment status of a closed sale."""
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_MADE = "payment_made"


class Lead(Base):
    """Lead/Prospect referred by a partner."""
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    partner_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("partners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Contact Information
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    company: Mapped[Optional[str]] = mapped_column(String(200))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    type: Mapped[str] = mapped_column(String(2), default=LeadType.PF.value, comment="PF, PJ")
    document: Mapped[Optional[str]] = mapped_column(String(30))  # CPF or CNPJ
    observation: Mapped[Optional[str]] = mapped_column(Text)
    number_of_employees: Mapped[Optional[str]] = mapped_column(String(50))

    # Pipeline
    status: Mapped[str] = mapped_column(
        String(30), default=LeadStatus.NEW.value, index=True,
        comment="new, contact, negotiation, converted, lost, qualified, meeting_scheduled, proposal_sent"
    )
    value: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"))

    # Sale & commission
    sale_closed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    payment_status: Mapped[Optional[str]] = mapped_column(
        String(30), comment="awaiting_payment, payment_made"
    )
    sale_value: Mapped[Optional[Decimal]] = mapped_column(MoneyType)
    commission_percentage: Mapped[Optional[Decimal]] = mapped_column(PercentType)
    commission_value: Mapped[Optional[Decimal]] = mapped_column(MoneyType)
    commission_proof: Mapped[Optional[str]] = mapped_column(Text)  # base64 data URI

    # Partner authorizes the platform to speak on its behalf (quota-limited opt out)
    speak_on_behalf: Mapped[bool] = mapped_column(Boolean, default=True)

    # External correlation keys
    ref_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    pipedrive_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    partner: Mapped["Partner"] = relationship("Partner", back_populates="leads")
    notes: Mapped[List["LeadNote"]] = relationship(
        "LeadNote", back_populates="lead", cascade="all, delete-orphan"
    )
    tasks: Mapped[List["LeadTask"]] = relationship(
        "LeadTask", back_populates="lead", cascade="all, delete-orphan"
    )

    @property
    def has_proof(self) -> bool:
        return bool(self.commission_proof)

    def __repr__(self) -> str:
        return f"<Lead(name='{self.name}', status='{self.status}')>"


class LeadNote(Base):
    """Free-text note on a lead, written by a user or imported from the CRM."""
    __tablename__ = "lead_notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    pipedrive_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    lead: Mapped["Lead"] = relationship("Lead", back_populates="notes")
    author: Mapped[Optional["User"]] = relationship("User")


class LeadTask(Base):
    """Follow-up task (activity) on a lead."""
    __tablename__ = "lead_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration: Mapped[Optional[str]] = mapped_column(String(20))
    done: Mapped[bool] = mapped_column(Boolean, default=False)
    pipedrive_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    lead: Mapped["Lead"] = relationship("Lead", back_populates="tasks")
    author: Mapped[Optional["User"]] = relationship("User")
