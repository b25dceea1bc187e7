"""Referral partner profile model.

A Partner is the commission-earning side of a partner user: payout data
(Pix key), location and the consultant who supervises it.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.lead import Lead
    from app.models.transaction import Transaction


# ==================== ENUMS (stored as VARCHAR) ====================

class PartnerStatus(str, Enum):
    """Partner registration status."""
    PENDING = "pending"      # Self-registered, awaiting review
    APPROVED = "approved"    # Credentials issued
    REJECTED = "rejected"    # Reviewed and refused, reason recorded


class PixKeyType(str, Enum):
    """Kind of Pix key used for commission payouts."""
    CPF = "cpf"
    CNPJ = "cnpj"
    EMAIL = "email"
    PHONE = "phone"
    RANDOM = "random"


class Partner(Base):
    """Referral partner profile, one-to-one with a User."""
    __tablename__ = "partners"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20), default=PartnerStatus.PENDING.value, nullable=False, index=True,
        comment="pending, approved, rejected"
    )

    # Contact & location
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    uf: Mapped[Optional[str]] = mapped_column(String(2), index=True)
    city: Mapped[Optional[str]] = mapped_column(String(120))

    # Payout
    pix_key: Mapped[Optional[str]] = mapped_column(String(150))
    pix_key_type: Mapped[Optional[str]] = mapped_column(
        String(20), comment="cpf, cnpj, email, phone, random"
    )

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Supervising consultant (a User with role=consultor)
    consultant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship(
        "User", back_populates="partner_profile", foreign_keys=[user_id]
    )
    consultant: Mapped[Optional["User"]] = relationship(
        "User", back_populates="consulted_partners", foreign_keys=[consultant_id]
    )
    leads: Mapped[List["Lead"]] = relationship(
        "Lead", back_populates="partner", cascade="all, delete-orphan"
    )
    transactions: Mapped[List["Transaction"]] = relationship(
        "Transaction", back_populates="partner", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Partner(id='{self.id}', status='{self.status}')>"
