import enum
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType

if TYPE_CHECKING:
    from app.models.partner import Partner


class UserRoleType(str, enum.Enum):
    """Platform roles. Stored lowercase, as exposed on the wire."""
    ADMIN = "admin"
    CONSULTOR = "consultor"
    PARTNER = "partner"


class User(Base):
    """
    User model for authentication and authorization.
    A partner user owns exactly one Partner profile; a consultor user
    supervises the partners whose consultant_id points at it.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Basic info
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRoleType.PARTNER.value, nullable=False, index=True,
        comment="admin, consultor, partner"
    )

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
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
    partner_profile: Mapped[Optional["Partner"]] = relationship(
        "Partner",
        back_populates="user",
        uselist=False,
        foreign_keys="[Partner.user_id]",
        cascade="all, delete-orphan",
    )
    consulted_partners: Mapped[List["Partner"]] = relationship(
        "Partner",
        back_populates="consultant",
        foreign_keys="[Partner.consultant_id]",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRoleType.ADMIN.value

    @property
    def is_consultor(self) -> bool:
        return self.role == UserRoleType.CONSULTOR.value

    @property
    def is_partner(self) -> bool:
        return self.role == UserRoleType.PARTNER.value

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', role='{self.role}')>"
