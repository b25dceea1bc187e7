"""
Role-scoped record visibility.

Computes, per request, which partners (and therefore which leads and
transactions) a user may see:

- admin: everything
- consultor: partners whose consultant_id is the consultor's user id
- partner: its own partner profile only

Empty scopes are not errors; they produce empty lists.
"""
import uuid
from dataclasses import dataclass, field
from typing import Optional, List

from sqlalchemy import select, false
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, AccessDeniedError
from app.models.lead import Lead
from app.models.partner import Partner
from app.models.user import User, UserRoleType


@dataclass
class AccessScope:
    """Visibility of a single requester."""
    user_id: uuid.UUID
    role: str
    # Own profile for role=partner (admins may also own one for leads they create)
    partner: Optional[Partner] = None
    # None means unrestricted
    partner_ids: Optional[List[uuid.UUID]] = field(default=None)

    @property
    def is_unrestricted(self) -> bool:
        return self.partner_ids is None

    @property
    def partner_id(self) -> Optional[uuid.UUID]:
        return self.partner.id if self.partner else None

    def can_see_partner(self, partner_id: Optional[uuid.UUID]) -> bool:
        if self.is_unrestricted:
            return True
        return partner_id is not None and partner_id in self.partner_ids

    def narrow(self, requested_partner_id: Optional[uuid.UUID] = None) -> Optional[List[uuid.UUID]]:
        """
        Combine the scope with an optional partner filter from the query string.

        Returns None for "no restriction" or the list of partner ids to filter by.
        A requested partner outside the scope yields an empty list.
        """
        if requested_partner_id is None:
            return None if self.is_unrestricted else list(self.partner_ids)
        if self.can_see_partner(requested_partner_id):
            return [requested_partner_id]
        return []

    def lead_predicate(self, requested_partner_id: Optional[uuid.UUID] = None):
        """WHERE clause restricting Lead rows, or None for no restriction."""
        return _partner_in(Lead.partner_id, self.narrow(requested_partner_id))

    def partner_predicate(self):
        """WHERE clause restricting Partner rows in partner-facing lists."""
        if self.role == UserRoleType.CONSULTOR.value:
            return Partner.consultant_id == self.user_id
        return _partner_in(Partner.id, self.narrow())

    def ensure_lead_visible(self, lead: Optional[Lead]) -> Lead:
        """404 for an absent lead, 403 for a lead outside the scope."""
        if lead is None:
            raise NotFoundError("Lead not found")
        if not self.can_see_partner(lead.partner_id):
            raise AccessDeniedError("Access denied")
        return lead


def _partner_in(column, partner_ids: Optional[List[uuid.UUID]]):
    if partner_ids is None:
        return None
    if not partner_ids:
        return false()
    return column.in_(partner_ids)


async def get_own_partner(db: AsyncSession, user_id: uuid.UUID) -> Optional[Partner]:
    result = await db.execute(select(Partner).where(Partner.user_id == user_id))
    return result.scalar_one_or_none()


async def resolve_scope(db: AsyncSession, user: User) -> AccessScope:
    """Build the AccessScope for a user."""
    if user.role == UserRoleType.ADMIN.value:
        return AccessScope(user_id=user.id, role=user.role, partner_ids=None)

    if user.role == UserRoleType.CONSULTOR.value:
        result = await db.execute(
            select(Partner.id).where(Partner.consultant_id == user.id)
        )
        return AccessScope(
            user_id=user.id,
            role=user.role,
            partner_ids=list(result.scalars().all()),
        )

    partner = await get_own_partner(db, user.id)
    return AccessScope(
        user_id=user.id,
        role=user.role,
        partner=partner,
        partner_ids=[partner.id] if partner else [],
    )


async def require_partner_scope(db: AsyncSession, user: User) -> AccessScope:
    """Scope for endpoints that need the requester's own partner profile."""
    scope = await resolve_scope(db, user)
    if user.role == UserRoleType.PARTNER.value and scope.partner is None:
        raise NotFoundError("Partner profile not found")
    return scope
