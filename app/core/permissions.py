from typing import FrozenSet

from app.models.user import User, UserRoleType


ADMIN = UserRoleType.ADMIN.value
CONSULTOR = UserRoleType.CONSULTOR.value
PARTNER = UserRoleType.PARTNER.value

ALL_ROLES: FrozenSet[str] = frozenset({ADMIN, CONSULTOR, PARTNER})
STAFF: FrozenSet[str] = frozenset({ADMIN, CONSULTOR})


# Capability table: (resource, action) -> roles allowed.
# Row-level visibility is applied separately by AccessScope.
POLICY: dict[tuple[str, str], FrozenSet[str]] = {
    # Leads, notes and tasks
    ("leads", "list"): ALL_ROLES,
    ("leads", "view"): ALL_ROLES,
    ("leads", "create"): ALL_ROLES,
    ("leads", "update"): ALL_ROLES,
    ("leads", "delete"): ALL_ROLES,
    ("leads", "notes"): ALL_ROLES,
    ("leads", "tasks"): ALL_ROLES,

    # Partners
    ("partners", "list"): STAFF,
    ("partners", "consultants"): STAFF,
    ("partners", "approve"): STAFF,
    ("partners", "reject"): STAFF,
    ("partners", "profile"): ALL_ROLES,

    # Dashboards
    ("dashboard", "partner"): frozenset({PARTNER}),
    ("dashboard", "admin"): frozenset({ADMIN}),

    # Finance
    ("finance", "movements"): ALL_ROLES,
    ("finance", "proof"): ALL_ROLES,
    ("finance", "transactions"): frozenset({ADMIN}),

    # Materials
    ("materials", "list"): ALL_ROLES,
    ("materials", "write"): STAFF,

    # User administration
    ("users", "manage"): frozenset({ADMIN}),

    # Chat
    ("chat", "use"): ALL_ROLES,
}


def is_allowed(role: str, resource: str, action: str) -> bool:
    """Look up a capability. Unknown (resource, action) pairs are denied."""
    return role in POLICY.get((resource, action), frozenset())


class PermissionChecker:
    """
    Permission checker utility for role-based capabilities.
    """

    def __init__(self, user: User):
        self.user = user
        self.role = user.role

    def is_admin(self) -> bool:
        return self.role == ADMIN

    def can(self, resource: str, action: str) -> bool:
        """
        Check if the user's role holds a capability.

        Args:
            resource: Resource name (e.g., 'leads')
            action: Action on the resource (e.g., 'create')
        """
        return is_allowed(self.role, resource, action)

    def allowed_actions(self, resource: str) -> list[str]:
        """List the actions this user may perform on a resource."""
        return sorted(
            action for (res, action), roles in POLICY.items()
            if res == resource and self.role in roles
        )
