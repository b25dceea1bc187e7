from app.core.permissions import POLICY, PermissionChecker, is_allowed
from app.models.user import User, UserRoleType


def make_user(role: UserRoleType) -> User:
    return User(name="Test", email=f"{role.value}@tirvu.test", password_hash="x", role=role.value)


def test_partner_dashboard_is_partner_only():
    assert is_allowed("partner", "dashboard", "partner")
    assert not is_allowed("admin", "dashboard", "partner")
    assert not is_allowed("consultor", "dashboard", "partner")


def test_admin_dashboard_and_manual_entries_are_admin_only():
    for resource, action in [("dashboard", "admin"), ("finance", "transactions"), ("users", "manage")]:
        assert is_allowed("admin", resource, action)
        assert not is_allowed("consultor", resource, action)
        assert not is_allowed("partner", resource, action)


def test_staff_capabilities_on_partners():
    for action in ("list", "consultants", "approve", "reject"):
        assert is_allowed("admin", "partners", action)
        assert is_allowed("consultor", "partners", action)
        assert not is_allowed("partner", "partners", action)


def test_unknown_capability_is_denied():
    assert not is_allowed("admin", "reports", "export")
    assert not is_allowed("superuser", "leads", "list")


def test_every_role_can_chat_and_work_leads():
    for role in UserRoleType:
        checker = PermissionChecker(make_user(role))
        assert checker.can("chat", "use")
        assert checker.can("leads", "create")


def test_allowed_actions_for_partner():
    checker = PermissionChecker(make_user(UserRoleType.PARTNER))
    assert checker.allowed_actions("finance") == ["movements", "proof"]
    assert checker.allowed_actions("materials") == ["list"]
    assert checker.allowed_actions("users") == []


def test_policy_only_mentions_known_roles():
    known = {role.value for role in UserRoleType}
    for roles in POLICY.values():
        assert roles <= known
