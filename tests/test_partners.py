import re

from conftest import create_user, create_partner, auth_headers
from app.database import async_session_factory
from app.models.partner import Partner, PartnerStatus
from app.models.user import UserRoleType
from app.services.partner_service import approval_message


async def _pending_partner(world):
    async with async_session_factory() as db:
        user = await create_user(db, "Pedro Pendente", "pedro@tirvu.test", UserRoleType.PARTNER.value)
        partner = await create_partner(db, user, status=PartnerStatus.PENDING.value, phone="21977776666")
        await db.commit()
    return user, partner


async def test_approve_issues_password_and_assigns_consultant(client, world):
    user, partner = await _pending_partner(world)

    response = await client.put(
        f"/api/partners/{partner.id}/approve",
        headers=world.headers.admin,
        json={"consultantId": str(world.consultor.id)},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Partner approved successfully"
    assert re.fullmatch(r"[0-9a-f]{8}", body["password"])

    login = await client.post("/api/auth/login", json={"email": user.email, "password": body["password"]})
    assert login.status_code == 200

    async with async_session_factory() as db:
        stored = await db.get(Partner, partner.id)
        assert stored.status == "approved"
        assert stored.consultant_id == world.consultor.id


async def test_approve_twice_fails(client, world):
    _, partner = await _pending_partner(world)
    first = await client.put(f"/api/partners/{partner.id}/approve", headers=world.headers.admin)
    assert first.status_code == 200

    second = await client.put(f"/api/partners/{partner.id}/approve", headers=world.headers.admin)
    assert second.status_code == 400
    assert second.json()["detail"] == "Partner already approved"


async def test_approve_with_unknown_consultant(client, world):
    _, partner = await _pending_partner(world)
    # A partner user is not a consultant
    response = await client.put(
        f"/api/partners/{partner.id}/approve",
        headers=world.headers.admin,
        json={"consultantId": str(world.user_b.id)},
    )
    assert response.status_code == 404


async def test_reject_requires_reason(client, world):
    _, partner = await _pending_partner(world)

    response = await client.put(f"/api/partners/{partner.id}/reject", headers=world.headers.admin, json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Rejection reason is required"

    response = await client.put(
        f"/api/partners/{partner.id}/reject",
        headers=world.headers.admin,
        json={"reason": "Incomplete documentation"},
    )
    assert response.status_code == 200

    listed = await client.get("/api/partners", params={"status": "rejected"}, headers=world.headers.admin)
    [rejected] = listed.json()
    assert rejected["id"] == str(partner.id)
    assert rejected["rejectionReason"] == "Incomplete documentation"


async def test_rejected_partner_can_be_approved_later(client, world):
    _, partner = await _pending_partner(world)
    await client.put(f"/api/partners/{partner.id}/reject", headers=world.headers.admin, json={"reason": "No CNPJ"})

    response = await client.put(f"/api/partners/{partner.id}/approve", headers=world.headers.consultor)
    assert response.status_code == 200

    async with async_session_factory() as db:
        stored = await db.get(Partner, partner.id)
        assert stored.rejection_reason is None


async def test_partner_list_status_filter(client, world):
    await _pending_partner(world)

    pending = await client.get("/api/partners", params={"status": "pending"}, headers=world.headers.admin)
    assert [p["user"]["name"] for p in pending.json()] == ["Pedro Pendente"]

    everything = await client.get("/api/partners", params={"status": "all"}, headers=world.headers.admin)
    assert len(everything.json()) == 3


async def test_list_consultants(client, world):
    response = await client.get("/api/partners/consultants", headers=world.headers.admin)
    assert [c["name"] for c in response.json()] == ["Carla Consultora", "Otto Consultor"]


async def test_own_profile(client, world):
    response = await client.put("/api/partners/profile", headers=world.headers.partner_a, json={
        "pixKey": "paula@pix.test", "pixKeyType": "email",
    })
    assert response.status_code == 200
    assert response.json()["pixKey"] == "paula@pix.test"

    profile = await client.get("/api/partners/profile", headers=world.headers.partner_a)
    assert profile.json()["pixKeyType"] == "email"
    assert profile.json()["consultant"]["name"] == "Carla Consultora"

    admin_profile = await client.get("/api/partners/profile", headers=world.headers.admin)
    assert admin_profile.status_code == 404


async def test_public_registration(client, world):
    payload = {"name": "Lia Landing", "email": "lia@tirvu.test", "phone": "31988887777", "uf": "MG"}
    response = await client.post("/api/public/partners/register", json=payload)
    assert response.status_code == 201

    duplicate = await client.post("/api/public/partners/register", json=payload)
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "E-mail already registered"

    pending = await client.get("/api/partners", params={"status": "pending"}, headers=world.headers.admin)
    assert [p["user"]["email"] for p in pending.json()] == ["lia@tirvu.test"]


async def test_partner_dashboard_requires_profile(client, database):
    async with async_session_factory() as db:
        orphan = await create_user(db, "Sem Perfil", "orphan@tirvu.test", UserRoleType.PARTNER.value)
        await db.commit()

    response = await client.get("/api/dashboard/partner", headers=auth_headers(orphan))
    assert response.status_code == 404
    assert response.json()["detail"] == "Partner profile not found"


def test_approval_message_carries_credentials():
    message = approval_message("Pedro", "pedro@tirvu.test", "a1b2c3d4")
    assert "pedro@tirvu.test" in message
    assert "a1b2c3d4" in message
