from conftest import create_user, create_partner, auth_headers
from app.core.security import decode_token
from app.database import async_session_factory
from app.models.user import UserRoleType


async def test_register_partner_creates_pending_profile(client):
    response = await client.post("/api/auth/register", json={
        "name": "Nova Parceira",
        "email": "Nova@Tirvu.test",
        "password": "secret123",
        "phone": "11999990000",
        "uf": "MG",
    })
    assert response.status_code == 201
    assert response.json() == {"message": "User registered successfully"}

    login = await client.post("/api/auth/login", json={"email": "nova@tirvu.test", "password": "secret123"})
    assert login.status_code == 200
    token = login.json()["token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    body = me.json()
    assert body["role"] == "partner"
    assert body["partner"]["status"] == "pending"
    assert body["partner"]["uf"] == "MG"
    assert "dashboard" in body["capabilities"]


async def test_register_duplicate_email(client):
    payload = {"name": "Dup User", "email": "dup@tirvu.test", "password": "secret123"}
    assert (await client.post("/api/auth/register", json=payload)).status_code == 201

    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


async def test_register_staff_role_requires_admin(client, database):
    async with async_session_factory() as db:
        admin = await create_user(db, "Ada Admin", "ada@tirvu.test", UserRoleType.ADMIN.value)
        consultor = await create_user(db, "Carla", "carla@tirvu.test", UserRoleType.CONSULTOR.value)
        await db.commit()

    payload = {"name": "Eve Intruder", "email": "eve@tirvu.test", "password": "secret123", "role": "admin"}
    anonymous = await client.post("/api/auth/register", json=payload)
    assert anonymous.status_code == 403
    assert anonymous.json()["detail"] == "Only admins can register staff users"

    as_consultor = await client.post("/api/auth/register", json=payload, headers=auth_headers(consultor))
    assert as_consultor.status_code == 403

    login = await client.post("/api/auth/login", json={"email": "eve@tirvu.test", "password": "secret123"})
    assert login.status_code == 400

    staff = {"name": "Nina Consultora", "email": "nina@tirvu.test", "password": "secret123", "role": "consultor"}
    as_admin = await client.post("/api/auth/register", json=staff, headers=auth_headers(admin))
    assert as_admin.status_code == 201

    login = await client.post("/api/auth/login", json={"email": "nina@tirvu.test", "password": "secret123"})
    assert login.json()["user"]["role"] == "consultor"


async def test_login_returns_identity_claims(client, database):
    async with async_session_factory() as db:
        user = await create_user(db, "Ada Admin", "ada@tirvu.test", UserRoleType.ADMIN.value)
        await db.commit()

    response = await client.post("/api/auth/login", json={"email": "ada@tirvu.test", "password": "secret123"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] == body["token"]
    assert body["user"] == {"id": str(user.id), "role": "admin", "name": "Ada Admin"}

    claims = decode_token(body["token"])
    assert claims["sub"] == str(user.id)
    assert claims["role"] == "admin"
    assert claims["name"] == "Ada Admin"
    assert claims["type"] == "access"


async def test_login_invalid_credentials(client, database):
    async with async_session_factory() as db:
        await create_user(db, "Ada Admin", "ada@tirvu.test", UserRoleType.ADMIN.value)
        await db.commit()

    wrong_password = await client.post("/api/auth/login", json={"email": "ada@tirvu.test", "password": "nope"})
    unknown_email = await client.post("/api/auth/login", json={"email": "who@tirvu.test", "password": "nope"})
    assert wrong_password.status_code == 400
    assert unknown_email.status_code == 400
    assert wrong_password.json()["detail"] == unknown_email.json()["detail"] == "Invalid credentials"


async def test_inactive_user_is_rejected(client, database):
    async with async_session_factory() as db:
        user = await create_user(db, "Ex User", "ex@tirvu.test", UserRoleType.CONSULTOR.value)
        user.is_active = False
        await db.commit()

    login = await client.post("/api/auth/login", json={"email": "ex@tirvu.test", "password": "secret123"})
    assert login.status_code == 403

    me = await client.get("/api/auth/me", headers=auth_headers(user))
    assert me.status_code == 403


async def test_me_requires_token(client):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401

    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_me_embeds_partner_profile(client, database):
    async with async_session_factory() as db:
        user = await create_user(db, "Paula", "paula@tirvu.test", UserRoleType.PARTNER.value)
        partner = await create_partner(db, user)
        await db.commit()

    response = await client.get("/api/auth/me", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["partner"]["id"] == str(partner.id)
