"""
Shared fixtures.

The app reads its settings at import time, so the environment is prepared
before anything from `app` is imported. Every test that touches the database
gets freshly created tables in a temporary SQLite file.
"""
import os
import tempfile
from types import SimpleNamespace

_DB_DIR = tempfile.mkdtemp(prefix="tirvu-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ.pop("LEAD_WEBHOOK_URL", None)

import email_validator
import httpx
import pytest

# The fixtures use the special-use `.test` domain; let EmailStr accept it.
email_validator.TEST_ENVIRONMENT = True

from app.core.security import create_access_token, get_password_hash
from app.database import Base, engine, async_session_factory
from app.main import app
from app.models.lead import Lead
from app.models.partner import Partner, PartnerStatus
from app.models.user import User, UserRoleType
from app.realtime.manager import manager


DEFAULT_PASSWORD = "secret123"


async def create_user(db, name: str, email: str, role: str, password: str = DEFAULT_PASSWORD) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        role=role,
    )
    db.add(user)
    await db.flush()
    return user


async def create_partner(
    db,
    user: User,
    consultant: User = None,
    status: str = PartnerStatus.APPROVED.value,
    phone: str = None,
    uf: str = "SP",
) -> Partner:
    partner = Partner(
        user_id=user.id,
        consultant_id=consultant.id if consultant else None,
        status=status,
        phone=phone,
        uf=uf,
        city="São Paulo",
    )
    db.add(partner)
    await db.flush()
    return partner


async def create_lead(db, partner: Partner, name: str, **fields) -> Lead:
    lead = Lead(partner_id=partner.id, name=name, **fields)
    db.add(lead)
    await db.flush()
    return lead


def auth_headers(user: User) -> dict:
    token = create_access_token(
        subject=user.id,
        additional_claims={"role": user.role, "name": user.name},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    # Pooled aiosqlite connections are bound to this test's event loop
    await engine.dispose()


@pytest.fixture
async def client(database):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def reset_presence():
    manager.presence.clear()
    yield
    manager.presence.clear()


@pytest.fixture
async def world(database):
    """
    Users of every role and two partners.

    partner_a is supervised by `consultor`; partner_b by `other_consultor`.
    Each partner has one lead.
    """
    async with async_session_factory() as db:
        admin = await create_user(db, "Ada Admin", "admin@tirvu.test", UserRoleType.ADMIN.value)
        consultor = await create_user(db, "Carla Consultora", "carla@tirvu.test", UserRoleType.CONSULTOR.value)
        other_consultor = await create_user(db, "Otto Consultor", "otto@tirvu.test", UserRoleType.CONSULTOR.value)
        user_a = await create_user(db, "Paula Parceira", "paula@tirvu.test", UserRoleType.PARTNER.value)
        user_b = await create_user(db, "Bruno Parceiro", "bruno@tirvu.test", UserRoleType.PARTNER.value)

        partner_a = await create_partner(db, user_a, consultor, phone="(11) 98888-7777")
        partner_b = await create_partner(db, user_b, other_consultor, uf="RJ")

        lead_a = await create_lead(db, partner_a, "Lead Alfa", company="Alfa Ltda")
        lead_b = await create_lead(db, partner_b, "Lead Beta", company="Beta SA")
        await db.commit()

    return SimpleNamespace(
        admin=admin,
        consultor=consultor,
        other_consultor=other_consultor,
        user_a=user_a,
        user_b=user_b,
        partner_a=partner_a,
        partner_b=partner_b,
        lead_a=lead_a,
        lead_b=lead_b,
        headers=SimpleNamespace(
            admin=auth_headers(admin),
            consultor=auth_headers(consultor),
            other_consultor=auth_headers(other_consultor),
            partner_a=auth_headers(user_a),
            partner_b=auth_headers(user_b),
        ),
    )
