from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Access
    auth,
    users,
    # Partners
    partners,
    public_partners,
    # Leads & commissions
    leads,
    dashboard,
    finance,
    # Content
    materials,
    # Messaging
    chat,
    # CRM integration
    webhooks,
)


# Create main API router
api_router = APIRouter(prefix="/api")

# ==================== Authentication ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)

# ==================== User Administration ====================
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"]
)

# ==================== Partners ====================
api_router.include_router(
    partners.router,
    prefix="/partners",
    tags=["Partners"]
)

api_router.include_router(
    public_partners.router,
    prefix="/public/partners",
    tags=["Public"]
)

# ==================== Leads ====================
api_router.include_router(
    leads.router,
    prefix="/leads",
    tags=["Leads"]
)

# ==================== Dashboards ====================
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

# ==================== Finance ====================
api_router.include_router(
    finance.router,
    prefix="/finance",
    tags=["Finance"]
)

# ==================== Materials ====================
api_router.include_router(
    materials.router,
    prefix="/materials",
    tags=["Materials"]
)

# ==================== Chat ====================
api_router.include_router(
    chat.router,
    prefix="/chat",
    tags=["Chat"]
)


# Routers mounted outside /api
webhook_router = APIRouter(prefix="/webhook")
webhook_router.include_router(webhooks.router, tags=["Webhooks"])

realtime_router = chat.ws_router
