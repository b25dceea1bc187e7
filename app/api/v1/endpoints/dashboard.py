"""Dashboard API endpoints."""
from fastapi import APIRouter, Depends

from app.api.deps import DB, require_capability
from app.models.user import User
from app.schemas.dashboard import PartnerDashboardResponse, AdminDashboardResponse
from app.services.dashboard_service import DashboardService


router = APIRouter()


@router.get("/partner", response_model=PartnerDashboardResponse)
async def partner_dashboard(
    db: DB,
    current_user: User = Depends(require_capability("dashboard", "partner")),
):
    """KPIs of the logged partner: earnings, received, balance and conversion."""
    return await DashboardService(db).partner_dashboard(current_user.id)


@router.get("/admin", response_model=AdminDashboardResponse)
async def admin_dashboard(
    db: DB,
    current_user: User = Depends(require_capability("dashboard", "admin")),
):
    """Platform-wide partner, lead and financial figures."""
    return await DashboardService(db).admin_dashboard()
