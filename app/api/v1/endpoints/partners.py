"""Partner management API endpoints."""
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from app.api.deps import DB, require_capability
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.partner import (
    PartnerDetailResponse, PartnerProfileUpdate, PartnerApproveRequest,
    PartnerRejectRequest, PartnerApproveResponse, UserSummary,
)
from app.services.access_scope import resolve_scope
from app.services.partner_service import PartnerService


router = APIRouter()


@router.get("", response_model=List[PartnerDetailResponse])
async def list_partners(
    db: DB,
    status: Optional[str] = Query(None, description="pending, approved, rejected or all"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: User = Depends(require_capability("partners", "list")),
):
    """
    List partners.

    Consultants only see the partners assigned to them.
    """
    scope = await resolve_scope(db, current_user)
    return await PartnerService(db).list_partners(scope, status, start_date, end_date)


@router.get("/consultants", response_model=List[UserSummary])
async def list_consultants(
    db: DB,
    current_user: User = Depends(require_capability("partners", "consultants")),
):
    """Users with the consultor role, for assignment on approval."""
    return await PartnerService(db).list_consultants()


@router.get("/profile", response_model=PartnerDetailResponse)
async def get_profile(
    db: DB,
    current_user: User = Depends(require_capability("partners", "profile")),
):
    """Partner profile of the logged user."""
    return await PartnerService(db).get_profile(current_user.id)


@router.put("/profile", response_model=PartnerDetailResponse)
async def update_profile(
    data: PartnerProfileUpdate,
    db: DB,
    current_user: User = Depends(require_capability("partners", "profile")),
):
    """Update PIX key and contact data of the logged partner."""
    return await PartnerService(db).update_profile(current_user.id, data)


@router.put("/{partner_id}/approve", response_model=PartnerApproveResponse)
async def approve_partner(
    partner_id: UUID,
    background_tasks: BackgroundTasks,
    db: DB,
    data: Optional[PartnerApproveRequest] = None,
    current_user: User = Depends(require_capability("partners", "approve")),
):
    """
    Approve a pending or rejected partner.

    A new password is generated, returned once and sent to the partner by WhatsApp.
    """
    consultant_id = data.consultant_id if data else None
    password = await PartnerService(db, background_tasks).approve(partner_id, consultant_id)
    return PartnerApproveResponse(message="Partner approved successfully", password=password)


@router.put("/{partner_id}/reject", response_model=MessageResponse)
async def reject_partner(
    partner_id: UUID,
    data: PartnerRejectRequest,
    background_tasks: BackgroundTasks,
    db: DB,
    current_user: User = Depends(require_capability("partners", "reject")),
):
    """Reject a partner; the reason is required and sent to the partner."""
    await PartnerService(db, background_tasks).reject(partner_id, data.reason)
    return MessageResponse(message="Partner rejected successfully")
