"""Lead Management API endpoints."""
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status

from app.api.deps import DB, require_capability
from app.models.lead import LeadStatus
from app.models.user import User
from app.schemas.lead import (
    LeadCreate, LeadUpdate, LeadResponse, LeadListItem,
    LeadNoteCreate, LeadNoteResponse,
    LeadTaskCreate, LeadTaskUpdate, LeadTaskResponse,
)
from app.services.access_scope import resolve_scope, require_partner_scope
from app.services.lead_service import LeadService


router = APIRouter()


async def _service(db, user: User, background_tasks: Optional[BackgroundTasks] = None) -> LeadService:
    scope = await resolve_scope(db, user)
    return LeadService(db, scope, background_tasks)


# ==================== Leads ====================

@router.get("", response_model=List[LeadListItem])
async def list_leads(
    db: DB,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    partner_id: Optional[UUID] = Query(None, alias="partnerId"),
    status: Optional[LeadStatus] = None,
    current_user: User = Depends(require_capability("leads", "list")),
):
    """
    List leads visible to the user, newest first.

    A partnerId outside a consultant's partners yields an empty list.
    """
    scope = await require_partner_scope(db, current_user)
    service = LeadService(db, scope)
    rows = await service.list_leads(
        start_date=start_date,
        end_date=end_date,
        partner_id=partner_id,
        status=status.value if status else None,
    )

    items = []
    for lead, notes_count in rows:
        item = LeadListItem.model_validate(lead)
        item.notes_count = notes_count
        items.append(item)
    return items


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    data: LeadCreate,
    background_tasks: BackgroundTasks,
    db: DB,
    current_user: User = Depends(require_capability("leads", "create")),
):
    """
    Create a lead.

    Partners create for themselves; staff pass `partnerId` (admins without it
    get a partner profile of their own).
    """
    service = await _service(db, current_user, background_tasks)
    return await service.create_lead(data, current_user)


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("leads", "view")),
):
    service = await _service(db, current_user)
    return await service.get_lead(lead_id)


@router.put("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: UUID,
    data: LeadUpdate,
    background_tasks: BackgroundTasks,
    db: DB,
    current_user: User = Depends(require_capability("leads", "update")),
):
    """Partial update; closing a sale notifies the partner by WhatsApp."""
    service = await _service(db, current_user, background_tasks)
    return await service.update_lead(lead_id, data)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("leads", "delete")),
):
    service = await _service(db, current_user)
    await service.delete_lead(lead_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==================== Notes ====================

@router.get("/{lead_id}/notes", response_model=List[LeadNoteResponse])
async def list_notes(
    lead_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("leads", "notes")),
):
    service = await _service(db, current_user)
    return await service.list_notes(lead_id)


@router.post("/{lead_id}/notes", response_model=LeadNoteResponse, status_code=status.HTTP_201_CREATED)
async def add_note(
    lead_id: UUID,
    data: LeadNoteCreate,
    db: DB,
    current_user: User = Depends(require_capability("leads", "notes")),
):
    service = await _service(db, current_user)
    return await service.add_note(lead_id, data, current_user)


# ==================== Tasks ====================

@router.get("/{lead_id}/tasks", response_model=List[LeadTaskResponse])
async def list_tasks(
    lead_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("leads", "tasks")),
):
    service = await _service(db, current_user)
    return await service.list_tasks(lead_id)


@router.post("/{lead_id}/tasks", response_model=LeadTaskResponse, status_code=status.HTTP_201_CREATED)
async def add_task(
    lead_id: UUID,
    data: LeadTaskCreate,
    db: DB,
    current_user: User = Depends(require_capability("leads", "tasks")),
):
    service = await _service(db, current_user)
    return await service.add_task(lead_id, data, current_user)


@router.patch("/{lead_id}/tasks/{task_id}", response_model=LeadTaskResponse)
async def update_task(
    lead_id: UUID,
    task_id: UUID,
    db: DB,
    data: Optional[LeadTaskUpdate] = None,
    current_user: User = Depends(require_capability("leads", "tasks")),
):
    """Update a task; an empty body toggles `done`."""
    service = await _service(db, current_user)
    return await service.update_task(lead_id, task_id, data or LeadTaskUpdate())


@router.delete("/{lead_id}/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    lead_id: UUID,
    task_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("leads", "tasks")),
):
    service = await _service(db, current_user)
    await service.delete_task(lead_id, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
