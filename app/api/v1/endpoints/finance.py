"""Finance API endpoints: partner statement, payment proofs and manual entries."""
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import DB, require_capability
from app.core.exceptions import NotFoundError
from app.models.lead import Lead
from app.models.user import User
from app.schemas.finance import (
    MovementResponse, ProofResponse, TransactionCreate, TransactionResponse,
)
from app.services.access_scope import resolve_scope, require_partner_scope
from app.services.ledger_service import LedgerService


router = APIRouter()


@router.get("/movements", response_model=List[MovementResponse])
async def list_movements(
    db: DB,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    partner_id: Optional[UUID] = Query(None, alias="partnerId"),
    current_user: User = Depends(require_capability("finance", "movements")),
):
    """
    Commissions of closed sales merged with manual credits/debits, newest first.

    Partners see their own statement; consultants their partners'; admins may
    filter by partner.
    """
    scope = await require_partner_scope(db, current_user)
    partner_ids = scope.narrow(partner_id)
    return await LedgerService(db).movements(partner_ids, start_date, end_date)


@router.get("/proof/{lead_id}", response_model=ProofResponse)
async def get_proof(
    lead_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("finance", "proof")),
):
    """Commission payment proof (base64 data URI) of a lead."""
    scope = await resolve_scope(db, current_user)
    lead = scope.ensure_lead_visible(await db.get(Lead, lead_id))
    if not lead.commission_proof:
        raise NotFoundError("Proof not found")
    return ProofResponse(lead_id=lead.id, proof=lead.commission_proof)


@router.post("/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: TransactionCreate,
    db: DB,
    current_user: User = Depends(require_capability("finance", "transactions")),
):
    """Record a manual credit or debit; a debit may point at the lead it pays."""
    return await LedgerService(db).create_transaction(data)
