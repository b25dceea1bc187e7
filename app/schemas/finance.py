"""Pydantic schemas for the commission ledger (finance) endpoints."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.transaction import TransactionType
from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class MovementResponse(BaseResponseSchema):
    """
    One line of the partner statement.

    Commissions come from leads with a closed sale (id prefixed `lead_`);
    manual credits and debits come from the transactions table (`trans_`).
    """
    id: str
    original_id: UUID
    type: str
    date: datetime
    description: str
    value: Decimal
    status: str
    has_proof: bool = False
    partner_id: UUID
    lead_id: Optional[UUID] = None
    partner_name: str
    partner_email: Optional[str] = None


class ProofResponse(BaseResponseSchema):
    lead_id: UUID
    proof: str


class TransactionCreate(BaseCreateSchema):
    """Manual ledger entry recorded by an admin."""
    partner_id: UUID
    type: TransactionType
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(default=None, max_length=255)
    lead_id: Optional[UUID] = None
    date: Optional[datetime] = None


class TransactionResponse(BaseResponseSchema):
    id: UUID
    partner_id: UUID
    lead_id: Optional[UUID] = None
    type: str
    amount: Decimal
    description: Optional[str] = None
    date: datetime
    created_at: datetime
