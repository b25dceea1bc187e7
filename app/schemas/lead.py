"""Pydantic schemas for Lead Management module."""
from datetime import datetime
from typing import Optional
from decimal import Decimal
from uuid import UUID

from pydantic import Field, field_validator

from app.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema
from app.models.lead import LeadStatus, LeadType, PaymentStatus, USER_SETTABLE_STATUSES


def check_user_status(value):
    if value is not None and LeadStatus(value) not in USER_SETTABLE_STATUSES:
        raise ValueError(f"Status '{value}' can only be set by the CRM integration")
    return value


# ==================== Lead Schemas ====================

class LeadCreate(BaseCreateSchema):
    """Schema for creating a lead."""
    name: str = Field(..., min_length=1, max_length=200)
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    type: LeadType = LeadType.PF
    document: Optional[str] = None
    value: Optional[Decimal] = Field(default=None, ge=0)
    status: LeadStatus = LeadStatus.NEW
    observation: Optional[str] = None
    number_of_employees: Optional[str] = None
    # None means "not informed" and defaults to True
    speak_on_behalf: Optional[bool] = None
    # Only honoured for staff; partners always create for themselves
    partner_id: Optional[UUID] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return check_user_status(v)


class LeadUpdate(BaseUpdateSchema):
    """Schema for updating a lead (partial)."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    type: Optional[LeadType] = None
    document: Optional[str] = None
    value: Optional[Decimal] = Field(default=None, ge=0)
    # CRM-only statuses are accepted when unchanged (checked by LeadService)
    status: Optional[LeadStatus] = None
    observation: Optional[str] = None
    number_of_employees: Optional[str] = None
    speak_on_behalf: Optional[bool] = None

    # Sale sub-state
    sale_closed: Optional[bool] = None
    payment_status: Optional[PaymentStatus] = None
    sale_value: Optional[Decimal] = Field(default=None, ge=0)
    commission_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    commission_value: Optional[Decimal] = Field(default=None, ge=0)
    commission_proof: Optional[str] = None


class LeadPartnerUser(BaseResponseSchema):
    name: str
    role: str


class LeadPartnerSummary(BaseResponseSchema):
    """Partner data shown next to each lead."""
    id: UUID
    uf: Optional[str] = None
    pix_key: Optional[str] = None
    pix_key_type: Optional[str] = None
    user: Optional[LeadPartnerUser] = None


class LeadResponse(BaseResponseSchema):
    """Lead as returned by the API. The proof itself is served by /finance/proof."""
    id: UUID
    partner_id: UUID
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    type: str
    document: Optional[str] = None
    observation: Optional[str] = None
    number_of_employees: Optional[str] = None
    status: str
    value: Optional[Decimal] = None
    sale_closed: bool
    payment_status: Optional[str] = None
    sale_value: Optional[Decimal] = None
    commission_percentage: Optional[Decimal] = None
    commission_value: Optional[Decimal] = None
    has_proof: bool = False
    speak_on_behalf: bool
    ref_id: Optional[str] = None
    pipedrive_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LeadListItem(LeadResponse):
    notes_count: int = 0
    partner: Optional[LeadPartnerSummary] = None


# ==================== Notes & Tasks ====================

class LeadNoteCreate(BaseCreateSchema):
    content: str = Field(..., min_length=1)


class NoteAuthor(BaseResponseSchema):
    name: str
    role: str


class LeadNoteResponse(BaseResponseSchema):
    id: UUID
    lead_id: UUID
    user_id: Optional[UUID] = None
    content: str
    created_at: datetime
    author: Optional[NoteAuthor] = None


class LeadTaskCreate(BaseCreateSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    duration: Optional[str] = None


class LeadTaskUpdate(BaseUpdateSchema):
    done: Optional[bool] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    duration: Optional[str] = None


class LeadTaskResponse(BaseResponseSchema):
    id: UUID
    lead_id: UUID
    user_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    duration: Optional[str] = None
    done: bool
    created_at: datetime
    author: Optional[NoteAuthor] = None
