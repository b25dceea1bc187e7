"""Pydantic schemas for partners and their public registration."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from app.models.partner import PixKeyType
from app.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


class UserSummary(BaseResponseSchema):
    """Name/e-mail of the user behind a partner or consultant."""
    id: UUID
    name: str
    email: str
    role: Optional[str] = None


class PartnerResponse(BaseResponseSchema):
    """Partner profile."""
    id: UUID
    user_id: UUID
    status: str
    phone: Optional[str] = None
    uf: Optional[str] = None
    city: Optional[str] = None
    pix_key: Optional[str] = None
    pix_key_type: Optional[str] = None
    rejection_reason: Optional[str] = None
    consultant_id: Optional[UUID] = None
    created_at: datetime


class PartnerDetailResponse(PartnerResponse):
    """Partner with its user and consultant, as listed to staff."""
    user: Optional[UserSummary] = None
    consultant: Optional[UserSummary] = None


class PartnerProfileUpdate(BaseUpdateSchema):
    """Fields a partner may change on its own profile."""
    pix_key: Optional[str] = None
    pix_key_type: Optional[PixKeyType] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    uf: Optional[str] = Field(default=None, max_length=2)


class PartnerApproveRequest(BaseCreateSchema):
    consultant_id: Optional[UUID] = None


class PartnerRejectRequest(BaseCreateSchema):
    reason: Optional[str] = None


class PartnerApproveResponse(BaseResponseSchema):
    message: str
    password: str


class PublicPartnerRegister(BaseCreateSchema):
    """Unauthenticated self registration from the landing page."""
    name: str = Field(..., min_length=2, max_length=150)
    email: EmailStr
    phone: Optional[str] = None
    uf: Optional[str] = Field(default=None, max_length=2)
    city: Optional[str] = None
