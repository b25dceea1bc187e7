"""User management schemas (admin only)."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from app.models.user import UserRoleType
from app.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


class UserCreate(BaseCreateSchema):
    name: str = Field(..., min_length=2, max_length=150)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRoleType = UserRoleType.ADMIN


class UserUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(default=None, min_length=2, max_length=150)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[UserRoleType] = None
    is_active: Optional[bool] = None


class UserResponse(BaseResponseSchema):
    id: UUID
    name: str
    email: str
    role: str
    is_active: bool
    created_at: datetime
