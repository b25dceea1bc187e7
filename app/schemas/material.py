"""Support material schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.material import MaterialType
from app.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


class MaterialCreate(BaseCreateSchema):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: MaterialType
    url: Optional[str] = None
    content: Optional[str] = None
    thumbnail: Optional[str] = None


class MaterialUpdate(BaseUpdateSchema):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[MaterialType] = None
    url: Optional[str] = None
    content: Optional[str] = None
    thumbnail: Optional[str] = None


class MaterialResponse(BaseResponseSchema):
    id: UUID
    title: str
    description: Optional[str] = None
    type: str
    url: Optional[str] = None
    content: Optional[str] = None
    thumbnail: Optional[str] = None
    created_at: datetime
    updated_at: datetime
