from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.models.user import UserRoleType
from app.schemas.base import BaseCreateSchema, BaseResponseSchema
from app.schemas.partner import PartnerResponse


class RegisterRequest(BaseCreateSchema):
    """Registration request schema."""
    name: str = Field(..., min_length=2, max_length=150, description="Full name")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="User password")
    role: UserRoleType = Field(default=UserRoleType.PARTNER, description="Defaults to partner")
    phone: Optional[str] = None
    uf: Optional[str] = Field(default=None, max_length=2)
    city: Optional[str] = None


class LoginRequest(BaseModel):
    """Login request schema."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class TokenUser(BaseResponseSchema):
    """Identity claims returned alongside the token."""
    id: UUID
    role: str
    name: str


class TokenResponse(BaseModel):
    """Token response schema."""
    token: str = Field(..., description="JWT access token")
    access_token: str = Field(..., description="JWT access token (OAuth2 naming)")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")
    user: TokenUser


class MeResponse(BaseResponseSchema):
    """Current user, without credentials."""
    id: UUID
    name: str
    email: str
    role: str
    is_active: bool
    partner: Optional[PartnerResponse] = None
    capabilities: dict[str, list[str]] = {}
