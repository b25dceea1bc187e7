"""User administration API endpoints (admin only)."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api.deps import DB, require_capability
from app.models.user import User, UserRoleType
from app.schemas.base import MessageResponse
from app.schemas.user import UserCreate, UserUpdate, UserResponse
from app.services.user_service import UserService


router = APIRouter()


@router.get("", response_model=List[UserResponse])
async def list_users(
    db: DB,
    role: Optional[UserRoleType] = None,
    current_user: User = Depends(require_capability("users", "manage")),
):
    """List users, optionally filtered by role."""
    return await UserService(db).list_users(role.value if role else None)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    db: DB,
    current_user: User = Depends(require_capability("users", "manage")),
):
    """Create a user; the role defaults to admin."""
    return await UserService(db).create_user(data)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    db: DB,
    current_user: User = Depends(require_capability("users", "manage")),
):
    return await UserService(db).update_user(user_id, data)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("users", "manage")),
):
    """Delete a user. Admins cannot delete themselves."""
    await UserService(db).delete_user(user_id, current_user)
    return MessageResponse(message="User deleted successfully")
