from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.core.security import verify_access_token
from app.core.permissions import PermissionChecker
from app.models.user import User


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing headers are answered with 401 below
security = HTTPBearer(auto_error=False)


async def get_user_from_token(db: AsyncSession, token: Optional[str]) -> Optional[User]:
    """
    Resolve a bearer token to an active-or-inactive User, or None.

    Shared by the HTTP dependency and the realtime handshake.
    """
    if not token:
        return None

    user_id = verify_access_token(token)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        return None

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        return None

    result = await db.execute(select(User).where(User.id == user_uuid))
    return result.scalar_one_or_none()


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token, authorization denied",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_from_token(db, credentials.credentials)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    return user


async def get_optional_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Optional[User]:
    """
    Current user when a valid bearer token is sent, None otherwise.

    For routes open to anonymous callers whose behaviour widens for staff.
    """
    if credentials is None:
        return None
    user = await get_user_from_token(db, credentials.credentials)
    if user is None or not user.is_active:
        return None
    return user


def require_capability(resource: str, action: str):
    """
    Dependency factory to require a (resource, action) capability.

    Usage:
        @router.get("/")
        async def list_partners(current_user: User = Depends(require_capability("partners", "list"))):
            ...
    """
    async def capability_dependency(
        user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if not PermissionChecker(user).can(resource, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied for role '{user.role}'"
            )
        return user

    return capability_dependency


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
