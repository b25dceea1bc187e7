"""Authentication API endpoints."""
from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser, OptionalUser
from app.core.permissions import PermissionChecker, POLICY
from app.schemas.auth import RegisterRequest, LoginRequest, TokenResponse, TokenUser, MeResponse
from app.schemas.base import MessageResponse
from app.schemas.partner import PartnerResponse
from app.services.access_scope import get_own_partner
from app.services.auth_service import AuthService


router = APIRouter()


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: DB, current_user: OptionalUser):
    """
    Register a new user.

    Partners also get a pending partner profile. Other roles need an admin
    bearer token.
    """
    await AuthService(db).register(data, requested_by=current_user)
    return MessageResponse(message="User registered successfully")


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: DB):
    """
    Login with email and password.

    Returns the token and the identity claims (`id`, `role`, `name`).
    """
    user, token, expires_in = await AuthService(db).login(data.email, data.password)
    return TokenResponse(
        token=token,
        access_token=token,
        token_type="bearer",
        expires_in=expires_in,
        user=TokenUser.model_validate(user),
    )


@router.get("/me", response_model=MeResponse)
async def get_me(current_user: CurrentUser, db: DB):
    """Current user; partners get their partner profile embedded."""
    checker = PermissionChecker(current_user)
    resources = sorted({resource for resource, _ in POLICY})

    response = MeResponse.model_validate(current_user)
    for resource in resources:
        actions = checker.allowed_actions(resource)
        if actions:
            response.capabilities[resource] = actions
    if current_user.is_partner:
        partner = await get_own_partner(db, current_user.id)
        if partner is not None:
            response.partner = PartnerResponse.model_validate(partner)
    return response
