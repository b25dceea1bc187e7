"""Unauthenticated partner registration (landing page)."""
from fastapi import APIRouter, status

from app.api.deps import DB
from app.schemas.base import MessageResponse
from app.schemas.partner import PublicPartnerRegister
from app.services.partner_service import PartnerService


router = APIRouter()


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register_partner(data: PublicPartnerRegister, db: DB):
    """Self registration; the account stays pending until approved."""
    await PartnerService(db).register_public(data)
    return MessageResponse(message="Registration received! We will contact you soon.")
