"""Inbound CRM webhooks."""
from fastapi import APIRouter, Request

from app.api.deps import DB
from app.services.pipedrive_webhook import PipedriveWebhookService


router = APIRouter()


@router.post("/pipedrive")
async def pipedrive_webhook(request: Request, db: DB):
    """
    Pipedrive deal/note/activity events.

    Any body shape is accepted; events that cannot be mapped are acknowledged
    with 200 and change nothing. An unknown lead reference is a 404.
    """
    body = await request.body()
    result = await PipedriveWebhookService(db).handle(body)
    return result.to_dict()
