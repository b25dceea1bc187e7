"""
WhatsApp Notification Service

Sends partner notifications through a Z-API style WhatsApp gateway:
- plain text messages (approval, rejection, sale closed)
- documents (commission payment proof, sent as a base64 data URI)

Delivery is best effort. Every failure is logged and swallowed so that the
calling business operation is never affected.
"""
import logging
import re
from functools import lru_cache
from typing import Optional, Dict, Any

import httpx

from app.config import settings


logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:([A-Za-z0-9.+/-]+);base64,(.+)$", re.DOTALL)

# mime subtype -> file extension expected by the gateway
EXTENSION_FIXES = {
    "jpeg": "jpg",
    "plain": "txt",
    "msword": "doc",
    "vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}


def normalize_phone(phone: str) -> str:
    """Keep digits only and make sure the Brazilian country code (55) is present."""
    digits = re.sub(r"\D", "", phone or "")
    if not digits.startswith("55"):
        digits = "55" + digits
    return digits


def extension_for_data_uri(data: str) -> str:
    """File extension for a base64 data URI; pdf when the mime type is absent."""
    match = DATA_URI_PATTERN.match(data or "")
    if not match:
        return "pdf"
    subtype = match.group(1).split("/")[-1]
    return EXTENSION_FIXES.get(subtype, subtype)


def format_brl(value) -> str:
    """Format a monetary value as R$ 1.234,56."""
    amount = float(value or 0)
    text = f"{amount:,.2f}"
    return "R$ " + text.replace(",", "X").replace(".", ",").replace("X", ".")


class WhatsAppService:
    """
    Thin client for the WhatsApp gateway.

    Methods return the gateway's JSON response, or None when the message was
    not delivered (disabled, not configured or failed).
    """

    def __init__(
        self,
        instance: Optional[str] = None,
        token: Optional[str] = None,
        client_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.instance = instance if instance is not None else settings.ZAPI_INSTANCE
        self.token = token if token is not None else settings.ZAPI_TOKEN
        self.client_token = client_token if client_token is not None else settings.ZAPI_CLIENT_TOKEN
        root = (base_url or settings.ZAPI_BASE_URL).rstrip("/")
        self.base_url = f"{root}/instances/{self.instance}/token/{self.token}"
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS

    @property
    def enabled(self) -> bool:
        return settings.NOTIFICATIONS_ENABLED and bool(self.instance and self.token)

    def _headers(self) -> Dict[str, str]:
        return {
            "Client-Token": self.client_token,
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(f"{self.base_url}{path}", json=payload, headers=self._headers())
            response.raise_for_status()
            data = response.json()

        # Gateway reports some failures with HTTP 200
        if isinstance(data, dict) and (data.get("error") or data.get("status") == "error"):
            raise httpx.HTTPError(str(data.get("message") or data.get("error")))
        return data

    async def send_text(self, phone: str, message: str) -> Optional[Dict[str, Any]]:
        """Send a text message. Never raises."""
        if not self.enabled:
            logger.info("WhatsApp disabled or not configured, text message not sent")
            return None

        clean_phone = normalize_phone(phone)
        try:
            logger.info(f"Sending WhatsApp message to {clean_phone}")
            data = await self._post("/send-text", {"phone": clean_phone, "message": message})
            logger.info("WhatsApp message sent successfully")
            return data
        except Exception as e:
            logger.error(f"Error sending WhatsApp message to {clean_phone}: {e}")
            return None

    async def send_file(self, phone: str, base64_data: str) -> Optional[Dict[str, Any]]:
        """Send a base64 document (data URI). Never raises."""
        if not self.enabled:
            logger.info("WhatsApp disabled or not configured, document not sent")
            return None

        clean_phone = normalize_phone(phone)
        extension = extension_for_data_uri(base64_data)
        try:
            logger.info(f"Sending WhatsApp document ({extension}) to {clean_phone}")
            data = await self._post(
                f"/send-document/{extension}",
                {
                    "phone": clean_phone,
                    "document": base64_data,
                    "fileName": f"comprovante.{extension}",
                },
            )
            logger.info("WhatsApp document sent successfully")
            return data
        except Exception as e:
            logger.error(f"Error sending WhatsApp document to {clean_phone}: {e}")
            return None


@lru_cache()
def get_whatsapp_service() -> WhatsAppService:
    """Get cached WhatsApp service instance."""
    return WhatsAppService()
