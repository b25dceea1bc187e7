# Services module
from app.services.auth_service import AuthService
from app.services.user_service import UserService
from app.services.partner_service import PartnerService
from app.services.lead_service import LeadService
from app.services.ledger_service import LedgerService
from app.services.dashboard_service import DashboardService
from app.services.chat_service import ChatService
from app.services.whatsapp_service import WhatsAppService

# CRM integration
from app.services.pipedrive_webhook import PipedriveWebhookService

__all__ = [
    "AuthService",
    "UserService",
    "PartnerService",
    "LeadService",
    "LedgerService",
    "DashboardService",
    "ChatService",
    "WhatsAppService",
    # CRM
    "PipedriveWebhookService",
]
