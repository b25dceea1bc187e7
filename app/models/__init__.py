# Models module - importing registers every table on Base.metadata
from app.models.user import User, UserRoleType
from app.models.partner import Partner, PartnerStatus, PixKeyType
from app.models.lead import Lead, LeadNote, LeadTask, LeadStatus, LeadType, PaymentStatus
from app.models.transaction import Transaction, TransactionType
from app.models.message import Message
from app.models.material import Material, MaterialType

__all__ = [
    "User",
    "UserRoleType",
    "Partner",
    "PartnerStatus",
    "PixKeyType",
    "Lead",
    "LeadNote",
    "LeadTask",
    "LeadStatus",
    "LeadType",
    "PaymentStatus",
    "Transaction",
    "TransactionType",
    "Message",
    "Material",
    "MaterialType",
]
