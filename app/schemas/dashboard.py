"""Dashboard schemas."""
from decimal import Decimal
from typing import List, Optional

from app.schemas.base import BaseResponseSchema
from app.schemas.finance import TransactionResponse
from app.schemas.partner import PartnerDetailResponse


# ==================== Partner Dashboard ====================

class PartnerKpis(BaseResponseSchema):
    total_earnings: Decimal
    leads_count: int
    converted_leads: int
    conversion_rate: float
    total_sales: Decimal
    total_received: Decimal
    balance: Decimal
    manual_credits: Decimal


class PartnerDashboardResponse(BaseResponseSchema):
    kpis: PartnerKpis
    recent_transactions: List[TransactionResponse] = []


# ==================== Admin Dashboard ====================

class PartnerStats(BaseResponseSchema):
    total: int
    approved: int
    pending: int
    rejected: int


class LeadStats(BaseResponseSchema):
    total: int
    converted: int
    not_converted: int


class PartnersByState(BaseResponseSchema):
    uf: Optional[str] = None
    count: int


class FinancialStats(BaseResponseSchema):
    total_sales: Decimal
    total_commissions: Decimal
    total_paid: Decimal
    total_payable: Decimal
    manual_credits: Decimal


class AdminDashboardResponse(BaseResponseSchema):
    """Platform-wide figures. Partners owned by admin users are left out of partner counts."""
    partner_stats: PartnerStats
    lead_stats: LeadStats
    partners_by_state: List[PartnersByState] = []
    financial_stats: FinancialStats
    recent_partners: List[PartnerDetailResponse] = []
