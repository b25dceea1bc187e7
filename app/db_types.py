"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from decimal import Decimal

from sqlalchemy import Numeric
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# UUID type that works with both databases
UUIDType = PG_UUID

# Fixed-point money: 10 digits, 2 decimals
MoneyType = Numeric(10, 2)

# Percentages such as commission rates: decimal(5,2)
PercentType = Numeric(5, 2)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a sum/aggregate result to a 2-decimal Decimal, None becomes 0.00."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)
