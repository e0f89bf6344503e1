"""Payouts schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PayoutBatchRead(BaseModel):
    """Payout batch response schema."""

    model_config = ConfigDict(from_attributes=True)

    professional_id: UUID
    currency: str
    period_start: datetime
    period_end: datetime
    commission_rate: Decimal
    gross_amount: int
    commission_amount: int
    net_amount: int
    booking_count: int
    booking_ids: list[UUID]
