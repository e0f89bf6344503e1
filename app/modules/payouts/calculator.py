"""Commission and net payout arithmetic."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from app.shared.utils import round_half_up

DEFAULT_COMMISSION_RATE = Decimal("0.18")


@dataclass(frozen=True, slots=True)
class PayoutLine:
    booking_id: UUID
    amount_captured: int


@dataclass(frozen=True, slots=True)
class PayoutBatch:
    professional_id: UUID
    currency: str
    period_start: datetime
    period_end: datetime
    commission_rate: Decimal
    gross_amount: int = 0
    commission_amount: int = 0
    net_amount: int = 0
    booking_ids: tuple[UUID, ...] = field(default_factory=tuple)

    @property
    def booking_count(self) -> int:
        return len(self.booking_ids)


def calculate_commission(gross_amount: int, commission_rate: Decimal | float = DEFAULT_COMMISSION_RATE) -> int:
    """Platform commission in minor units, rounded half-up."""
    return round_half_up(Decimal(gross_amount) * Decimal(str(commission_rate)))


def calculate_payout(
    professional_id: UUID,
    currency: str,
    period_start: datetime,
    period_end: datetime,
    lines: Iterable[PayoutLine],
    commission_rate: Decimal | float = DEFAULT_COMMISSION_RATE,
) -> PayoutBatch:
    """Aggregate captured amounts into one batch; empty input yields zeros."""
    items = list(lines)
    gross = sum(line.amount_captured for line in items)
    commission = calculate_commission(gross, commission_rate)
    return PayoutBatch(
        professional_id=professional_id,
        currency=currency,
        period_start=period_start,
        period_end=period_end,
        commission_rate=Decimal(str(commission_rate)),
        gross_amount=gross,
        commission_amount=commission,
        net_amount=gross - commission,
        booking_ids=tuple(line.booking_id for line in items),
    )
