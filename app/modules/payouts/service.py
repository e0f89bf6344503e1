"""Payouts business logic layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.core.security import Actor
from app.modules.booking.repository import BookingRepository
from app.modules.payouts.calculator import PayoutBatch, PayoutLine, calculate_payout
from app.shared.exceptions import DomainValidationException, UnauthorizedException
from app.shared.utils import ensure_utc

settings = get_settings()


class PayoutService:
    """Build payout batches from captured bookings."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        commission_rate: float = settings.platform_commission_rate,
    ) -> None:
        self.booking_repository = booking_repository
        self.commission_rate = commission_rate

    async def compute_payout_batch(
        self,
        professional_id: UUID,
        period_start: datetime,
        period_end: datetime,
        currency: str,
        actor: Actor,
    ) -> PayoutBatch:
        if actor.role != RoleEnum.ADMIN and actor.id != professional_id:
            raise UnauthorizedException("You cannot view payouts of another professional")

        period_start, period_end = ensure_utc(period_start), ensure_utc(period_end)
        if period_end <= period_start:
            raise DomainValidationException("period_end must be after period_start")

        currency = currency.upper()
        bookings = await self.booking_repository.list_completed_in_period(
            professional_id,
            period_start,
            period_end,
            currency,
        )
        lines = [
            PayoutLine(booking_id=booking.id, amount_captured=booking.amount_captured or 0)
            for booking in bookings
        ]
        return calculate_payout(professional_id, currency, period_start, period_end, lines, self.commission_rate)


async def get_payout_service(session: AsyncSession = Depends(get_db_session)) -> PayoutService:
    """Dependency provider for payout service."""
    return PayoutService(BookingRepository(session))
