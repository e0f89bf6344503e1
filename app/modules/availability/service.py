"""Availability business logic layer."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.availability.calculator import (
    DEFAULT_SERVICE_DURATION_MINUTES,
    BookedInterval,
    compute_availability,
    next_available_date,
)
from app.modules.availability.schemas import AvailabilityRead, DayAvailabilityRead
from app.modules.booking.repository import BookingRepository
from app.modules.professionals.repository import ProfessionalsRepository
from app.modules.professionals.service import availability_settings_for
from app.shared.exceptions import DomainValidationException


class AvailabilityService:
    """Load a professional's calendar inputs and classify each day."""

    def __init__(
        self,
        professionals_repository: ProfessionalsRepository,
        booking_repository: BookingRepository,
    ) -> None:
        self.professionals_repository = professionals_repository
        self.booking_repository = booking_repository

    async def get_availability(
        self,
        professional_id: UUID,
        start_date: date,
        end_date: date,
        service_duration_minutes: int = DEFAULT_SERVICE_DURATION_MINUTES,
    ) -> AvailabilityRead:
        if end_date < start_date:
            raise DomainValidationException("end_date must not be before start_date")

        profile = await self.professionals_repository.get_profile(professional_id)
        settings = availability_settings_for(profile)
        span_days = (end_date - start_date).days + 1
        if span_days > settings.advance_booking_days + 1:
            raise DomainValidationException(
                f"Date range may cover at most {settings.advance_booking_days + 1} days",
            )

        horizon_end = end_date + timedelta(days=settings.advance_booking_days)
        window_start = datetime.combine(start_date, time.min, tzinfo=UTC)
        window_end = datetime.combine(horizon_end + timedelta(days=1), time.min, tzinfo=UTC)
        bookings = await self.booking_repository.list_active_for_professional(
            professional_id,
            window_start,
            window_end,
        )
        blocked = await self.professionals_repository.list_blocked_dates(professional_id, start_date, horizon_end)

        intervals = [BookedInterval(item.scheduled_start, item.scheduled_end, item.id) for item in bookings]
        blocked_days = [item.blocked_on for item in blocked]
        days = compute_availability(
            professional_id,
            start_date,
            end_date,
            settings,
            intervals,
            blocked_days,
            service_duration_minutes,
        )
        upcoming = next_available_date(
            start_date - timedelta(days=1),
            settings,
            intervals,
            blocked_days,
            service_duration_minutes=service_duration_minutes,
        )
        return AvailabilityRead(
            professional_id=professional_id,
            start_date=start_date,
            end_date=end_date,
            service_duration_minutes=service_duration_minutes,
            next_available_date=upcoming,
            days=[DayAvailabilityRead.model_validate(day) for day in days],
        )


async def get_availability_service(session: AsyncSession = Depends(get_db_session)) -> AvailabilityService:
    """Dependency provider for availability service."""
    return AvailabilityService(ProfessionalsRepository(session), BookingRepository(session))
