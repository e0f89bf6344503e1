"""Availability schemas."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.core.enums import AvailabilityStatusEnum


class DayAvailabilityRead(BaseModel):
    """Classification of one calendar day."""

    model_config = ConfigDict(from_attributes=True)

    date: date
    status: AvailabilityStatusEnum
    available_slots: list[str]
    booking_count: int
    max_bookings: int
    remaining_minutes: int


class AvailabilityRead(BaseModel):
    professional_id: UUID
    start_date: date
    end_date: date
    service_duration_minutes: int
    next_available_date: date | None
    days: list[DayAvailabilityRead]
