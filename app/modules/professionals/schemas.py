"""Professionals schemas."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class WorkingIntervalSchema(BaseModel):
    """One working interval within a weekday."""

    start: str = Field(pattern=_HHMM)
    end: str = Field(pattern=_HHMM)


class ProfessionalSettingsUpdate(BaseModel):
    """Create or update the caller's professional settings."""

    display_name: str | None = Field(default=None, min_length=2, max_length=128)
    hourly_rate: int | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    working_hours: dict[str, list[WorkingIntervalSchema]] | None = None
    buffer_time_minutes: int | None = Field(default=None, ge=0, le=240)
    max_bookings_per_day: int | None = Field(default=None, ge=1, le=24)
    advance_booking_days: int | None = Field(default=None, ge=1, le=365)
    is_accepting_bookings: bool | None = None

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str | None) -> str | None:
        return value.upper() if value is not None else None


class ProfessionalProfileRead(BaseModel):
    """Professional settings response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    professional_id: UUID
    display_name: str
    hourly_rate: int
    currency: str
    working_hours: dict[str, list[WorkingIntervalSchema]]
    buffer_time_minutes: int
    max_bookings_per_day: int
    advance_booking_days: int
    is_accepting_bookings: bool
    created_at: datetime
    updated_at: datetime


class BlockedDateCreate(BaseModel):
    """Block one calendar day."""

    blocked_on: date
    reason: str | None = Field(default=None, max_length=255)


class BlockedDateRead(BaseModel):
    """Blocked day response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    professional_id: UUID
    blocked_on: date
    reason: str | None
