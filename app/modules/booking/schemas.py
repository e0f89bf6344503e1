"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import AuthorizationStatusEnum, BookingStatusEnum, CancellationInitiatorEnum


class BookingCreateRequest(BaseModel):
    """Create booking request."""

    professional_id: UUID
    customer_id: UUID | None = None
    scheduled_start: datetime
    duration_minutes: int = Field(ge=15, le=12 * 60)
    service_name: str = Field(min_length=1, max_length=255)
    service_hourly_rate: int | None = Field(default=None, gt=0)
    amount: int | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    address: dict[str, Any] = Field(default_factory=dict)
    special_instructions: str | None = Field(default=None, max_length=2000)
    payer_reference: str | None = Field(default=None, max_length=255)
    payment_method: str | None = Field(default=None, max_length=255)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str | None) -> str | None:
        return value.upper() if value is not None else None


class BookingCheckInRequest(BaseModel):
    """Check-in request; defaults to the server clock."""

    checked_in_at: datetime | None = None


class BookingCancelRequest(BaseModel):
    """Cancel booking request."""

    reason: str | None = Field(default=None, max_length=512)


class TimeExtensionRequest(BaseModel):
    """Extend an in-progress service."""

    additional_minutes: int


class BookingRead(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID | None
    professional_id: UUID
    scheduled_start: datetime
    scheduled_end: datetime
    duration_minutes: int
    status: BookingStatusEnum
    currency: str
    service_name: str
    service_hourly_rate: int | None
    amount_estimated: int
    amount_authorized: int
    amount_captured: int | None
    time_extension_minutes: int
    time_extension_amount: int
    authorization_id: str | None
    authorization_status: AuthorizationStatusEnum | None
    checked_in_at: datetime | None
    completed_at: datetime | None
    canceled_at: datetime | None
    cancellation_reason: str | None
    canceled_by: CancellationInitiatorEnum | None
    address: dict[str, Any]
    special_instructions: str | None
    created_at: datetime
    updated_at: datetime


class BookingCreateRead(BookingRead):
    """Created booking with the secret the customer confirms payment with."""

    client_secret: str | None = None


class TimeExtensionRead(BaseModel):
    """Outcome of a time extension."""

    model_config = ConfigDict(from_attributes=True)

    booking_id: UUID
    additional_minutes: int
    additional_amount: int
    time_extension_minutes: int
    time_extension_amount: int
    new_authorized_total: int
