"""Booking ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Enum as SAEnum, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TSTZRANGE, ExcludeConstraint, Range
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, VersionMixin
from app.core.enums import AuthorizationStatusEnum, BookingStatusEnum, CancellationInitiatorEnum

RESERVATION_CONSTRAINT = "ex_bookings_professional_reserved_during"

ACTIVE_STATUSES: tuple[BookingStatusEnum, ...] = (
    BookingStatusEnum.PENDING_PAYMENT,
    BookingStatusEnum.AUTHORIZED,
    BookingStatusEnum.CONFIRMED,
    BookingStatusEnum.IN_PROGRESS,
)

# Non-native enums persist member names, so the predicate matches on names.
_ACTIVE_PREDICATE = "status IN ({})".format(", ".join(f"'{status.name}'" for status in ACTIVE_STATUSES))


class Booking(BaseModelMixin, VersionMixin, Base):
    """Service booking with its mirrored payment authorization."""

    __tablename__ = "bookings"
    __table_args__ = (
        ExcludeConstraint(
            ("professional_id", "="),
            ("reserved_during", "&&"),
            name=RESERVATION_CONSTRAINT,
            using="gist",
            where=text(_ACTIVE_PREDICATE),
        ),
        CheckConstraint("scheduled_end > scheduled_start", name="schedule_order"),
        CheckConstraint(
            "amount_captured IS NULL OR amount_captured <= amount_authorized",
            name="capture_within_authorization",
        ),
    )

    customer_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True, index=True)
    professional_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)

    scheduled_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    scheduled_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    reserved_during: Mapped[Range[datetime]] = mapped_column(TSTZRANGE, nullable=False)

    status: Mapped[BookingStatusEnum] = mapped_column(
        SAEnum(BookingStatusEnum, name="booking_status_enum", native_enum=False),
        default=BookingStatusEnum.PENDING_PAYMENT,
        nullable=False,
        index=True,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    service_name: Mapped[str] = mapped_column(String(255), nullable=False)
    service_hourly_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    amount_estimated: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_authorized: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    amount_captured: Mapped[int | None] = mapped_column(Integer, nullable=True)
    time_extension_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    time_extension_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    authorization_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    authorization_status: Mapped[AuthorizationStatusEnum | None] = mapped_column(
        SAEnum(AuthorizationStatusEnum, name="authorization_status_enum", native_enum=False),
        nullable=True,
    )

    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    canceled_by: Mapped[CancellationInitiatorEnum | None] = mapped_column(
        SAEnum(CancellationInitiatorEnum, name="cancellation_initiator_enum", native_enum=False),
        nullable=True,
    )

    address: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
