"""Professionals ORM models."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Boolean, Date, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin


class ProfessionalProfile(BaseModelMixin, Base):
    """Bookable settings of a service professional."""

    __tablename__ = "professional_profiles"

    professional_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    hourly_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    working_hours: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    buffer_time_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    max_bookings_per_day: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    advance_booking_days: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    is_accepting_bookings: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class BlockedDate(BaseModelMixin, Base):
    """Calendar day on which a professional takes no bookings."""

    __tablename__ = "professional_blocked_dates"
    __table_args__ = (UniqueConstraint("professional_id", "blocked_on", name="uq_professional_blocked_dates_day"),)

    professional_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    blocked_on: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
