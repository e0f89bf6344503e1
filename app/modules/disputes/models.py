"""Disputes ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, Integer, Text, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin
from app.core.enums import DisputeReasonEnum, DisputeStatusEnum

OPEN_DISPUTE_INDEX = "uq_disputes_open_booking"

OPEN_STATUSES: tuple[DisputeStatusEnum, ...] = (DisputeStatusEnum.PENDING, DisputeStatusEnum.INVESTIGATING)


class Dispute(BaseModelMixin, Base):
    """Customer complaint about a completed booking."""

    __tablename__ = "disputes"
    __table_args__ = (
        Index(
            OPEN_DISPUTE_INDEX,
            "booking_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING', 'INVESTIGATING')"),
        ),
    )

    booking_id: Mapped[UUID] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    professional_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    reason: Mapped[DisputeReasonEnum] = mapped_column(
        SAEnum(DisputeReasonEnum, name="dispute_reason_enum", native_enum=False),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[DisputeStatusEnum] = mapped_column(
        SAEnum(DisputeStatusEnum, name="dispute_status_enum", native_enum=False),
        default=DisputeStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
