"""Reconciliation ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin
from app.core.enums import ReconciliationKindEnum, ReconciliationStatusEnum

OPEN_EVENT_ISSUE_INDEX = "uq_reconciliation_issues_open_event"


class ReconciliationIssue(BaseModelMixin, Base):
    """Disagreement between a booking row and the payment provider awaiting an operator."""

    __tablename__ = "reconciliation_issues"
    __table_args__ = (
        Index(
            OPEN_EVENT_ISSUE_INDEX,
            "kind",
            text("(details ->> 'event_id')"),
            unique=True,
            postgresql_where=text("status = 'OPEN' AND details ->> 'event_id' IS NOT NULL"),
        ),
    )

    booking_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True, index=True)
    authorization_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    kind: Mapped[ReconciliationKindEnum] = mapped_column(
        SAEnum(ReconciliationKindEnum, name="reconciliation_kind_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    status: Mapped[ReconciliationStatusEnum] = mapped_column(
        SAEnum(ReconciliationStatusEnum, name="reconciliation_status_enum", native_enum=False),
        default=ReconciliationStatusEnum.OPEN,
        nullable=False,
        index=True,
    )
    expected_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    provider_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
