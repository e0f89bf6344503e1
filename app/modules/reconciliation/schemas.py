"""Reconciliation schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import ReconciliationKindEnum, ReconciliationStatusEnum


class ReconciliationResolveRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=4000)


class ReconciliationIssueRead(BaseModel):
    """Reconciliation issue response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID | None
    authorization_id: str | None
    kind: ReconciliationKindEnum
    status: ReconciliationStatusEnum
    expected_amount: int | None
    provider_amount: int | None
    details: dict[str, Any]
    resolved_at: datetime | None
    resolved_by: UUID | None
    resolution_notes: str | None
    created_at: datetime
    updated_at: datetime
