"""Disputes schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import DisputeReasonEnum, DisputeStatusEnum


class DisputeCreateRequest(BaseModel):
    """File dispute request."""

    booking_id: UUID
    reason: DisputeReasonEnum
    description: str = Field(min_length=10, max_length=5000)


class DisputeResolveRequest(BaseModel):
    """Close dispute request."""

    status: Literal[DisputeStatusEnum.RESOLVED, DisputeStatusEnum.DISMISSED]
    resolution_notes: str = Field(min_length=1, max_length=5000)
    refund_amount: int | None = Field(default=None, ge=0)


class DisputeRead(BaseModel):
    """Dispute response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    customer_id: UUID
    professional_id: UUID
    reason: DisputeReasonEnum
    description: str
    status: DisputeStatusEnum
    resolution_notes: str | None
    resolved_by: UUID | None
    resolved_at: datetime | None
    refund_amount: int | None
    created_at: datetime
    updated_at: datetime
