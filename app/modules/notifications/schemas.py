"""Notifications schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.core.enums import NotificationStatusEnum


class NotificationUpdateStatus(BaseModel):
    """Update notification status request."""

    status: NotificationStatusEnum


class NotificationRead(BaseModel):
    """Notification response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    channel: str
    title: str
    body: str
    status: NotificationStatusEnum
    sent_at: datetime | None
    created_at: datetime


class NotificationDeliveryMetricsRead(BaseModel):
    """Snapshot of the notification delivery pipeline."""

    notifications_total: int
    notifications_pending: int
    notifications_sent: int
    notifications_failed: int
    outbox_total: int
    outbox_pending: int
    outbox_processed: int
    outbox_failed: int
    outbox_retryable_failed: int
    outbox_dead_letter: int
    max_retries: int
