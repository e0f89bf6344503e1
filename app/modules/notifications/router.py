"""Notifications API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.security import Actor, get_current_actor
from app.modules.notifications.schemas import (
    NotificationDeliveryMetricsRead,
    NotificationRead,
    NotificationUpdateStatus,
)
from app.modules.notifications.service import NotificationsService, get_notifications_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/my", response_model=Page[NotificationRead])
async def list_my_notifications(
    pagination=Depends(get_pagination_params),
    service: NotificationsService = Depends(get_notifications_service),
    actor: Actor = Depends(get_current_actor),
) -> Page[NotificationRead]:
    """List notifications for current actor."""
    items, total = await service.list_my_notifications(actor, pagination.limit, pagination.offset)
    serialized = [NotificationRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.patch("/{notification_id}/status", response_model=NotificationRead)
async def update_notification_status(
    notification_id: UUID,
    payload: NotificationUpdateStatus,
    service: NotificationsService = Depends(get_notifications_service),
    actor: Actor = Depends(get_current_actor),
) -> NotificationRead:
    """Update notification status."""
    notification = await service.update_status(notification_id, payload.status, actor)
    return NotificationRead.model_validate(notification)


@router.get("/delivery/metrics", response_model=NotificationDeliveryMetricsRead)
async def get_delivery_metrics(
    max_retries: int = Query(default=5, ge=1, le=100),
    service: NotificationsService = Depends(get_notifications_service),
    actor: Actor = Depends(get_current_actor),
) -> NotificationDeliveryMetricsRead:
    """Return delivery observability metrics."""
    return await service.get_delivery_metrics(actor, max_retries=max_retries)
