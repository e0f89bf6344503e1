"""Notifications business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import NotificationStatusEnum
from app.core.security import Actor
from app.modules.audit.repository import AuditRepository
from app.modules.notifications.models import Notification
from app.modules.notifications.repository import NotificationsRepository
from app.modules.notifications.schemas import NotificationDeliveryMetricsRead
from app.shared.exceptions import NotFoundException, UnauthorizedException
from app.shared.utils import utc_now


class NotificationsService:
    """Notifications domain service."""

    def __init__(
        self,
        repository: NotificationsRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.audit_repository = audit_repository

    async def update_status(self, notification_id: UUID, status: NotificationStatusEnum, actor: Actor) -> Notification:
        """Update notification status."""
        notification = await self.repository.get_notification_by_id(notification_id)
        if notification is None:
            raise NotFoundException("Notification not found")

        if not actor.is_admin and notification.user_id != actor.id:
            raise UnauthorizedException("Only admin or recipient can update notification")

        sent_at = utc_now() if status == NotificationStatusEnum.SENT else None
        return await self.repository.set_status(notification, status, sent_at)

    async def list_my_notifications(self, actor: Actor, limit: int, offset: int) -> tuple[list[Notification], int]:
        """List notifications for current user."""
        return await self.repository.list_notifications_for_user(actor.id, limit, offset)

    async def get_delivery_metrics(self, actor: Actor, max_retries: int) -> NotificationDeliveryMetricsRead:
        """Return delivery pipeline snapshot (admin only)."""
        if not actor.is_admin:
            raise UnauthorizedException("Only admin can view delivery metrics")

        notification_counts = await self.repository.count_by_status()
        backlog = await self.audit_repository.outbox_backlog(max_retries=max_retries)

        notifications_pending = notification_counts.get(NotificationStatusEnum.PENDING, 0)
        notifications_sent = notification_counts.get(NotificationStatusEnum.SENT, 0)
        notifications_failed = notification_counts.get(NotificationStatusEnum.FAILED, 0)

        return NotificationDeliveryMetricsRead(
            notifications_total=notifications_pending + notifications_sent + notifications_failed,
            notifications_pending=notifications_pending,
            notifications_sent=notifications_sent,
            notifications_failed=notifications_failed,
            outbox_total=backlog.total,
            outbox_pending=backlog.pending,
            outbox_processed=backlog.processed,
            outbox_failed=backlog.failed,
            outbox_retryable_failed=backlog.retryable_failed,
            outbox_dead_letter=backlog.dead_letter,
            max_retries=max_retries,
        )


async def get_notifications_service(session: AsyncSession = Depends(get_db_session)) -> NotificationsService:
    """Dependency provider for notifications service."""
    return NotificationsService(
        repository=NotificationsRepository(session),
        audit_repository=AuditRepository(session),
    )
