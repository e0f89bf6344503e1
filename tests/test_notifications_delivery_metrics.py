from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

import pytest

from app.core.enums import NotificationStatusEnum, RoleEnum
from app.core.security import Actor
from app.modules.audit.repository import OutboxBacklog
from app.modules.notifications.service import NotificationsService
from app.shared.exceptions import UnauthorizedException


@dataclass
class FakeNotificationsRepository:
    notification_counts: dict[NotificationStatusEnum, int]

    async def count_by_status(self) -> dict[NotificationStatusEnum, int]:
        return self.notification_counts


class FakeAuditRepository:
    def __init__(self, backlog: OutboxBacklog | None = None) -> None:
        self.backlog = backlog or OutboxBacklog()
        self.requested_max_retries: list[int] = []

    async def outbox_backlog(self, max_retries: int) -> OutboxBacklog:
        self.requested_max_retries.append(max_retries)
        return self.backlog


def make_actor(role: RoleEnum) -> Actor:
    return Actor(id=uuid4(), role=role)


@pytest.mark.asyncio
async def test_delivery_metrics_aggregates_notifications_and_outbox_counts() -> None:
    audit = FakeAuditRepository(OutboxBacklog(pending=4, processed=10, failed=5, retryable_failed=3, dead_letter=2))
    service = NotificationsService(
        repository=FakeNotificationsRepository(
            notification_counts={
                NotificationStatusEnum.PENDING: 3,
                NotificationStatusEnum.SENT: 7,
                NotificationStatusEnum.FAILED: 2,
            },
        ),  # type: ignore[arg-type]
        audit_repository=audit,  # type: ignore[arg-type]
    )

    metrics = await service.get_delivery_metrics(make_actor(RoleEnum.ADMIN), max_retries=5)

    assert metrics.notifications_total == 12
    assert metrics.notifications_pending == 3
    assert metrics.notifications_sent == 7
    assert metrics.notifications_failed == 2
    assert metrics.outbox_total == 19
    assert metrics.outbox_pending == 4
    assert metrics.outbox_processed == 10
    assert metrics.outbox_failed == 5
    assert metrics.outbox_retryable_failed == 3
    assert metrics.outbox_dead_letter == 2
    assert metrics.max_retries == 5
    assert audit.requested_max_retries == [5]


@pytest.mark.asyncio
async def test_delivery_metrics_defaults_missing_statuses_to_zero() -> None:
    service = NotificationsService(
        repository=FakeNotificationsRepository(notification_counts={}),  # type: ignore[arg-type]
        audit_repository=FakeAuditRepository(OutboxBacklog(pending=1)),  # type: ignore[arg-type]
    )

    metrics = await service.get_delivery_metrics(make_actor(RoleEnum.ADMIN), max_retries=3)

    assert metrics.notifications_total == 0
    assert metrics.notifications_pending == 0
    assert metrics.notifications_sent == 0
    assert metrics.notifications_failed == 0
    assert metrics.outbox_total == 1
    assert metrics.outbox_pending == 1
    assert metrics.outbox_processed == 0
    assert metrics.outbox_failed == 0


@pytest.mark.asyncio
async def test_delivery_metrics_requires_admin() -> None:
    service = NotificationsService(
        repository=FakeNotificationsRepository(notification_counts={}),  # type: ignore[arg-type]
        audit_repository=FakeAuditRepository(),  # type: ignore[arg-type]
    )

    with pytest.raises(UnauthorizedException):
        await service.get_delivery_metrics(make_actor(RoleEnum.PROFESSIONAL), max_retries=5)


@dataclass
class FakeNotification:
    user_id: object
    status: NotificationStatusEnum = NotificationStatusEnum.PENDING
    sent_at: object = None


class FakeStatusRepository:
    def __init__(self, notification: FakeNotification) -> None:
        self.notification = notification

    async def get_notification_by_id(self, notification_id):
        return self.notification

    async def set_status(self, notification, status, sent_at):
        notification.status = status
        notification.sent_at = sent_at
        return notification


@pytest.mark.asyncio
async def test_recipient_can_mark_notification_sent() -> None:
    recipient = make_actor(RoleEnum.CUSTOMER)
    notification = FakeNotification(user_id=recipient.id)
    service = NotificationsService(
        repository=FakeStatusRepository(notification),  # type: ignore[arg-type]
        audit_repository=FakeAuditRepository(),  # type: ignore[arg-type]
    )

    updated = await service.update_status(uuid4(), NotificationStatusEnum.SENT, recipient)

    assert updated.status == NotificationStatusEnum.SENT
    assert updated.sent_at is not None


@pytest.mark.asyncio
async def test_other_user_cannot_update_notification() -> None:
    notification = FakeNotification(user_id=uuid4())
    service = NotificationsService(
        repository=FakeStatusRepository(notification),  # type: ignore[arg-type]
        audit_repository=FakeAuditRepository(),  # type: ignore[arg-type]
    )

    with pytest.raises(UnauthorizedException):
        await service.update_status(uuid4(), NotificationStatusEnum.SENT, make_actor(RoleEnum.CUSTOMER))
