"""Audit trail and outbox persistence.

Admin decisions on disputes and reconciliation issues land in ``audit_logs``.
Booking and dispute state changes write an ``outbox_events`` row in the same
transaction as the change. Notification workers claim outbox rows with
``SKIP LOCKED`` so two worker replicas never dispatch the same event.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import OutboxStatusEnum
from app.modules.audit.models import AuditLog, OutboxEvent

ERROR_MESSAGE_LIMIT = 2000


@dataclass(frozen=True, slots=True)
class OutboxBacklog:
    pending: int = 0
    processed: int = 0
    failed: int = 0
    retryable_failed: int = 0
    dead_letter: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processed + self.failed


class AuditRepository:
    """DB operations for the audit trail and the domain event outbox."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_audit_log(
        self,
        actor_id: UUID | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict,
    ) -> AuditLog:
        log = AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload,
        )
        self.session.add(log)
        await self.session.flush()
        return log

    async def list_audit_logs(
        self,
        limit: int,
        offset: int,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
    ) -> tuple[list[AuditLog], int]:
        filters = []
        if entity_type is not None:
            filters.append(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            filters.append(AuditLog.entity_id == entity_id)
        if action is not None:
            filters.append(AuditLog.action == action)
        base_stmt: Select[tuple[AuditLog]] = select(AuditLog).where(*filters)

        total = int((await self.session.scalar(select(func.count()).select_from(base_stmt.subquery()))) or 0)
        stmt = base_stmt.order_by(AuditLog.created_at.desc()).limit(limit).offset(offset)
        return (await self.session.scalars(stmt)).all(), total

    async def create_outbox_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
    ) -> OutboxEvent:
        event = OutboxEvent(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            payload=payload,
            status=OutboxStatusEnum.PENDING,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_pending_outbox(self, limit: int) -> list[OutboxEvent]:
        """Read-only view of the backlog for operators."""
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatusEnum.PENDING)
            .order_by(OutboxEvent.occurred_at.asc())
            .limit(limit)
        )
        return (await self.session.scalars(stmt)).all()

    async def claim_pending_outbox(self, limit: int) -> list[OutboxEvent]:
        """Lock up to ``limit`` pending events for this worker's transaction."""
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatusEnum.PENDING)
            .order_by(OutboxEvent.occurred_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return (await self.session.scalars(stmt)).all()

    async def claim_retryable_outbox(self, limit: int, max_retries: int) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(
                OutboxEvent.status == OutboxStatusEnum.FAILED,
                OutboxEvent.retries < max_retries,
            )
            .order_by(OutboxEvent.updated_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return (await self.session.scalars(stmt)).all()

    async def _set_outbox_status(
        self,
        event: OutboxEvent,
        status: OutboxStatusEnum,
        *,
        processed_at: datetime | None = None,
        error_message: str | None = None,
    ) -> OutboxEvent:
        event.status = status
        event.processed_at = processed_at
        event.error_message = error_message[:ERROR_MESSAGE_LIMIT] if error_message else None
        await self.session.flush()
        return event

    async def mark_outbox_pending(self, event: OutboxEvent) -> OutboxEvent:
        return await self._set_outbox_status(event, OutboxStatusEnum.PENDING)

    async def mark_outbox_processed(self, event: OutboxEvent, processed_at: datetime) -> OutboxEvent:
        return await self._set_outbox_status(event, OutboxStatusEnum.PROCESSED, processed_at=processed_at)

    async def mark_outbox_failed(self, event: OutboxEvent, error_message: str) -> OutboxEvent:
        event.retries += 1
        return await self._set_outbox_status(event, OutboxStatusEnum.FAILED, error_message=error_message)

    async def outbox_backlog(self, max_retries: int) -> OutboxBacklog:
        """Count outbox rows per delivery state in one pass."""
        failed = OutboxEvent.status == OutboxStatusEnum.FAILED
        stmt = select(
            func.count().filter(OutboxEvent.status == OutboxStatusEnum.PENDING),
            func.count().filter(OutboxEvent.status == OutboxStatusEnum.PROCESSED),
            func.count().filter(failed),
            func.count().filter(failed, OutboxEvent.retries < max_retries),
            func.count().filter(failed, OutboxEvent.retries >= max_retries),
        )
        pending, processed, failed_total, retryable, dead_letter = (await self.session.execute(stmt)).one()
        return OutboxBacklog(
            pending=int(pending),
            processed=int(processed),
            failed=int(failed_total),
            retryable_failed=int(retryable),
            dead_letter=int(dead_letter),
        )
