"""Reconciliation repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import ReconciliationKindEnum, ReconciliationStatusEnum
from app.modules.reconciliation.models import ReconciliationIssue


class ReconciliationRepository:
    """DB operations for the reconciliation queue."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_issue(
        self,
        kind: ReconciliationKindEnum,
        booking_id: UUID | None,
        authorization_id: str | None,
        expected_amount: int | None,
        provider_amount: int | None,
        details: dict,
    ) -> ReconciliationIssue:
        issue = ReconciliationIssue(
            kind=kind,
            booking_id=booking_id,
            authorization_id=authorization_id,
            expected_amount=expected_amount,
            provider_amount=provider_amount,
            details=details,
            status=ReconciliationStatusEnum.OPEN,
        )
        self.session.add(issue)
        await self.session.flush()
        return issue

    async def get_issue(self, issue_id: UUID) -> ReconciliationIssue | None:
        stmt = select(ReconciliationIssue).where(ReconciliationIssue.id == issue_id)
        return await self.session.scalar(stmt)

    async def find_open_issue(
        self,
        booking_id: UUID,
        kind: ReconciliationKindEnum,
    ) -> ReconciliationIssue | None:
        stmt = (
            select(ReconciliationIssue)
            .where(
                ReconciliationIssue.booking_id == booking_id,
                ReconciliationIssue.kind == kind,
                ReconciliationIssue.status == ReconciliationStatusEnum.OPEN,
            )
            .order_by(ReconciliationIssue.created_at.desc())
            .limit(1)
        )
        return await self.session.scalar(stmt)

    async def find_open_issue_for_event(
        self,
        kind: ReconciliationKindEnum,
        event_id: str,
    ) -> ReconciliationIssue | None:
        stmt = select(ReconciliationIssue).where(
            ReconciliationIssue.kind == kind,
            ReconciliationIssue.details["event_id"].astext == event_id,
            ReconciliationIssue.status == ReconciliationStatusEnum.OPEN,
        )
        return await self.session.scalar(stmt)

    async def list_issues(
        self,
        status: ReconciliationStatusEnum | None,
        kind: ReconciliationKindEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[ReconciliationIssue], int]:
        base_stmt: Select[tuple[ReconciliationIssue]] = select(ReconciliationIssue)
        if status is not None:
            base_stmt = base_stmt.where(ReconciliationIssue.status == status)
        if kind is not None:
            base_stmt = base_stmt.where(ReconciliationIssue.kind == kind)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(ReconciliationIssue.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def resolve_issue(
        self,
        issue: ReconciliationIssue,
        resolved_by: UUID | None,
        resolved_at: datetime,
        notes: str | None,
    ) -> ReconciliationIssue:
        issue.status = ReconciliationStatusEnum.RESOLVED
        issue.resolved_by = resolved_by
        issue.resolved_at = resolved_at
        issue.resolution_notes = notes
        await self.session.flush()
        return issue
