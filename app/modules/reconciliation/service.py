"""Reconciliation business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import ReconciliationKindEnum, ReconciliationStatusEnum
from app.core.security import Actor
from app.modules.audit.repository import AuditRepository
from app.modules.reconciliation.models import ReconciliationIssue
from app.modules.reconciliation.repository import ReconciliationRepository
from app.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException
from app.shared.utils import utc_now


class ReconciliationService:
    """Operator view over the reconciliation queue."""

    def __init__(self, repository: ReconciliationRepository, audit_repository: AuditRepository) -> None:
        self.repository = repository
        self.audit_repository = audit_repository

    async def list_issues(
        self,
        actor: Actor,
        status: ReconciliationStatusEnum | None,
        kind: ReconciliationKindEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[ReconciliationIssue], int]:
        if not actor.is_admin:
            raise UnauthorizedException("Only admin can view reconciliation issues")
        return await self.repository.list_issues(status=status, kind=kind, limit=limit, offset=offset)

    async def resolve_issue(self, issue_id: UUID, notes: str | None, actor: Actor) -> ReconciliationIssue:
        if not actor.is_admin:
            raise UnauthorizedException("Only admin can resolve reconciliation issues")

        issue = await self.repository.get_issue(issue_id)
        if issue is None:
            raise NotFoundException("Reconciliation issue not found")
        if issue.status == ReconciliationStatusEnum.RESOLVED:
            raise ConflictException("Reconciliation issue is already resolved")

        issue = await self.repository.resolve_issue(issue, actor.id, utc_now(), notes)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="reconciliation.resolved",
            entity_type="reconciliation_issue",
            entity_id=str(issue.id),
            payload={"kind": str(issue.kind), "booking_id": str(issue.booking_id) if issue.booking_id else None},
        )
        return issue


async def get_reconciliation_service(session: AsyncSession = Depends(get_db_session)) -> ReconciliationService:
    """Dependency provider for reconciliation service."""
    return ReconciliationService(ReconciliationRepository(session), AuditRepository(session))
