"""Reconciliation API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.enums import ReconciliationKindEnum, ReconciliationStatusEnum
from app.core.security import Actor, get_current_actor
from app.modules.reconciliation.schemas import ReconciliationIssueRead, ReconciliationResolveRequest
from app.modules.reconciliation.service import ReconciliationService, get_reconciliation_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


@router.get("/issues", response_model=Page[ReconciliationIssueRead])
async def list_issues(
    status: ReconciliationStatusEnum | None = Query(default=ReconciliationStatusEnum.OPEN),
    kind: ReconciliationKindEnum | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: ReconciliationService = Depends(get_reconciliation_service),
    actor: Actor = Depends(get_current_actor),
) -> Page[ReconciliationIssueRead]:
    """List reconciliation issues (admin)."""
    items, total = await service.list_issues(actor, status, kind, pagination.limit, pagination.offset)
    serialized = [ReconciliationIssueRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post("/issues/{issue_id}/resolve", response_model=ReconciliationIssueRead)
async def resolve_issue(
    issue_id: UUID,
    payload: ReconciliationResolveRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
    actor: Actor = Depends(get_current_actor),
) -> ReconciliationIssueRead:
    """Mark an issue handled after manual correction."""
    issue = await service.resolve_issue(issue_id, payload.notes, actor)
    return ReconciliationIssueRead.model_validate(issue)
