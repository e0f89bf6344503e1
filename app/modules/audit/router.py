"""Audit API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.core.security import Actor, get_current_actor
from app.modules.audit.schemas import AuditLogRead, OutboxEventRead
from app.modules.audit.service import AuditService, get_audit_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs", response_model=Page[AuditLogRead])
async def list_logs(
    entity_type: str | None = Query(default=None, max_length=128),
    entity_id: str | None = Query(default=None, max_length=128),
    action: str | None = Query(default=None, max_length=128),
    pagination=Depends(get_pagination_params),
    service: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(get_current_actor),
) -> Page[AuditLogRead]:
    """List audit logs, optionally for one entity or one kind of decision."""
    items, total = await service.list_logs(
        actor,
        pagination.limit,
        pagination.offset,
        entity_type,
        entity_id,
        action,
    )
    serialized = [AuditLogRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/outbox/pending", response_model=list[OutboxEventRead])
async def list_pending_outbox(
    limit: int = Query(default=100, ge=1, le=500),
    service: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(get_current_actor),
) -> list[OutboxEventRead]:
    """List domain events not yet turned into notifications."""
    items = await service.list_pending_outbox(actor, limit=limit)
    return [OutboxEventRead.model_validate(item) for item in items]
