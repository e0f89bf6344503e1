"""Disputes API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import DisputeStatusEnum, RoleEnum
from app.core.security import Actor, get_current_actor, require_roles
from app.modules.disputes.schemas import DisputeCreateRequest, DisputeRead, DisputeResolveRequest
from app.modules.disputes.service import DisputeService, get_dispute_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/disputes", tags=["disputes"])


@router.post("", response_model=DisputeRead, status_code=status.HTTP_201_CREATED)
async def file_dispute(
    payload: DisputeCreateRequest,
    service: DisputeService = Depends(get_dispute_service),
    actor: Actor = Depends(require_roles(RoleEnum.CUSTOMER)),
) -> DisputeRead:
    """File a dispute within the post-completion window."""
    dispute = await service.file_dispute(payload.booking_id, actor.id, payload.reason, payload.description)
    return DisputeRead.model_validate(dispute)


@router.get("", response_model=Page[DisputeRead])
async def list_disputes(
    status_filter: DisputeStatusEnum | None = Query(default=None, alias="status"),
    pagination=Depends(get_pagination_params),
    service: DisputeService = Depends(get_dispute_service),
    actor: Actor = Depends(get_current_actor),
) -> Page[DisputeRead]:
    items, total = await service.list_disputes(actor, status_filter, pagination.limit, pagination.offset)
    serialized = [DisputeRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{dispute_id}", response_model=DisputeRead)
async def get_dispute(
    dispute_id: UUID,
    service: DisputeService = Depends(get_dispute_service),
    actor: Actor = Depends(get_current_actor),
) -> DisputeRead:
    dispute = await service.get_dispute(dispute_id, actor)
    return DisputeRead.model_validate(dispute)


@router.post("/{dispute_id}/review", response_model=DisputeRead)
async def start_review(
    dispute_id: UUID,
    service: DisputeService = Depends(get_dispute_service),
    actor: Actor = Depends(get_current_actor),
) -> DisputeRead:
    dispute = await service.start_review(dispute_id, actor)
    return DisputeRead.model_validate(dispute)


@router.post("/{dispute_id}/resolve", response_model=DisputeRead)
async def resolve_dispute(
    dispute_id: UUID,
    payload: DisputeResolveRequest,
    service: DisputeService = Depends(get_dispute_service),
    actor: Actor = Depends(get_current_actor),
) -> DisputeRead:
    """Close a dispute as resolved or dismissed (admin)."""
    dispute = await service.resolve_dispute(
        dispute_id,
        payload.status,
        payload.resolution_notes,
        actor,
        refund_amount=payload.refund_amount,
    )
    return DisputeRead.model_validate(dispute)
