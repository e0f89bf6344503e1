"""Professionals API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from app.core.security import Actor, get_current_actor
from app.modules.professionals.schemas import (
    BlockedDateCreate,
    BlockedDateRead,
    ProfessionalProfileRead,
    ProfessionalSettingsUpdate,
)
from app.modules.professionals.service import ProfessionalsService, get_professionals_service

router = APIRouter(prefix="/professionals", tags=["professionals"])


@router.put("/me/settings", response_model=ProfessionalProfileRead)
async def upsert_my_settings(
    payload: ProfessionalSettingsUpdate,
    service: ProfessionalsService = Depends(get_professionals_service),
    actor: Actor = Depends(get_current_actor),
) -> ProfessionalProfileRead:
    """Create or update working hours, rate and booking limits."""
    profile = await service.upsert_settings(payload, actor)
    return ProfessionalProfileRead.model_validate(profile)


@router.post("/me/blocked-dates", response_model=BlockedDateRead, status_code=status.HTTP_201_CREATED)
async def block_date(
    payload: BlockedDateCreate,
    service: ProfessionalsService = Depends(get_professionals_service),
    actor: Actor = Depends(get_current_actor),
) -> BlockedDateRead:
    blocked = await service.block_date(payload, actor)
    return BlockedDateRead.model_validate(blocked)


@router.delete("/me/blocked-dates/{blocked_on}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_date(
    blocked_on: date,
    service: ProfessionalsService = Depends(get_professionals_service),
    actor: Actor = Depends(get_current_actor),
) -> Response:
    await service.unblock_date(blocked_on, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{professional_id}", response_model=ProfessionalProfileRead)
async def get_profile(
    professional_id: UUID,
    service: ProfessionalsService = Depends(get_professionals_service),
) -> ProfessionalProfileRead:
    """Public professional settings."""
    profile = await service.get_profile(professional_id)
    return ProfessionalProfileRead.model_validate(profile)


@router.get("/{professional_id}/blocked-dates", response_model=list[BlockedDateRead])
async def list_blocked_dates(
    professional_id: UUID,
    service: ProfessionalsService = Depends(get_professionals_service),
) -> list[BlockedDateRead]:
    items = await service.list_blocked_dates(professional_id)
    return [BlockedDateRead.model_validate(item) for item in items]
