"""Availability API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.modules.availability.calculator import DEFAULT_SERVICE_DURATION_MINUTES
from app.modules.availability.schemas import AvailabilityRead
from app.modules.availability.service import AvailabilityService, get_availability_service

router = APIRouter(prefix="/professionals", tags=["availability"])


@router.get("/{professional_id}/availability", response_model=AvailabilityRead)
async def get_availability(
    professional_id: UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    duration_minutes: int = Query(default=DEFAULT_SERVICE_DURATION_MINUTES, ge=15, le=12 * 60),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRead:
    """Per-day availability of a professional over an inclusive date range."""
    return await service.get_availability(professional_id, start_date, end_date, duration_minutes)
