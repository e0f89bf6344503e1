"""Payouts API router."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.config import get_settings
from app.core.security import Actor, get_current_actor
from app.modules.payouts.schemas import PayoutBatchRead
from app.modules.payouts.service import PayoutService, get_payout_service

router = APIRouter(prefix="/payouts", tags=["payouts"])
settings = get_settings()


@router.get("/professionals/{professional_id}", response_model=PayoutBatchRead)
async def compute_payout_batch(
    professional_id: UUID,
    period_start: datetime = Query(...),
    period_end: datetime = Query(...),
    currency: str = Query(default=settings.booking_default_currency, min_length=3, max_length=3),
    service: PayoutService = Depends(get_payout_service),
    actor: Actor = Depends(get_current_actor),
) -> PayoutBatchRead:
    """Gross, commission and net for bookings completed in `[period_start, period_end)`."""
    batch = await service.compute_payout_batch(professional_id, period_start, period_end, currency, actor)
    return PayoutBatchRead.model_validate(batch)
