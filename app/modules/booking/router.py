"""Booking API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import BookingStatusEnum
from app.core.security import Actor, get_current_actor
from app.modules.booking.extension import TimeExtensionService, get_time_extension_service
from app.modules.booking.schemas import (
    BookingCancelRequest,
    BookingCheckInRequest,
    BookingCreateRead,
    BookingCreateRequest,
    BookingRead,
    TimeExtensionRead,
    TimeExtensionRequest,
)
from app.modules.booking.service import BookingService, get_booking_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingCreateRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> BookingCreateRead:
    """Reserve a slot and authorize payment for it."""
    created = await service.create_booking(payload, actor)
    response = BookingCreateRead.model_validate(created.booking)
    response.client_secret = created.client_secret
    return response


@router.get("/my", response_model=Page[BookingRead])
async def list_my_bookings(
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> Page[BookingRead]:
    """List bookings for current actor."""
    items, total = await service.list_bookings(actor, pagination.limit, pagination.offset, status_filter)
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    booking = await service.get_booking(booking_id, actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/confirm", response_model=BookingRead)
async def confirm_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    """Confirm an authorized booking."""
    booking = await service.confirm_booking(booking_id, actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/check-in", response_model=BookingRead)
async def check_in(
    booking_id: UUID,
    payload: BookingCheckInRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    booking = await service.check_in(booking_id, payload, actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/check-out", response_model=BookingRead)
async def check_out(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    """Complete the service and capture payment."""
    booking = await service.check_out(booking_id, actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: UUID,
    payload: BookingCancelRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    """Cancel booking and void its authorization."""
    booking = await service.cancel_booking(booking_id, payload, actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/extend", response_model=TimeExtensionRead)
async def extend_time(
    booking_id: UUID,
    payload: TimeExtensionRequest,
    service: TimeExtensionService = Depends(get_time_extension_service),
    actor: Actor = Depends(get_current_actor),
) -> TimeExtensionRead:
    """Extend an in-progress service and raise the held amount."""
    result = await service.extend_time(booking_id, payload.additional_minutes, actor)
    return TimeExtensionRead.model_validate(result)
