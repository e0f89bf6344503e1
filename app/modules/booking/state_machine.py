"""Booking lifecycle transition table."""

from __future__ import annotations

import logging
from typing import Protocol

from app.core.enums import BookingStatusEnum
from app.core.metrics import BOOKING_TRANSITIONS_TOTAL
from app.shared.exceptions import InvalidStateTransitionException

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[BookingStatusEnum, frozenset[BookingStatusEnum]] = {
    BookingStatusEnum.PENDING_PAYMENT: frozenset(
        {BookingStatusEnum.AUTHORIZED, BookingStatusEnum.CANCELED, BookingStatusEnum.PAYMENT_FAILED},
    ),
    BookingStatusEnum.AUTHORIZED: frozenset(
        {BookingStatusEnum.CONFIRMED, BookingStatusEnum.CANCELED, BookingStatusEnum.PAYMENT_FAILED},
    ),
    BookingStatusEnum.CONFIRMED: frozenset({BookingStatusEnum.IN_PROGRESS, BookingStatusEnum.CANCELED}),
    BookingStatusEnum.IN_PROGRESS: frozenset({BookingStatusEnum.COMPLETED, BookingStatusEnum.CANCELED}),
    BookingStatusEnum.COMPLETED: frozenset({BookingStatusEnum.DISPUTED}),
    BookingStatusEnum.DISPUTED: frozenset({BookingStatusEnum.COMPLETED}),
    BookingStatusEnum.CANCELED: frozenset(),
    BookingStatusEnum.PAYMENT_FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)


class HasStatus(Protocol):
    id: object
    status: BookingStatusEnum


def can_transition(current: BookingStatusEnum, target: BookingStatusEnum) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(booking: HasStatus, target: BookingStatusEnum) -> BookingStatusEnum:
    """Move booking to `target` or raise; returns the previous status."""
    current = booking.status
    if not can_transition(current, target):
        raise InvalidStateTransitionException(f"Booking cannot move from {current} to {target}")

    booking.status = target
    BOOKING_TRANSITIONS_TOTAL.labels(from_status=str(current), to_status=str(target)).inc()
    logger.info("Booking %s transitioned %s -> %s", booking.id, current, target)
    return current
