from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4

import pytest

from app.core.enums import BookingStatusEnum
from app.modules.booking.state_machine import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    can_transition,
    transition,
)
from app.shared.exceptions import InvalidStateTransitionException


@dataclass
class FakeBooking:
    status: BookingStatusEnum
    id: UUID = field(default_factory=uuid4)


def test_every_status_has_a_transition_row() -> None:
    assert set(ALLOWED_TRANSITIONS) == set(BookingStatusEnum)


def test_terminal_statuses() -> None:
    assert TERMINAL_STATUSES == {BookingStatusEnum.CANCELED, BookingStatusEnum.PAYMENT_FAILED}


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (BookingStatusEnum.PENDING_PAYMENT, BookingStatusEnum.AUTHORIZED),
        (BookingStatusEnum.PENDING_PAYMENT, BookingStatusEnum.PAYMENT_FAILED),
        (BookingStatusEnum.AUTHORIZED, BookingStatusEnum.CONFIRMED),
        (BookingStatusEnum.CONFIRMED, BookingStatusEnum.IN_PROGRESS),
        (BookingStatusEnum.IN_PROGRESS, BookingStatusEnum.COMPLETED),
        (BookingStatusEnum.COMPLETED, BookingStatusEnum.DISPUTED),
        (BookingStatusEnum.DISPUTED, BookingStatusEnum.COMPLETED),
        (BookingStatusEnum.CONFIRMED, BookingStatusEnum.CANCELED),
    ],
)
def test_allowed_transitions(current: BookingStatusEnum, target: BookingStatusEnum) -> None:
    booking = FakeBooking(status=current)

    previous = transition(booking, target)

    assert previous == current
    assert booking.status == target


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (BookingStatusEnum.PENDING_PAYMENT, BookingStatusEnum.CONFIRMED),
        (BookingStatusEnum.AUTHORIZED, BookingStatusEnum.IN_PROGRESS),
        (BookingStatusEnum.CONFIRMED, BookingStatusEnum.COMPLETED),
        (BookingStatusEnum.COMPLETED, BookingStatusEnum.CANCELED),
        (BookingStatusEnum.CANCELED, BookingStatusEnum.AUTHORIZED),
        (BookingStatusEnum.PAYMENT_FAILED, BookingStatusEnum.AUTHORIZED),
        (BookingStatusEnum.IN_PROGRESS, BookingStatusEnum.CONFIRMED),
    ],
)
def test_rejected_transitions_leave_status_unchanged(current: BookingStatusEnum, target: BookingStatusEnum) -> None:
    booking = FakeBooking(status=current)

    with pytest.raises(InvalidStateTransitionException):
        transition(booking, target)
    assert booking.status == current
    assert not can_transition(current, target)


def test_terminal_statuses_have_no_exits() -> None:
    for status in TERMINAL_STATUSES:
        assert all(not can_transition(status, target) for target in BookingStatusEnum)
