from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest

from app.core.enums import AvailabilityStatusEnum, BookingStatusEnum, RoleEnum
from app.core.security import Actor
from app.modules.availability.service import AvailabilityService
from app.modules.professionals.schemas import BlockedDateCreate, ProfessionalSettingsUpdate
from app.modules.professionals.service import ProfessionalsService, availability_settings_for
from app.shared.exceptions import (
    ConflictException,
    DomainValidationException,
    NotFoundException,
    UnauthorizedException,
)

MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)


@dataclass
class FakeBlockedDate:
    professional_id: UUID
    blocked_on: date
    reason: str | None = None


@dataclass
class FakeBooking:
    id: UUID
    scheduled_start: datetime
    scheduled_end: datetime
    status: BookingStatusEnum = BookingStatusEnum.CONFIRMED


class FakeProfessionalsRepository:
    def __init__(self, profile: Any = None, blocked: list[FakeBlockedDate] | None = None) -> None:
        self.profile = profile
        self.blocked = list(blocked or [])
        self.range_queries: list[tuple] = []

    async def get_profile(self, professional_id: UUID) -> Any:
        return self.profile

    async def create_profile(self, professional_id: UUID, **fields: Any) -> Any:
        self.profile = SimpleNamespace(professional_id=professional_id, **fields)
        return self.profile

    async def update_profile(self, profile: Any, **changes: Any) -> Any:
        for key, value in changes.items():
            setattr(profile, key, value)
        return profile

    async def list_blocked_dates(self, professional_id: UUID, start_date=None, end_date=None) -> list[FakeBlockedDate]:
        self.range_queries.append((start_date, end_date))
        return [item for item in self.blocked if item.professional_id == professional_id]

    async def get_blocked_date(self, professional_id: UUID, blocked_on: date) -> FakeBlockedDate | None:
        return next(
            (item for item in self.blocked if item.professional_id == professional_id and item.blocked_on == blocked_on),
            None,
        )

    async def add_blocked_date(self, professional_id: UUID, blocked_on: date, reason: str | None) -> FakeBlockedDate:
        blocked = FakeBlockedDate(professional_id, blocked_on, reason)
        self.blocked.append(blocked)
        return blocked

    async def remove_blocked_date(self, professional_id: UUID, blocked_on: date) -> int:
        before = len(self.blocked)
        self.blocked = [
            item for item in self.blocked if not (item.professional_id == professional_id and item.blocked_on == blocked_on)
        ]
        return before - len(self.blocked)


class FakeBookingRepository:
    def __init__(self, bookings: list[FakeBooking]) -> None:
        self.bookings = bookings

    async def list_active_for_professional(self, professional_id, window_start, window_end) -> list[FakeBooking]:
        return self.bookings


def professional() -> Actor:
    return Actor(id=uuid4(), role=RoleEnum.PROFESSIONAL)


@pytest.mark.asyncio
async def test_availability_week_for_professional_without_profile() -> None:
    professional_id = uuid4()
    booking = FakeBooking(
        uuid4(),
        datetime(2026, 10, 19, 10, 0, tzinfo=UTC),
        datetime(2026, 10, 19, 12, 0, tzinfo=UTC),
    )
    service = AvailabilityService(
        FakeProfessionalsRepository(blocked=[FakeBlockedDate(professional_id, TUESDAY)]),  # type: ignore[arg-type]
        FakeBookingRepository([booking]),  # type: ignore[arg-type]
    )

    result = await service.get_availability(professional_id, MONDAY, date(2026, 10, 25))

    statuses = [day.status for day in result.days]
    assert len(result.days) == 7
    assert statuses[0] == AvailabilityStatusEnum.AVAILABLE
    assert statuses[1] == AvailabilityStatusEnum.BLOCKED
    assert statuses[5:] == [AvailabilityStatusEnum.BLOCKED, AvailabilityStatusEnum.BLOCKED]
    monday = result.days[0]
    assert monday.booking_count == 1
    assert monday.remaining_minutes == 330
    assert monday.available_slots[0] == "12:30"
    assert "09:00" not in monday.available_slots
    assert result.next_available_date == MONDAY


@pytest.mark.asyncio
async def test_availability_range_beyond_horizon_is_rejected() -> None:
    service = AvailabilityService(FakeProfessionalsRepository(), FakeBookingRepository([]))  # type: ignore[arg-type]

    with pytest.raises(DomainValidationException):
        await service.get_availability(uuid4(), MONDAY, date(2027, 1, 19))


def test_default_settings_follow_configuration() -> None:
    settings = availability_settings_for(None)

    assert settings.buffer_time_minutes == 30
    assert settings.max_bookings_per_day == 3
    assert settings.advance_booking_days == 60
    assert settings.intervals_for(MONDAY)
    assert settings.intervals_for(date(2026, 10, 18)) == ()


@pytest.mark.asyncio
async def test_first_settings_call_creates_profile_with_defaults() -> None:
    repository = FakeProfessionalsRepository()
    service = ProfessionalsService(repository)  # type: ignore[arg-type]
    actor = professional()

    profile = await service.upsert_settings(
        ProfessionalSettingsUpdate(display_name="Ana Cleaner", hourly_rate=50_000),
        actor,
    )

    assert profile.professional_id == actor.id
    assert profile.currency == "COP"
    assert profile.buffer_time_minutes == 30
    assert set(profile.working_hours) == {"monday", "tuesday", "wednesday", "thursday", "friday"}


@pytest.mark.asyncio
async def test_new_profile_requires_name_and_rate() -> None:
    service = ProfessionalsService(FakeProfessionalsRepository())  # type: ignore[arg-type]

    with pytest.raises(DomainValidationException):
        await service.upsert_settings(ProfessionalSettingsUpdate(buffer_time_minutes=15), professional())


@pytest.mark.asyncio
async def test_settings_update_normalizes_weekdays_and_validates_intervals() -> None:
    repository = FakeProfessionalsRepository(
        SimpleNamespace(
            working_hours={"monday": [{"start": "09:00", "end": "17:00"}]},
            buffer_time_minutes=30,
            max_bookings_per_day=3,
            advance_booking_days=60,
        ),
    )
    service = ProfessionalsService(repository)  # type: ignore[arg-type]

    updated = await service.upsert_settings(
        ProfessionalSettingsUpdate(working_hours={" Saturday ": [{"start": "09:00", "end": "13:00"}]}),
        professional(),
    )
    assert updated.working_hours == {"saturday": [{"start": "09:00", "end": "13:00"}]}

    with pytest.raises(DomainValidationException):
        await service.upsert_settings(
            ProfessionalSettingsUpdate(working_hours={"monday": [{"start": "17:00", "end": "09:00"}]}),
            professional(),
        )


@pytest.mark.asyncio
async def test_customer_cannot_change_professional_settings() -> None:
    service = ProfessionalsService(FakeProfessionalsRepository())  # type: ignore[arg-type]

    with pytest.raises(UnauthorizedException):
        await service.upsert_settings(
            ProfessionalSettingsUpdate(display_name="Someone", hourly_rate=1_000),
            Actor(id=uuid4(), role=RoleEnum.CUSTOMER),
        )


@pytest.mark.asyncio
async def test_block_and_unblock_date() -> None:
    repository = FakeProfessionalsRepository()
    service = ProfessionalsService(repository)  # type: ignore[arg-type]
    actor = professional()

    await service.block_date(BlockedDateCreate(blocked_on=TUESDAY, reason="Holiday"), actor)
    with pytest.raises(ConflictException):
        await service.block_date(BlockedDateCreate(blocked_on=TUESDAY), actor)

    await service.unblock_date(TUESDAY, actor)
    with pytest.raises(NotFoundException):
        await service.unblock_date(TUESDAY, actor)
