"""Pure availability calculation over a professional's working-hour template.

Working hours and booking day buckets are interpreted in UTC. Every existing
booking is padded with the buffer on both sides before any overlap test, so a
new service can never be placed back-to-back with an existing one.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from app.core.enums import AvailabilityStatusEnum
from app.shared.exceptions import DomainValidationException

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
SLOT_STEP_MINUTES = 30
DEFAULT_SERVICE_DURATION_MINUTES = 60


def parse_hhmm(value: str) -> time:
    """Parse `HH:MM` into a time, raising a validation error otherwise."""
    try:
        hours_text, minutes_text = value.split(":")
        return time(hour=int(hours_text), minute=int(minutes_text))
    except (AttributeError, ValueError) as exc:
        raise DomainValidationException(f"Invalid time of day: {value!r}") from exc


def _minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True, slots=True)
class WorkingInterval:
    start: time
    end: time

    def __post_init__(self) -> None:
        if _minutes_of_day(self.end) <= _minutes_of_day(self.start):
            raise DomainValidationException(
                f"Working interval must end after it starts: {self.start:%H:%M}-{self.end:%H:%M}",
            )

    @property
    def minutes(self) -> int:
        return _minutes_of_day(self.end) - _minutes_of_day(self.start)

    def bounds_on(self, day: date) -> tuple[datetime, datetime]:
        return (
            datetime.combine(day, self.start, tzinfo=UTC),
            datetime.combine(day, self.end, tzinfo=UTC),
        )


@dataclass(frozen=True, slots=True)
class AvailabilitySettings:
    working_hours: Mapping[str, tuple[WorkingInterval, ...]]
    buffer_time_minutes: int = 30
    max_bookings_per_day: int = 3
    advance_booking_days: int = 60

    @classmethod
    def default(cls) -> AvailabilitySettings:
        """Mon-Fri 09:00-17:00, 30-minute buffer, 3 bookings/day, 60-day horizon."""
        workday = (WorkingInterval(time(9, 0), time(17, 0)),)
        return cls(working_hours={weekday: workday for weekday in WEEKDAYS[:5]})

    @classmethod
    def from_template(
        cls,
        working_hours: Mapping[str, Iterable[Mapping[str, str]]] | None,
        *,
        buffer_time_minutes: int = 30,
        max_bookings_per_day: int = 3,
        advance_booking_days: int = 60,
    ) -> AvailabilitySettings:
        """Build settings from the persisted JSON template."""
        parsed: dict[str, tuple[WorkingInterval, ...]] = {}
        for weekday, intervals in (working_hours or {}).items():
            key = weekday.strip().lower()
            if key not in WEEKDAYS:
                raise DomainValidationException(f"Unknown weekday: {weekday!r}")
            parsed[key] = tuple(
                WorkingInterval(parse_hhmm(item["start"]), parse_hhmm(item["end"])) for item in intervals
            )
        if buffer_time_minutes < 0 or max_bookings_per_day < 1 or advance_booking_days < 1:
            raise DomainValidationException("Availability limits are out of range")
        return cls(
            working_hours=parsed,
            buffer_time_minutes=buffer_time_minutes,
            max_bookings_per_day=max_bookings_per_day,
            advance_booking_days=advance_booking_days,
        )

    def intervals_for(self, day: date) -> tuple[WorkingInterval, ...]:
        return tuple(self.working_hours.get(WEEKDAYS[day.weekday()], ()))


@dataclass(frozen=True, slots=True)
class BookedInterval:
    start: datetime
    end: datetime
    booking_id: UUID | None = None

    def padded(self, buffer_minutes: int) -> tuple[datetime, datetime]:
        pad = timedelta(minutes=buffer_minutes)
        return self.start - pad, self.end + pad

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


@dataclass(frozen=True, slots=True)
class DayAvailability:
    date: date
    status: AvailabilityStatusEnum
    booking_count: int
    max_bookings: int
    remaining_minutes: int
    available_slots: tuple[str, ...] = field(default_factory=tuple)


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


def _bookings_on(day: date, bookings: Sequence[BookedInterval]) -> list[BookedInterval]:
    day_start, day_end = _day_bounds(day)
    return [booking for booking in bookings if booking.overlaps(day_start, day_end)]


def _overlap_minutes(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> int:
    latest_start = max(a_start, b_start)
    earliest_end = min(a_end, b_end)
    if earliest_end <= latest_start:
        return 0
    return int((earliest_end - latest_start).total_seconds() // 60)


def _conflicts(
    start: datetime,
    end: datetime,
    bookings: Iterable[BookedInterval],
    buffer_minutes: int,
) -> bool:
    for booking in bookings:
        padded_start, padded_end = booking.padded(buffer_minutes)
        if start < padded_end and padded_start < end:
            return True
    return False


def _free_slots(
    day: date,
    intervals: Sequence[WorkingInterval],
    bookings: Sequence[BookedInterval],
    buffer_minutes: int,
    duration_minutes: int,
) -> tuple[str, ...]:
    slots: list[str] = []
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=SLOT_STEP_MINUTES)
    for interval in intervals:
        interval_start, interval_end = interval.bounds_on(day)
        candidate = interval_start
        while candidate + duration <= interval_end:
            if not _conflicts(candidate, candidate + duration, bookings, buffer_minutes):
                slots.append(candidate.strftime("%H:%M"))
            candidate += step
    return tuple(slots)


def classify_day(
    day: date,
    settings: AvailabilitySettings,
    active_bookings: Sequence[BookedInterval],
    blocked_dates: set[date] | frozenset[date],
    service_duration_minutes: int = DEFAULT_SERVICE_DURATION_MINUTES,
) -> DayAvailability:
    """Classify a single calendar day."""
    intervals = settings.intervals_for(day)
    day_bookings = _bookings_on(day, active_bookings)
    booking_count = len(day_bookings)

    if day in blocked_dates or not intervals:
        return DayAvailability(
            date=day,
            status=AvailabilityStatusEnum.BLOCKED,
            booking_count=booking_count,
            max_bookings=settings.max_bookings_per_day,
            remaining_minutes=0,
        )

    working_minutes = sum(interval.minutes for interval in intervals)
    booked_minutes = 0
    for booking in day_bookings:
        for interval in intervals:
            booked_minutes += _overlap_minutes(booking.start, booking.end, *interval.bounds_on(day))
    remaining = max(
        0,
        working_minutes - booked_minutes - settings.buffer_time_minutes * booking_count,
    )

    if booking_count >= settings.max_bookings_per_day:
        status = AvailabilityStatusEnum.BOOKED
        slots: tuple[str, ...] = ()
    else:
        slots = _free_slots(
            day,
            intervals,
            day_bookings,
            settings.buffer_time_minutes,
            service_duration_minutes,
        )
        if remaining < service_duration_minutes + settings.buffer_time_minutes:
            status = AvailabilityStatusEnum.LIMITED
        else:
            status = AvailabilityStatusEnum.AVAILABLE

    return DayAvailability(
        date=day,
        status=status,
        booking_count=booking_count,
        max_bookings=settings.max_bookings_per_day,
        remaining_minutes=remaining,
        available_slots=slots,
    )


def compute_availability(
    professional_id: UUID | None,
    start_date: date,
    end_date: date,
    settings: AvailabilitySettings | None,
    active_bookings: Iterable[BookedInterval],
    blocked_dates: Iterable[date],
    service_duration_minutes: int = DEFAULT_SERVICE_DURATION_MINUTES,
) -> list[DayAvailability]:
    """Return one classification per calendar day in the inclusive range.

    `professional_id` only identifies the subject for callers and logs; the
    result is a pure function of the remaining inputs.
    """
    if end_date < start_date:
        raise DomainValidationException("end_date must not be before start_date")
    if service_duration_minutes <= 0:
        raise DomainValidationException("Service duration must be positive")

    effective = settings or AvailabilitySettings.default()
    bookings = list(active_bookings)
    blocked = frozenset(blocked_dates)

    days: list[DayAvailability] = []
    current = start_date
    while current <= end_date:
        days.append(classify_day(current, effective, bookings, blocked, service_duration_minutes))
        current += timedelta(days=1)
    return days


def find_slot_conflict(
    start: datetime,
    duration_minutes: int,
    settings: AvailabilitySettings | None,
    active_bookings: Iterable[BookedInterval],
    blocked_dates: Iterable[date],
) -> str | None:
    """Return why a slot cannot be booked, or None when it is free."""
    effective = settings or AvailabilitySettings.default()
    start = start.astimezone(UTC)
    end = start + timedelta(minutes=duration_minutes)
    bookings = list(active_bookings)
    day = start.date()

    classification = classify_day(day, effective, bookings, frozenset(blocked_dates), duration_minutes)
    if classification.status == AvailabilityStatusEnum.BLOCKED:
        return "Professional is not available on this date"
    if classification.status == AvailabilityStatusEnum.BOOKED:
        return "Professional is fully booked on this date"

    within_hours = any(
        bounds[0] <= start and end <= bounds[1]
        for bounds in (interval.bounds_on(day) for interval in effective.intervals_for(day))
    )
    if not within_hours:
        return "Requested time is outside working hours"

    if _conflicts(start, end, bookings, effective.buffer_time_minutes):
        return "Requested time overlaps an existing booking or its buffer"
    return None


def next_available_date(
    from_date: date,
    settings: AvailabilitySettings | None,
    active_bookings: Iterable[BookedInterval],
    blocked_dates: Iterable[date],
    max_days_ahead: int | None = None,
    service_duration_minutes: int = DEFAULT_SERVICE_DURATION_MINUTES,
) -> date | None:
    """First day after `from_date` with at least one bookable slot."""
    effective = settings or AvailabilitySettings.default()
    horizon = max_days_ahead if max_days_ahead is not None else effective.advance_booking_days
    bookings = list(active_bookings)
    blocked = frozenset(blocked_dates)

    for offset in range(1, horizon + 1):
        day = from_date + timedelta(days=offset)
        classification = classify_day(day, effective, bookings, blocked, service_duration_minutes)
        if classification.status in (AvailabilityStatusEnum.AVAILABLE, AvailabilityStatusEnum.LIMITED) and (
            classification.available_slots
        ):
            return day
    return None
