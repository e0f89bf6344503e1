"""Shared utility functions."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def round_half_up(value: Decimal | int | float) -> int:
    """Round a minor-unit amount to an integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def prorate_minutes(hourly_rate: int, minutes: int) -> int:
    """Price `minutes` of work at `hourly_rate` minor units per hour."""
    return round_half_up(Decimal(hourly_rate) * Decimal(minutes) / Decimal(60))
