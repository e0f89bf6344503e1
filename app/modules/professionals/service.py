"""Professionals business logic layer."""

from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.core.security import Actor
from app.modules.availability.calculator import AvailabilitySettings
from app.modules.professionals.models import BlockedDate, ProfessionalProfile
from app.modules.professionals.repository import ProfessionalsRepository
from app.modules.professionals.schemas import BlockedDateCreate, ProfessionalSettingsUpdate
from app.shared.exceptions import (
    ConflictException,
    DomainValidationException,
    NotFoundException,
    UnauthorizedException,
)

logger = logging.getLogger(__name__)
settings = get_settings()


def _ensure_professional(actor: Actor) -> None:
    if actor.role != RoleEnum.PROFESSIONAL:
        raise UnauthorizedException("Only professionals can manage availability settings")


def _default_working_hours() -> dict[str, list[dict[str, str]]]:
    interval = {"start": settings.default_working_day_start, "end": settings.default_working_day_end}
    return {weekday: [dict(interval)] for weekday in ("monday", "tuesday", "wednesday", "thursday", "friday")}


def availability_settings_for(profile: ProfessionalProfile | None) -> AvailabilitySettings:
    """Availability template of a profile, or the configured default one."""
    if profile is None:
        return AvailabilitySettings.from_template(
            _default_working_hours(),
            buffer_time_minutes=settings.default_buffer_time_minutes,
            max_bookings_per_day=settings.default_max_bookings_per_day,
            advance_booking_days=settings.default_advance_booking_days,
        )
    return AvailabilitySettings.from_template(
        profile.working_hours,
        buffer_time_minutes=profile.buffer_time_minutes,
        max_bookings_per_day=profile.max_bookings_per_day,
        advance_booking_days=profile.advance_booking_days,
    )


class ProfessionalsService:
    """Professional settings service."""

    def __init__(self, repository: ProfessionalsRepository) -> None:
        self.repository = repository

    async def get_profile(self, professional_id: UUID) -> ProfessionalProfile:
        profile = await self.repository.get_profile(professional_id)
        if profile is None:
            raise NotFoundException("Professional profile not found")
        return profile

    async def upsert_settings(self, payload: ProfessionalSettingsUpdate, actor: Actor) -> ProfessionalProfile:
        """Create the caller's profile on first call, update it afterwards."""
        _ensure_professional(actor)

        changes = payload.model_dump(exclude_none=True)
        profile = await self.repository.get_profile(actor.id)

        merged_hours = changes.get("working_hours", profile.working_hours if profile else _default_working_hours())
        # Validates weekday names and interval ordering before anything is stored.
        AvailabilitySettings.from_template(
            merged_hours,
            buffer_time_minutes=changes.get(
                "buffer_time_minutes",
                profile.buffer_time_minutes if profile else settings.default_buffer_time_minutes,
            ),
            max_bookings_per_day=changes.get(
                "max_bookings_per_day",
                profile.max_bookings_per_day if profile else settings.default_max_bookings_per_day,
            ),
            advance_booking_days=changes.get(
                "advance_booking_days",
                profile.advance_booking_days if profile else settings.default_advance_booking_days,
            ),
        )
        if "working_hours" in changes:
            changes["working_hours"] = {day.strip().lower(): hours for day, hours in merged_hours.items()}

        if profile is not None:
            logger.info("Updating professional settings professional_id=%s", actor.id)
            return await self.repository.update_profile(profile, **changes)

        if "display_name" not in changes or "hourly_rate" not in changes:
            raise DomainValidationException("display_name and hourly_rate are required for a new profile")

        changes.setdefault("currency", settings.booking_default_currency)
        changes.setdefault("working_hours", merged_hours)
        changes.setdefault("buffer_time_minutes", settings.default_buffer_time_minutes)
        changes.setdefault("max_bookings_per_day", settings.default_max_bookings_per_day)
        changes.setdefault("advance_booking_days", settings.default_advance_booking_days)
        logger.info("Creating professional profile professional_id=%s", actor.id)
        return await self.repository.create_profile(actor.id, **changes)

    async def block_date(self, payload: BlockedDateCreate, actor: Actor) -> BlockedDate:
        _ensure_professional(actor)
        existing = await self.repository.get_blocked_date(actor.id, payload.blocked_on)
        if existing is not None:
            raise ConflictException("Date is already blocked")
        return await self.repository.add_blocked_date(actor.id, payload.blocked_on, payload.reason)

    async def unblock_date(self, blocked_on: date, actor: Actor) -> None:
        _ensure_professional(actor)
        removed = await self.repository.remove_blocked_date(actor.id, blocked_on)
        if removed == 0:
            raise NotFoundException("Blocked date not found")

    async def list_blocked_dates(self, professional_id: UUID) -> list[BlockedDate]:
        return await self.repository.list_blocked_dates(professional_id)


async def get_professionals_service(session: AsyncSession = Depends(get_db_session)) -> ProfessionalsService:
    """Dependency provider for professionals service."""
    return ProfessionalsService(ProfessionalsRepository(session))
