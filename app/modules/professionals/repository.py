"""Professionals repository layer."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.professionals.models import BlockedDate, ProfessionalProfile


class ProfessionalsRepository:
    """DB operations for professional settings and blocked dates."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_profile(self, professional_id: UUID) -> ProfessionalProfile | None:
        stmt = select(ProfessionalProfile).where(ProfessionalProfile.professional_id == professional_id)
        return await self.session.scalar(stmt)

    async def create_profile(self, professional_id: UUID, **fields) -> ProfessionalProfile:
        profile = ProfessionalProfile(professional_id=professional_id, **fields)
        self.session.add(profile)
        await self.session.flush()
        return profile

    async def update_profile(self, profile: ProfessionalProfile, **changes) -> ProfessionalProfile:
        for key, value in changes.items():
            if value is not None:
                setattr(profile, key, value)
        await self.session.flush()
        return profile

    async def list_blocked_dates(
        self,
        professional_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[BlockedDate]:
        stmt = select(BlockedDate).where(BlockedDate.professional_id == professional_id)
        if start_date is not None:
            stmt = stmt.where(BlockedDate.blocked_on >= start_date)
        if end_date is not None:
            stmt = stmt.where(BlockedDate.blocked_on <= end_date)
        stmt = stmt.order_by(BlockedDate.blocked_on.asc())
        return (await self.session.scalars(stmt)).all()

    async def get_blocked_date(self, professional_id: UUID, blocked_on: date) -> BlockedDate | None:
        stmt = select(BlockedDate).where(
            BlockedDate.professional_id == professional_id,
            BlockedDate.blocked_on == blocked_on,
        )
        return await self.session.scalar(stmt)

    async def add_blocked_date(self, professional_id: UUID, blocked_on: date, reason: str | None) -> BlockedDate:
        blocked = BlockedDate(professional_id=professional_id, blocked_on=blocked_on, reason=reason)
        self.session.add(blocked)
        await self.session.flush()
        return blocked

    async def remove_blocked_date(self, professional_id: UUID, blocked_on: date) -> int:
        stmt = delete(BlockedDate).where(
            BlockedDate.professional_id == professional_id,
            BlockedDate.blocked_on == blocked_on,
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)
