"""Booking repository layer."""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.dialects.postgresql import Range
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import is_constraint_violation
from app.core.enums import BookingStatusEnum, RoleEnum
from app.modules.booking.models import ACTIVE_STATUSES, RESERVATION_CONSTRAINT, Booking
from app.shared.exceptions import SlotNoLongerAvailableException


def reservation_range(start: datetime, end: datetime, buffer_minutes: int) -> Range[datetime]:
    """Half-open range the exclusion constraint guards, padded by the buffer."""
    return Range(start, end + timedelta(minutes=buffer_minutes), bounds="[)")


class BookingRepository:
    """DB operations for booking domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_booking(self, buffer_minutes: int, **fields) -> Booking:
        """Insert a booking; a reservation overlap surfaces as SlotNoLongerAvailable."""
        booking = Booking(
            reserved_during=reservation_range(fields["scheduled_start"], fields["scheduled_end"], buffer_minutes),
            **fields,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(booking)
                await self.session.flush()
        except IntegrityError as exc:
            if is_constraint_violation(exc, RESERVATION_CONSTRAINT):
                raise SlotNoLongerAvailableException("Requested slot was just booked by someone else") from exc
            raise
        return booking

    async def get_booking_by_id(self, booking_id: UUID, *, for_update: bool = False) -> Booking | None:
        stmt = select(Booking).where(Booking.id == booking_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def get_booking_by_authorization_id(
        self,
        authorization_id: str,
        *,
        for_update: bool = False,
    ) -> Booking | None:
        stmt = select(Booking).where(Booking.authorization_id == authorization_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def list_active_for_professional(
        self,
        professional_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.professional_id == professional_id,
                Booking.status.in_(ACTIVE_STATUSES),
                Booking.scheduled_start < window_end,
                Booking.scheduled_end > window_start,
            )
            .order_by(Booking.scheduled_start.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def list_bookings(
        self,
        user_id: UUID,
        role: RoleEnum,
        limit: int,
        offset: int,
        status: BookingStatusEnum | None = None,
    ) -> tuple[list[Booking], int]:
        base_stmt: Select[tuple[Booking]] = select(Booking)

        if role == RoleEnum.CUSTOMER:
            base_stmt = base_stmt.where(Booking.customer_id == user_id)
        elif role == RoleEnum.PROFESSIONAL:
            base_stmt = base_stmt.where(Booking.professional_id == user_id)
        if status is not None:
            base_stmt = base_stmt.where(Booking.status == status)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Booking.scheduled_start.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_completed_in_period(
        self,
        professional_id: UUID,
        period_start: datetime,
        period_end: datetime,
        currency: str,
    ) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.professional_id == professional_id,
                Booking.status.in_((BookingStatusEnum.COMPLETED, BookingStatusEnum.DISPUTED)),
                Booking.completed_at.is_not(None),
                Booking.completed_at >= period_start,
                Booking.completed_at < period_end,
                Booking.currency == currency,
            )
            .order_by(Booking.completed_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def save(self, booking: Booking) -> Booking:
        await self.session.flush()
        return booking

    async def save_isolated(self, booking: Booking) -> Booking:
        """Flush inside a savepoint so a failed write leaves the transaction usable."""
        async with self.session.begin_nested():
            await self.session.flush()
        return booking

    async def refresh(self, booking: Booking) -> Booking:
        await self.session.refresh(booking)
        return booking

    async def delete(self, booking: Booking) -> None:
        await self.session.delete(booking)
        await self.session.flush()

    async def commit(self) -> None:
        """Commit the request transaction ahead of raising an error to the caller."""
        await self.session.commit()
