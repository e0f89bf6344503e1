"""Disputes repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import is_constraint_violation
from app.core.enums import DisputeReasonEnum, DisputeStatusEnum
from app.modules.disputes.models import OPEN_DISPUTE_INDEX, OPEN_STATUSES, Dispute
from app.shared.exceptions import DisputeAlreadyExistsException


class DisputesRepository:
    """DB operations for disputes domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_dispute(
        self,
        booking_id: UUID,
        customer_id: UUID,
        professional_id: UUID,
        reason: DisputeReasonEnum,
        description: str,
    ) -> Dispute:
        dispute = Dispute(
            booking_id=booking_id,
            customer_id=customer_id,
            professional_id=professional_id,
            reason=reason,
            description=description,
            status=DisputeStatusEnum.PENDING,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(dispute)
                await self.session.flush()
        except IntegrityError as exc:
            if is_constraint_violation(exc, OPEN_DISPUTE_INDEX):
                raise DisputeAlreadyExistsException("Booking already has an open dispute") from exc
            raise
        return dispute

    async def get_dispute(self, dispute_id: UUID) -> Dispute | None:
        stmt = select(Dispute).where(Dispute.id == dispute_id)
        return await self.session.scalar(stmt)

    async def get_open_dispute_for_booking(self, booking_id: UUID) -> Dispute | None:
        stmt = select(Dispute).where(Dispute.booking_id == booking_id, Dispute.status.in_(OPEN_STATUSES))
        return await self.session.scalar(stmt)

    async def list_disputes(
        self,
        status: DisputeStatusEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Dispute], int]:
        base_stmt: Select[tuple[Dispute]] = select(Dispute)
        if status is not None:
            base_stmt = base_stmt.where(Dispute.status == status)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Dispute.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def save(self, dispute: Dispute) -> Dispute:
        await self.session.flush()
        return dispute
