"""Disputes business logic layer."""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import BookingStatusEnum, DisputeReasonEnum, DisputeStatusEnum, RoleEnum
from app.core.security import Actor
from app.modules.audit.repository import AuditRepository
from app.modules.booking.repository import BookingRepository
from app.modules.booking.state_machine import transition
from app.modules.disputes.models import OPEN_STATUSES, Dispute
from app.modules.disputes.repository import DisputesRepository
from app.shared.exceptions import (
    ConflictException,
    DisputeAlreadyExistsException,
    DisputeNotAllowedException,
    DisputeWindowClosedException,
    DisputeWindowUnresolvedException,
    DomainValidationException,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)
settings = get_settings()

_DISPUTABLE_STATUSES = (BookingStatusEnum.COMPLETED, BookingStatusEnum.DISPUTED)


class DisputeService:
    """Dispute window enforcement and admin review."""

    def __init__(
        self,
        disputes_repository: DisputesRepository,
        booking_repository: BookingRepository,
        audit_repository: AuditRepository,
        window_hours: int = settings.dispute_window_hours,
    ) -> None:
        self.disputes_repository = disputes_repository
        self.booking_repository = booking_repository
        self.audit_repository = audit_repository
        self.window = timedelta(hours=window_hours)

    async def _emit(self, dispute: Dispute, event_type: str, **extra) -> None:
        payload = {
            "dispute_id": str(dispute.id),
            "booking_id": str(dispute.booking_id),
            "customer_id": str(dispute.customer_id),
            "professional_id": str(dispute.professional_id),
            "reason": str(dispute.reason),
            "status": str(dispute.status),
        }
        payload.update(extra)
        await self.audit_repository.create_outbox_event(
            aggregate_type="dispute",
            aggregate_id=str(dispute.id),
            event_type=event_type,
            payload=payload,
        )

    async def file_dispute(
        self,
        booking_id: UUID,
        customer_id: UUID,
        reason: DisputeReasonEnum,
        description: str,
    ) -> Dispute:
        """Open a dispute; checks run in order and the first failure wins."""
        booking = await self.booking_repository.get_booking_by_id(booking_id, for_update=True)
        if booking is None:
            raise NotFoundException("Booking not found")
        if booking.customer_id != customer_id:
            raise UnauthorizedException("Only the booking customer can file a dispute")

        if booking.status not in _DISPUTABLE_STATUSES:
            raise DisputeNotAllowedException("Only completed bookings can be disputed")
        if booking.completed_at is None:
            raise DisputeWindowUnresolvedException("Booking completion time is unknown; dispute window cannot be evaluated")

        elapsed = utc_now() - ensure_utc(booking.completed_at)
        if elapsed > self.window:
            raise DisputeWindowClosedException(
                f"Disputes must be filed within {int(self.window.total_seconds() // 3600)} hours of completion",
            )

        if await self.disputes_repository.get_open_dispute_for_booking(booking.id) is not None:
            raise DisputeAlreadyExistsException("Booking already has an open dispute")

        dispute = await self.disputes_repository.create_dispute(
            booking_id=booking.id,
            customer_id=customer_id,
            professional_id=booking.professional_id,
            reason=reason,
            description=description,
        )
        if booking.status == BookingStatusEnum.COMPLETED:
            transition(booking, BookingStatusEnum.DISPUTED)
            await self.booking_repository.save(booking)

        logger.info("Dispute %s filed for booking %s reason=%s", dispute.id, booking.id, reason)
        await self._emit(dispute, "dispute.filed")
        return dispute

    async def start_review(self, dispute_id: UUID, actor: Actor) -> Dispute:
        if not actor.is_admin:
            raise UnauthorizedException("Only admin can review disputes")
        dispute = await self._get_dispute(dispute_id)
        if dispute.status != DisputeStatusEnum.PENDING:
            raise ConflictException("Only pending disputes can be taken into review")

        dispute.status = DisputeStatusEnum.INVESTIGATING
        return await self.disputes_repository.save(dispute)

    async def resolve_dispute(
        self,
        dispute_id: UUID,
        status: DisputeStatusEnum,
        resolution_notes: str,
        actor: Actor,
        refund_amount: int | None = None,
    ) -> Dispute:
        """Close a dispute and hand the booking back to the completed state."""
        if not actor.is_admin:
            raise UnauthorizedException("Only admin can resolve disputes")
        if status not in (DisputeStatusEnum.RESOLVED, DisputeStatusEnum.DISMISSED):
            raise DomainValidationException("Dispute can only be closed as resolved or dismissed")

        dispute = await self._get_dispute(dispute_id)
        if dispute.status not in OPEN_STATUSES:
            raise ConflictException("Dispute is already closed")

        booking = await self.booking_repository.get_booking_by_id(dispute.booking_id, for_update=True)
        if booking is None:
            raise NotFoundException("Booking not found")
        if refund_amount is not None and refund_amount > (booking.amount_captured or 0):
            raise DomainValidationException("Refund amount cannot exceed the captured amount")

        dispute.status = status
        dispute.resolution_notes = resolution_notes
        dispute.resolved_by = actor.id
        dispute.resolved_at = utc_now()
        dispute.refund_amount = refund_amount
        await self.disputes_repository.save(dispute)

        if booking.status == BookingStatusEnum.DISPUTED:
            transition(booking, BookingStatusEnum.COMPLETED)
            await self.booking_repository.save(booking)

        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="dispute.resolved",
            entity_type="dispute",
            entity_id=str(dispute.id),
            payload={"status": str(status), "refund_amount": refund_amount},
        )
        await self._emit(dispute, "dispute.resolved", refund_amount=refund_amount)
        return dispute

    async def _get_dispute(self, dispute_id: UUID) -> Dispute:
        dispute = await self.disputes_repository.get_dispute(dispute_id)
        if dispute is None:
            raise NotFoundException("Dispute not found")
        return dispute

    async def get_dispute(self, dispute_id: UUID, actor: Actor) -> Dispute:
        dispute = await self._get_dispute(dispute_id)
        if actor.role == RoleEnum.ADMIN:
            return dispute
        if actor.id in (dispute.customer_id, dispute.professional_id):
            return dispute
        raise UnauthorizedException("You cannot view this dispute")

    async def list_disputes(
        self,
        actor: Actor,
        status: DisputeStatusEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Dispute], int]:
        if not actor.is_admin:
            raise UnauthorizedException("Only admin can list disputes")
        return await self.disputes_repository.list_disputes(status, limit, offset)


async def get_dispute_service(session: AsyncSession = Depends(get_db_session)) -> DisputeService:
    """Dependency provider for dispute service."""
    return DisputeService(
        disputes_repository=DisputesRepository(session),
        booking_repository=BookingRepository(session),
        audit_repository=AuditRepository(session),
    )
