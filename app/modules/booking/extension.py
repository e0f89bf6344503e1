"""Mid-service time extensions.

An extension touches two systems that cannot share a transaction: the held
authorization at the payment provider and the booking row. The provider is
updated first; the booking row only afterwards. When the local write keeps
failing, the provider already holds the larger amount, so the gap is handed to
the reconciliation queue instead of being retried against the provider.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import AuthorizationStatusEnum, BookingStatusEnum, ReconciliationKindEnum
from app.core.security import Actor
from app.modules.audit.repository import AuditRepository
from app.modules.booking.models import Booking
from app.modules.booking.repository import BookingRepository
from app.modules.booking.service import booking_event_payload, validate_booking_access
from app.modules.payments.gateway import PaymentGateway, extend_key, get_payment_gateway
from app.modules.reconciliation.queue import ReconciliationQueue, get_reconciliation_queue
from app.shared.exceptions import (
    BusinessRuleException,
    DomainValidationException,
    InvalidStateTransitionException,
    NotFoundException,
    PaymentAmountSyncException,
)
from app.shared.utils import prorate_minutes

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True, slots=True)
class ExtensionResult:
    booking_id: UUID
    additional_minutes: int
    additional_amount: int
    time_extension_minutes: int
    time_extension_amount: int
    new_authorized_total: int


class TimeExtensionService:
    """Extend in-progress bookings and raise their held authorization."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        audit_repository: AuditRepository,
        gateway: PaymentGateway,
        issue_queue: ReconciliationQueue,
        max_extension_minutes: int = settings.booking_max_extension_minutes,
    ) -> None:
        self.booking_repository = booking_repository
        self.audit_repository = audit_repository
        self.gateway = gateway
        self.issue_queue = issue_queue
        self.max_extension_minutes = max_extension_minutes

    async def extend_time(self, booking_id: UUID, additional_minutes: int, actor: Actor) -> ExtensionResult:
        if additional_minutes <= 0 or additional_minutes > self.max_extension_minutes:
            raise DomainValidationException(
                f"additional_minutes must be between 1 and {self.max_extension_minutes}",
            )

        # The row lock serializes concurrent extensions of the same booking.
        booking = await self.booking_repository.get_booking_by_id(booking_id, for_update=True)
        if booking is None:
            raise NotFoundException("Booking not found")
        validate_booking_access(booking, actor)

        if booking.status != BookingStatusEnum.IN_PROGRESS:
            raise InvalidStateTransitionException("Time can only be extended while the service is in progress")
        if booking.service_hourly_rate is None:
            raise BusinessRuleException("Booking has no hourly rate to price an extension")
        if not booking.authorization_id:
            raise BusinessRuleException("Booking has no payment authorization to extend")

        additional_amount = prorate_minutes(booking.service_hourly_rate, additional_minutes)
        total_minutes = booking.time_extension_minutes + additional_minutes
        total_amount = booking.time_extension_amount + additional_amount
        new_total = booking.amount_authorized - booking.time_extension_amount + total_amount
        previous_total = booking.amount_authorized

        authorization_status = await self.gateway.update_authorized_amount(
            booking.authorization_id,
            new_total,
            idempotency_key=extend_key(booking.id, total_minutes),
        )
        logger.info(
            "Authorization %s raised from %s to %s for booking %s",
            booking.authorization_id,
            previous_total,
            new_total,
            booking.id,
        )

        result = ExtensionResult(
            booking_id=booking.id,
            additional_minutes=additional_minutes,
            additional_amount=additional_amount,
            time_extension_minutes=total_minutes,
            time_extension_amount=total_amount,
            new_authorized_total=new_total,
        )
        await self._persist(booking, result, authorization_status, previous_total)

        await self.audit_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type="booking.time_extended",
            payload=booking_event_payload(
                booking,
                additional_minutes=additional_minutes,
                additional_amount=additional_amount,
                new_authorized_total=new_total,
                currency=booking.currency,
            ),
        )
        return result

    @staticmethod
    def _assign(booking: Booking, result: ExtensionResult, authorization_status: AuthorizationStatusEnum) -> None:
        booking.time_extension_minutes = result.time_extension_minutes
        booking.time_extension_amount = result.time_extension_amount
        booking.amount_authorized = result.new_authorized_total
        booking.authorization_status = authorization_status

    async def _persist(
        self,
        booking: Booking,
        result: ExtensionResult,
        authorization_status: AuthorizationStatusEnum,
        previous_total: int,
    ) -> None:
        """Write the extension locally, retrying the local write once."""
        booking_id, authorization_id = booking.id, booking.authorization_id
        try:
            self._assign(booking, result, authorization_status)
            await self.booking_repository.save_isolated(booking)
            return
        except SQLAlchemyError as exc:
            logger.warning("Persisting extension for booking %s failed, retrying once: %s", booking_id, exc)

        try:
            await self.booking_repository.refresh(booking)
            self._assign(booking, result, authorization_status)
            await self.booking_repository.save_isolated(booking)
        except SQLAlchemyError as exc:
            issue_id = await self.issue_queue.open_issue(
                ReconciliationKindEnum.EXTENSION_PERSIST_FAILED,
                booking_id=booking_id,
                authorization_id=authorization_id,
                expected_amount=result.new_authorized_total,
                provider_amount=result.new_authorized_total,
                details={
                    "additional_minutes": result.additional_minutes,
                    "additional_amount": result.additional_amount,
                    "time_extension_minutes": result.time_extension_minutes,
                    "time_extension_amount": result.time_extension_amount,
                    "previous_authorized_total": previous_total,
                },
            )
            raise PaymentAmountSyncException(
                f"Extension was authorized but not recorded; reconciliation issue {issue_id} opened",
            ) from exc


async def get_time_extension_service(
    session: AsyncSession = Depends(get_db_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    issue_queue: ReconciliationQueue = Depends(get_reconciliation_queue),
) -> TimeExtensionService:
    """Dependency provider for time extension service."""
    return TimeExtensionService(
        booking_repository=BookingRepository(session),
        audit_repository=AuditRepository(session),
        gateway=gateway,
        issue_queue=issue_queue,
    )
