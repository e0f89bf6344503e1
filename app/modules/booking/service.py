"""Booking business logic layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import (
    AuthorizationStatusEnum,
    BookingStatusEnum,
    CancellationInitiatorEnum,
    ReconciliationKindEnum,
    RoleEnum,
)
from app.core.security import Actor
from app.modules.audit.repository import AuditRepository
from app.modules.availability.calculator import AvailabilitySettings, BookedInterval, find_slot_conflict
from app.modules.booking.models import Booking
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import BookingCancelRequest, BookingCheckInRequest, BookingCreateRequest
from app.modules.booking.state_machine import TERMINAL_STATUSES, can_transition, transition
from app.modules.payments.gateway import (
    AuthorizationResult,
    PaymentGateway,
    capture_key,
    get_payment_gateway,
    void_key,
)
from app.modules.professionals.models import ProfessionalProfile
from app.modules.professionals.repository import ProfessionalsRepository
from app.modules.professionals.service import availability_settings_for
from app.modules.reconciliation.queue import ReconciliationQueue, get_reconciliation_queue
from app.modules.reconciliation.repository import ReconciliationRepository
from app.shared.exceptions import (
    BusinessRuleException,
    DomainValidationException,
    InvalidStateTransitionException,
    NotFoundException,
    PaymentAmountSyncException,
    PaymentDeclinedException,
    PaymentGatewayException,
    PaymentGatewayTimeoutException,
    SlotNoLongerAvailableException,
    UnauthorizedException,
)
from app.shared.utils import ensure_utc, prorate_minutes, utc_now

logger = logging.getLogger(__name__)
settings = get_settings()

_CANCELED_BY_ROLE = {
    RoleEnum.CUSTOMER: CancellationInitiatorEnum.CUSTOMER,
    RoleEnum.PROFESSIONAL: CancellationInitiatorEnum.PROFESSIONAL,
    RoleEnum.ADMIN: CancellationInitiatorEnum.ADMIN,
}
_VOIDABLE_STATUSES = frozenset(
    {
        AuthorizationStatusEnum.REQUIRES_PAYMENT_METHOD,
        AuthorizationStatusEnum.REQUIRES_CONFIRMATION,
        AuthorizationStatusEnum.REQUIRES_ACTION,
        AuthorizationStatusEnum.PROCESSING,
        AuthorizationStatusEnum.REQUIRES_CAPTURE,
    },
)


@dataclass(slots=True)
class CreatedBooking:
    """New booking plus the secret the customer needs to finish payment, if any."""

    booking: Booking
    client_secret: str | None


def booking_event_payload(booking: Booking, **extra) -> dict:
    payload = {
        "booking_id": str(booking.id),
        "customer_id": str(booking.customer_id) if booking.customer_id else None,
        "professional_id": str(booking.professional_id),
        "status": str(booking.status),
        "scheduled_start": booking.scheduled_start.isoformat(),
        "service_name": booking.service_name,
    }
    payload.update(extra)
    return payload


def validate_booking_access(booking: Booking, actor: Actor) -> None:
    if actor.role == RoleEnum.ADMIN:
        return
    if actor.role == RoleEnum.CUSTOMER and booking.customer_id == actor.id:
        return
    if actor.role == RoleEnum.PROFESSIONAL and booking.professional_id == actor.id:
        return
    raise UnauthorizedException("You cannot manage this booking")


def _ensure_provider_side(booking: Booking, actor: Actor) -> None:
    validate_booking_access(booking, actor)
    if actor.role not in (RoleEnum.PROFESSIONAL, RoleEnum.ADMIN):
        raise UnauthorizedException("Only the assigned professional or admin can perform this step")


class BookingService:
    """Booking lifecycle service: create, confirm, check-in, check-out, cancel."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        professionals_repository: ProfessionalsRepository,
        reconciliation_repository: ReconciliationRepository,
        audit_repository: AuditRepository,
        gateway: PaymentGateway,
        issue_queue: ReconciliationQueue,
    ) -> None:
        self.booking_repository = booking_repository
        self.professionals_repository = professionals_repository
        self.reconciliation_repository = reconciliation_repository
        self.audit_repository = audit_repository
        self.gateway = gateway
        self.issue_queue = issue_queue

    async def _get_booking(self, booking_id: UUID, *, for_update: bool = False) -> Booking:
        booking = await self.booking_repository.get_booking_by_id(booking_id, for_update=for_update)
        if booking is None:
            raise NotFoundException("Booking not found")
        return booking

    async def _emit(self, booking: Booking, event_type: str, **extra) -> None:
        await self.audit_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type=event_type,
            payload=booking_event_payload(booking, **extra),
        )

    async def _ensure_slot_available(
        self,
        professional_id: UUID,
        start: datetime,
        duration_minutes: int,
        availability: AvailabilitySettings,
    ) -> None:
        """Re-check the requested slot against live bookings and blocked dates."""
        day = start.date()
        day_start = datetime.combine(day, time.min, tzinfo=UTC)
        active = await self.booking_repository.list_active_for_professional(
            professional_id,
            day_start - timedelta(days=1),
            day_start + timedelta(days=2),
        )
        blocked = await self.professionals_repository.list_blocked_dates(professional_id, day, day)
        reason = find_slot_conflict(
            start,
            duration_minutes,
            availability,
            [BookedInterval(item.scheduled_start, item.scheduled_end, item.id) for item in active],
            [item.blocked_on for item in blocked],
        )
        if reason is not None:
            raise SlotNoLongerAvailableException(reason)

    async def _fail_payment(self, booking: Booking) -> None:
        """Persist payment_failed before an error propagates and rolls the request back."""
        transition(booking, BookingStatusEnum.PAYMENT_FAILED)
        booking.authorization_status = AuthorizationStatusEnum.FAILED
        await self.booking_repository.save(booking)
        await self._emit(booking, "booking.payment_failed")
        await self.booking_repository.commit()

    async def _apply_authorization(self, booking: Booking, authorization: AuthorizationResult) -> None:
        booking.authorization_id = authorization.authorization_id
        booking.authorization_status = authorization.status

        if authorization.status == AuthorizationStatusEnum.REQUIRES_CAPTURE:
            booking.amount_authorized = max(authorization.amount, booking.amount_estimated)
            transition(booking, BookingStatusEnum.AUTHORIZED)
        elif authorization.status in (AuthorizationStatusEnum.CANCELED, AuthorizationStatusEnum.FAILED):
            await self._fail_payment(booking)
            raise PaymentGatewayException("Payment authorization was canceled by the provider")
        await self.booking_repository.save(booking)

    @staticmethod
    def _hourly_rate(payload: BookingCreateRequest, profile: ProfessionalProfile | None, actor: Actor) -> int | None:
        """Rate that prices the booking and every later extension; only admins may override it."""
        if payload.service_hourly_rate is not None:
            if actor.role == RoleEnum.ADMIN:
                return payload.service_hourly_rate
            logger.info("Ignoring client-supplied hourly rate for professional %s", payload.professional_id)
        return profile.hourly_rate if profile is not None else None

    async def create_booking(self, payload: BookingCreateRequest, actor: Actor) -> CreatedBooking:
        """Reserve the slot and place a manual-capture hold for the estimated amount."""
        if actor.role == RoleEnum.PROFESSIONAL:
            raise UnauthorizedException("Professionals cannot book services")
        customer_id = actor.id if actor.role == RoleEnum.CUSTOMER else payload.customer_id

        now = utc_now()
        start = ensure_utc(payload.scheduled_start)
        if start <= now:
            raise DomainValidationException("Cannot book a slot in the past")
        end = start + timedelta(minutes=payload.duration_minutes)

        profile = await self.professionals_repository.get_profile(payload.professional_id)
        if profile is not None and not profile.is_accepting_bookings:
            raise BusinessRuleException("Professional is not accepting bookings")
        availability = availability_settings_for(profile)
        if start.date() > (now + timedelta(days=availability.advance_booking_days)).date():
            raise DomainValidationException("Requested date is beyond the advance booking window")

        await self._ensure_slot_available(payload.professional_id, start, payload.duration_minutes, availability)

        hourly_rate = self._hourly_rate(payload, profile, actor)
        currency = payload.currency or (profile.currency if profile is not None else settings.booking_default_currency)
        rate_estimate = prorate_minutes(hourly_rate, payload.duration_minutes) if hourly_rate is not None else None
        if payload.amount is not None:
            amount = payload.amount
            # A quoted amount may exceed the rate estimate, but only an admin may price below it.
            if rate_estimate is not None and actor.role != RoleEnum.ADMIN:
                amount = max(amount, rate_estimate)
        elif rate_estimate is not None:
            amount = rate_estimate
        else:
            raise DomainValidationException("Either amount or an hourly rate is required")
        amount = max(settings.booking_minimum_amount, amount)

        booking = await self.booking_repository.create_booking(
            buffer_minutes=availability.buffer_time_minutes,
            customer_id=customer_id,
            professional_id=payload.professional_id,
            scheduled_start=start,
            scheduled_end=end,
            duration_minutes=payload.duration_minutes,
            status=BookingStatusEnum.PENDING_PAYMENT,
            currency=currency.upper(),
            service_name=payload.service_name,
            service_hourly_rate=hourly_rate,
            amount_estimated=amount,
            amount_authorized=0,
            time_extension_minutes=0,
            time_extension_amount=0,
            address=payload.address,
            special_instructions=payload.special_instructions,
        )

        try:
            authorization = await self.gateway.authorize(
                amount=amount,
                currency=booking.currency,
                payer_reference=payload.payer_reference,
                booking_id=booking.id,
                payment_method=payload.payment_method,
            )
        except PaymentDeclinedException:
            logger.info("Authorization declined, discarding booking %s", booking.id)
            await self.booking_repository.delete(booking)
            raise
        except PaymentGatewayTimeoutException:
            # The hold may exist even though the call timed out; look before giving up.
            authorization = await self.gateway.find_for_booking(booking.id)
            if authorization is None:
                logger.warning("Authorization for booking %s timed out and was not found", booking.id)
                await self._fail_payment(booking)
                raise
            logger.warning(
                "Authorization for booking %s timed out; adopting %s",
                booking.id,
                authorization.authorization_id,
            )

        await self._apply_authorization(booking, authorization)
        await self._emit(booking, "booking.created", amount=booking.amount_estimated, currency=booking.currency)

        client_secret = None if booking.status == BookingStatusEnum.AUTHORIZED else authorization.client_secret
        return CreatedBooking(booking=booking, client_secret=client_secret)

    async def confirm_booking(self, booking_id: UUID, actor: Actor) -> Booking:
        """Professional accepts an authorized booking."""
        booking = await self._get_booking(booking_id, for_update=True)
        _ensure_provider_side(booking, actor)

        if (
            booking.status == BookingStatusEnum.AUTHORIZED
            and booking.authorization_status != AuthorizationStatusEnum.REQUIRES_CAPTURE
        ):
            raise BusinessRuleException("Payment authorization is not ready for capture")

        transition(booking, BookingStatusEnum.CONFIRMED)
        await self.booking_repository.save(booking)
        await self._emit(booking, "booking.confirmed")
        return booking

    async def check_in(self, booking_id: UUID, payload: BookingCheckInRequest, actor: Actor) -> Booking:
        """Professional starts the service."""
        booking = await self._get_booking(booking_id, for_update=True)
        _ensure_provider_side(booking, actor)

        transition(booking, BookingStatusEnum.IN_PROGRESS)
        booking.checked_in_at = ensure_utc(payload.checked_in_at) if payload.checked_in_at else utc_now()
        await self.booking_repository.save(booking)
        await self._emit(booking, "booking.checked_in", checked_in_at=booking.checked_in_at.isoformat())
        return booking

    async def _roll_forward_or_flag(self, booking: Booking, provider: AuthorizationResult) -> None:
        """Settle a difference between local and provider authorized amounts before capture."""
        issue = await self.reconciliation_repository.find_open_issue(
            booking.id,
            ReconciliationKindEnum.EXTENSION_PERSIST_FAILED,
        )
        if (
            issue is not None
            and provider.amount > booking.amount_authorized
            and issue.expected_amount == provider.amount
        ):
            booking.time_extension_minutes = int(issue.details["time_extension_minutes"])
            booking.time_extension_amount = int(issue.details["time_extension_amount"])
            booking.amount_authorized = provider.amount
            await self.reconciliation_repository.resolve_issue(
                issue,
                resolved_by=None,
                resolved_at=utc_now(),
                notes="Extension rolled forward from provider amount at check-out",
            )
            logger.warning(
                "Rolled forward extension for booking %s to authorized amount %s",
                booking.id,
                provider.amount,
            )
            return

        issue_id = await self.issue_queue.open_issue(
            ReconciliationKindEnum.CAPTURE_AMOUNT_MISMATCH,
            booking_id=booking.id,
            authorization_id=booking.authorization_id,
            expected_amount=booking.amount_authorized,
            provider_amount=provider.amount,
            details={"provider_status": str(provider.status)},
        )
        raise PaymentAmountSyncException(
            f"Authorized amount differs from the payment provider; reconciliation issue {issue_id} opened",
        )

    async def check_out(self, booking_id: UUID, actor: Actor) -> Booking:
        """Finish the service and capture the full authorized amount."""
        booking = await self._get_booking(booking_id, for_update=True)
        _ensure_provider_side(booking, actor)

        if booking.status != BookingStatusEnum.IN_PROGRESS:
            raise InvalidStateTransitionException(f"Booking cannot move from {booking.status} to completed")
        if not booking.authorization_id:
            raise BusinessRuleException("Booking has no payment authorization to capture")

        provider = await self.gateway.retrieve(booking.authorization_id)
        if provider.status == AuthorizationStatusEnum.SUCCEEDED:
            logger.warning("Authorization %s was already captured; completing booking", booking.authorization_id)
            captured_amount, captured_status = provider.amount_received, provider.status
        else:
            if provider.amount != booking.amount_authorized:
                await self._roll_forward_or_flag(booking, provider)
            capture = await self.gateway.capture(
                booking.authorization_id,
                booking.amount_authorized,
                idempotency_key=capture_key(booking.id),
            )
            captured_amount, captured_status = capture.captured_amount, capture.status

        transition(booking, BookingStatusEnum.COMPLETED)
        booking.completed_at = utc_now()
        booking.amount_captured = captured_amount
        booking.authorization_status = captured_status
        try:
            await self.booking_repository.save_isolated(booking)
        except SQLAlchemyError as exc:
            issue_id = await self.issue_queue.open_issue(
                ReconciliationKindEnum.CAPTURE_PERSIST_FAILED,
                booking_id=booking.id,
                authorization_id=booking.authorization_id,
                expected_amount=booking.amount_authorized,
                provider_amount=captured_amount,
                details={"completed_at": booking.completed_at.isoformat()},
            )
            raise PaymentAmountSyncException(
                f"Payment captured but booking was not updated; reconciliation issue {issue_id} opened",
            ) from exc

        await self._emit(booking, "booking.completed", amount_captured=captured_amount, currency=booking.currency)
        return booking

    async def cancel_booking(self, booking_id: UUID, payload: BookingCancelRequest, actor: Actor) -> Booking:
        """Cancel and release the hold; never captures."""
        booking = await self._get_booking(booking_id, for_update=True)
        validate_booking_access(booking, actor)

        if booking.status in TERMINAL_STATUSES or not can_transition(booking.status, BookingStatusEnum.CANCELED):
            raise InvalidStateTransitionException(f"Booking cannot move from {booking.status} to canceled")

        if booking.authorization_id and booking.authorization_status in _VOIDABLE_STATUSES:
            booking.authorization_status = await self.gateway.void(
                booking.authorization_id,
                idempotency_key=void_key(booking.id),
            )

        transition(booking, BookingStatusEnum.CANCELED)
        booking.canceled_at = utc_now()
        booking.cancellation_reason = payload.reason
        booking.canceled_by = _CANCELED_BY_ROLE[actor.role]
        await self.booking_repository.save(booking)
        await self._emit(
            booking,
            "booking.canceled",
            reason=payload.reason,
            canceled_by=str(booking.canceled_by),
        )
        return booking

    async def get_booking(self, booking_id: UUID, actor: Actor) -> Booking:
        booking = await self._get_booking(booking_id)
        validate_booking_access(booking, actor)
        return booking

    async def list_bookings(
        self,
        actor: Actor,
        limit: int,
        offset: int,
        status: BookingStatusEnum | None = None,
    ) -> tuple[list[Booking], int]:
        """List bookings for actor according to role."""
        return await self.booking_repository.list_bookings(actor.id, actor.role, limit, offset, status)


async def get_booking_service(
    session: AsyncSession = Depends(get_db_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    issue_queue: ReconciliationQueue = Depends(get_reconciliation_queue),
) -> BookingService:
    """Dependency provider for booking service."""
    return BookingService(
        booking_repository=BookingRepository(session),
        professionals_repository=ProfessionalsRepository(session),
        reconciliation_repository=ReconciliationRepository(session),
        audit_repository=AuditRepository(session),
        gateway=gateway,
        issue_queue=issue_queue,
    )
