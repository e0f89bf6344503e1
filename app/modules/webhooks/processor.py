"""Payment provider event processing.

Providers deliver events at least once and in no particular order. Every
mutation below is conditional on the booking's current state, so a replay is a
no-op and an event that arrives after the booking already moved further along
is reported as stale instead of regressing the booking.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import (
    AuthorizationStatusEnum,
    BookingStatusEnum,
    CancellationInitiatorEnum,
    ReconciliationKindEnum,
    WebhookResultEnum,
)
from app.core.metrics import WEBHOOK_EVENTS_TOTAL
from app.modules.audit.repository import AuditRepository
from app.modules.booking.models import Booking
from app.modules.booking.repository import BookingRepository
from app.modules.booking.service import booking_event_payload
from app.modules.booking.state_machine import transition
from app.modules.payments.gateway import read_field
from app.modules.reconciliation.queue import ReconciliationQueue, get_reconciliation_queue
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)

AMOUNT_CAPTURABLE_UPDATED = "payment_intent.amount_capturable_updated"
REQUIRES_CAPTURE = "payment_intent.requires_capture"
SUCCEEDED = "payment_intent.succeeded"
CANCELED = "payment_intent.canceled"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"

_PRE_SERVICE = (BookingStatusEnum.PENDING_PAYMENT, BookingStatusEnum.AUTHORIZED)
_HOLDING = (*_PRE_SERVICE, BookingStatusEnum.CONFIRMED, BookingStatusEnum.IN_PROGRESS)
_FINISHED = (BookingStatusEnum.COMPLETED, BookingStatusEnum.DISPUTED)
_DEAD = (BookingStatusEnum.CANCELED, BookingStatusEnum.PAYMENT_FAILED)


@dataclass(frozen=True, slots=True)
class WebhookEvent:
    id: str
    type: str
    data: Any

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | Any) -> WebhookEvent:
        data = read_field(payload, "data", {})
        return cls(
            id=str(read_field(payload, "id", "")),
            type=str(read_field(payload, "type", "")),
            data=read_field(data, "object", {}),
        )


@dataclass(frozen=True, slots=True)
class WebhookOutcome:
    event_id: str
    event_type: str
    result: WebhookResultEnum
    booking_id: UUID | None = None
    detail: str | None = None


Handler = Callable[[WebhookEvent, Booking], Awaitable[WebhookOutcome]]


class WebhookProcessor:
    """Converge booking rows with provider-side authorization state."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        audit_repository: AuditRepository,
        issue_queue: ReconciliationQueue,
    ) -> None:
        self.booking_repository = booking_repository
        self.audit_repository = audit_repository
        self.issue_queue = issue_queue
        self._handlers: dict[str, Handler] = {
            AMOUNT_CAPTURABLE_UPDATED: self._on_capturable,
            REQUIRES_CAPTURE: self._on_capturable,
            SUCCEEDED: self._on_succeeded,
            CANCELED: self._on_canceled,
            PAYMENT_FAILED: self._on_payment_failed,
            CHARGE_REFUNDED: self._on_refunded,
        }

    async def apply(self, event: WebhookEvent) -> WebhookOutcome:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info("Ignoring unsupported webhook event id=%s type=%s", event.id, event.type)
            return self._record(WebhookOutcome(event.id, event.type, WebhookResultEnum.IGNORED))

        authorization_id = self._authorization_id_of(event)
        booking = await self._find_booking(event, authorization_id)
        if booking is None:
            return self._record(await self._unmatched(event, authorization_id))

        if booking.authorization_id is None and authorization_id and event.type != CHARGE_REFUNDED:
            # Authorization that completed after the create call had already given up on it.
            booking.authorization_id = authorization_id

        outcome = await handler(event, booking)
        if outcome.result == WebhookResultEnum.APPLIED:
            await self.booking_repository.save(booking)
        return self._record(outcome)

    @staticmethod
    def _authorization_id_of(event: WebhookEvent) -> str | None:
        if event.type == CHARGE_REFUNDED:
            value = read_field(event.data, "payment_intent")
        else:
            value = read_field(event.data, "id")
        return str(value) if value else None

    async def _find_booking(self, event: WebhookEvent, authorization_id: str | None) -> Booking | None:
        if authorization_id:
            booking = await self.booking_repository.get_booking_by_authorization_id(authorization_id, for_update=True)
            if booking is not None:
                return booking

        raw_booking_id = read_field(read_field(event.data, "metadata", {}), "booking_id")
        if not raw_booking_id:
            return None
        try:
            booking_id = UUID(str(raw_booking_id))
        except ValueError:
            logger.warning("Webhook event %s carries malformed booking_id=%r", event.id, raw_booking_id)
            return None
        return await self.booking_repository.get_booking_by_id(booking_id, for_update=True)

    async def _unmatched(self, event: WebhookEvent, authorization_id: str | None) -> WebhookOutcome:
        logger.warning("Webhook event id=%s type=%s matches no booking", event.id, event.type)
        if event.type in (AMOUNT_CAPTURABLE_UPDATED, REQUIRES_CAPTURE, SUCCEEDED):
            await self.issue_queue.open_issue(
                ReconciliationKindEnum.ORPHAN_AUTHORIZATION,
                authorization_id=authorization_id,
                provider_amount=int(read_field(event.data, "amount", 0)),
                details={"event_id": event.id, "event_type": event.type},
            )
        return WebhookOutcome(event.id, event.type, WebhookResultEnum.UNMATCHED)

    async def _stale(
        self,
        event: WebhookEvent,
        booking: Booking,
        kind: ReconciliationKindEnum = ReconciliationKindEnum.STALE_EVENT_IGNORED,
    ) -> WebhookOutcome:
        detail = f"booking already {booking.status}"
        logger.warning(
            "Stale webhook event id=%s type=%s for booking %s: %s",
            event.id,
            event.type,
            booking.id,
            detail,
        )
        await self.issue_queue.open_issue(
            kind,
            booking_id=booking.id,
            authorization_id=booking.authorization_id,
            expected_amount=booking.amount_authorized,
            provider_amount=int(read_field(event.data, "amount", 0)),
            details={"event_id": event.id, "event_type": event.type, "booking_status": str(booking.status)},
        )
        return WebhookOutcome(event.id, event.type, WebhookResultEnum.STALE, booking.id, detail)

    @staticmethod
    def _record(outcome: WebhookOutcome) -> WebhookOutcome:
        WEBHOOK_EVENTS_TOTAL.labels(event_type=outcome.event_type, result=str(outcome.result)).inc()
        return outcome

    async def _emit(self, booking: Booking, event_type: str, **extra) -> None:
        await self.audit_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type=event_type,
            payload=booking_event_payload(booking, source="webhook", **extra),
        )

    async def _on_capturable(self, event: WebhookEvent, booking: Booking) -> WebhookOutcome:
        if booking.status in _DEAD:
            return await self._stale(event, booking, ReconciliationKindEnum.ORPHAN_AUTHORIZATION)
        if booking.status not in _HOLDING:
            return await self._stale(event, booking)

        changed = False
        if booking.authorization_status != AuthorizationStatusEnum.REQUIRES_CAPTURE:
            booking.authorization_status = AuthorizationStatusEnum.REQUIRES_CAPTURE
            changed = True
        if booking.status in _PRE_SERVICE:
            capturable = int(read_field(event.data, "amount_capturable", read_field(event.data, "amount", 0)))
            if capturable > booking.amount_authorized:
                booking.amount_authorized = capturable
                changed = True
        if booking.status == BookingStatusEnum.PENDING_PAYMENT:
            transition(booking, BookingStatusEnum.AUTHORIZED)
            changed = True

        result = WebhookResultEnum.APPLIED if changed else WebhookResultEnum.NOOP
        return WebhookOutcome(event.id, event.type, result, booking.id)

    async def _on_succeeded(self, event: WebhookEvent, booking: Booking) -> WebhookOutcome:
        amount_received = int(read_field(event.data, "amount_received", 0))

        if booking.status in _DEAD:
            return await self._stale(event, booking, ReconciliationKindEnum.ORPHAN_AUTHORIZATION)
        if booking.status in _FINISHED:
            if booking.authorization_status == AuthorizationStatusEnum.SUCCEEDED and booking.amount_captured is not None:
                return WebhookOutcome(event.id, event.type, WebhookResultEnum.NOOP, booking.id)
            booking.authorization_status = AuthorizationStatusEnum.SUCCEEDED
            if booking.amount_captured is None:
                booking.amount_captured = amount_received
            return WebhookOutcome(event.id, event.type, WebhookResultEnum.APPLIED, booking.id)
        if booking.status != BookingStatusEnum.IN_PROGRESS:
            # Captured before the service was checked out; nothing local explains it.
            return await self._stale(event, booking, ReconciliationKindEnum.CAPTURE_AMOUNT_MISMATCH)

        transition(booking, BookingStatusEnum.COMPLETED)
        booking.authorization_status = AuthorizationStatusEnum.SUCCEEDED
        booking.amount_captured = amount_received
        if booking.completed_at is None:
            booking.completed_at = utc_now()
        await self._emit(booking, "booking.completed", amount_captured=amount_received, currency=booking.currency)
        return WebhookOutcome(event.id, event.type, WebhookResultEnum.APPLIED, booking.id)

    async def _on_canceled(self, event: WebhookEvent, booking: Booking) -> WebhookOutcome:
        if booking.status == BookingStatusEnum.CANCELED:
            if booking.authorization_status == AuthorizationStatusEnum.CANCELED:
                return WebhookOutcome(event.id, event.type, WebhookResultEnum.NOOP, booking.id)
            booking.authorization_status = AuthorizationStatusEnum.CANCELED
            return WebhookOutcome(event.id, event.type, WebhookResultEnum.APPLIED, booking.id)
        if booking.status == BookingStatusEnum.PAYMENT_FAILED:
            return WebhookOutcome(event.id, event.type, WebhookResultEnum.NOOP, booking.id)
        if booking.status not in (*_PRE_SERVICE, BookingStatusEnum.CONFIRMED):
            return await self._stale(event, booking)

        transition(booking, BookingStatusEnum.CANCELED)
        booking.authorization_status = AuthorizationStatusEnum.CANCELED
        booking.canceled_at = utc_now()
        booking.canceled_by = CancellationInitiatorEnum.SYSTEM
        booking.cancellation_reason = read_field(event.data, "cancellation_reason") or "Payment authorization canceled"
        await self._emit(booking, "booking.canceled", reason=booking.cancellation_reason, canceled_by="system")
        return WebhookOutcome(event.id, event.type, WebhookResultEnum.APPLIED, booking.id)

    async def _on_payment_failed(self, event: WebhookEvent, booking: Booking) -> WebhookOutcome:
        if booking.status == BookingStatusEnum.PAYMENT_FAILED:
            return WebhookOutcome(event.id, event.type, WebhookResultEnum.NOOP, booking.id)
        if booking.status not in _PRE_SERVICE:
            return await self._stale(event, booking)

        transition(booking, BookingStatusEnum.PAYMENT_FAILED)
        booking.authorization_status = AuthorizationStatusEnum.FAILED
        await self._emit(booking, "booking.payment_failed")
        return WebhookOutcome(event.id, event.type, WebhookResultEnum.APPLIED, booking.id)

    async def _on_refunded(self, event: WebhookEvent, booking: Booking) -> WebhookOutcome:
        if booking.authorization_status == AuthorizationStatusEnum.REFUNDED:
            return WebhookOutcome(event.id, event.type, WebhookResultEnum.NOOP, booking.id)
        booking.authorization_status = AuthorizationStatusEnum.REFUNDED
        return WebhookOutcome(event.id, event.type, WebhookResultEnum.APPLIED, booking.id)


async def get_webhook_processor(
    session: AsyncSession = Depends(get_db_session),
    issue_queue: ReconciliationQueue = Depends(get_reconciliation_queue),
) -> WebhookProcessor:
    """Dependency provider for webhook processor."""
    return WebhookProcessor(BookingRepository(session), AuditRepository(session), issue_queue)
