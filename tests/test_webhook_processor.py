from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest

from app.core.enums import (
    AuthorizationStatusEnum,
    BookingStatusEnum,
    CancellationInitiatorEnum,
    ReconciliationKindEnum,
    WebhookResultEnum,
)
from app.modules.reconciliation.queue import ReconciliationQueue
from app.modules.webhooks.processor import WebhookEvent, WebhookProcessor


@dataclass
class FakeBooking:
    id: UUID
    customer_id: UUID
    professional_id: UUID
    status: BookingStatusEnum
    authorization_id: str | None
    authorization_status: AuthorizationStatusEnum | None
    scheduled_start: datetime = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)
    service_name: str = "Deep cleaning"
    currency: str = "COP"
    amount_authorized: int = 100_000
    amount_captured: int | None = None
    completed_at: datetime | None = None
    canceled_at: datetime | None = None
    canceled_by: CancellationInitiatorEnum | None = None
    cancellation_reason: str | None = None


class FakeBookingRepository:
    def __init__(self, bookings: list[FakeBooking]) -> None:
        self.bookings = bookings
        self.saves = 0

    async def get_booking_by_authorization_id(self, authorization_id: str, *, for_update: bool = False):
        return next((b for b in self.bookings if b.authorization_id == authorization_id), None)

    async def get_booking_by_id(self, booking_id: UUID, *, for_update: bool = False):
        return next((b for b in self.bookings if b.id == booking_id), None)

    async def save(self, booking: FakeBooking) -> FakeBooking:
        self.saves += 1
        return booking


class FakeIssueQueue:
    def __init__(self) -> None:
        self.issues: list[dict[str, Any]] = []

    async def open_issue(self, kind: ReconciliationKindEnum, **fields: Any) -> UUID:
        self.issues.append({"kind": kind, **fields})
        return uuid4()


class NullSession:
    async def __aenter__(self) -> NullSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    def begin(self) -> NullSession:
        return self


class InMemoryIssueRepository:
    def __init__(self) -> None:
        self.rows: list[SimpleNamespace] = []

    async def find_open_issue_for_event(self, kind: ReconciliationKindEnum, event_id: str) -> SimpleNamespace | None:
        return next((r for r in self.rows if r.kind == kind and r.details.get("event_id") == event_id), None)

    async def create_issue(self, **fields: Any) -> SimpleNamespace:
        row = SimpleNamespace(id=uuid4(), **fields)
        self.rows.append(row)
        return row


class FakeAuditRepository:
    def __init__(self) -> None:
        self.events: list[str] = []

    async def create_outbox_event(self, aggregate_type: str, aggregate_id: str, event_type: str, payload: dict) -> None:
        self.events.append(event_type)


def make_booking(
    status: BookingStatusEnum,
    authorization_status: AuthorizationStatusEnum | None = AuthorizationStatusEnum.REQUIRES_CAPTURE,
    authorization_id: str | None = "pi_123",
    **overrides: Any,
) -> FakeBooking:
    return FakeBooking(
        id=uuid4(),
        customer_id=uuid4(),
        professional_id=uuid4(),
        status=status,
        authorization_id=authorization_id,
        authorization_status=authorization_status,
        **overrides,
    )


def build(*bookings: FakeBooking):
    repository = FakeBookingRepository(list(bookings))
    queue = FakeIssueQueue()
    audit = FakeAuditRepository()
    processor = WebhookProcessor(repository, audit, queue)  # type: ignore[arg-type]
    return processor, repository, queue, audit


def event(event_type: str, **data: Any) -> WebhookEvent:
    payload = {
        "id": f"evt_{uuid4().hex[:10]}",
        "type": event_type,
        "data": {"object": {"id": "pi_123", "amount": 100_000, **data}},
    }
    return WebhookEvent.from_payload(payload)


@pytest.mark.asyncio
async def test_capturable_event_authorizes_pending_booking() -> None:
    booking = make_booking(BookingStatusEnum.PENDING_PAYMENT, AuthorizationStatusEnum.REQUIRES_ACTION)
    processor, repository, _, _ = build(booking)

    outcome = await processor.apply(
        event("payment_intent.amount_capturable_updated", amount_capturable=100_000, status="requires_capture"),
    )

    assert outcome.result == WebhookResultEnum.APPLIED
    assert booking.status == BookingStatusEnum.AUTHORIZED
    assert booking.authorization_status == AuthorizationStatusEnum.REQUIRES_CAPTURE
    assert repository.saves == 1


@pytest.mark.asyncio
async def test_replayed_event_is_noop() -> None:
    booking = make_booking(BookingStatusEnum.PENDING_PAYMENT, AuthorizationStatusEnum.REQUIRES_ACTION)
    processor, repository, _, _ = build(booking)
    delivered = event("payment_intent.amount_capturable_updated", amount_capturable=100_000)

    first = await processor.apply(delivered)
    second = await processor.apply(delivered)

    assert first.result == WebhookResultEnum.APPLIED
    assert second.result == WebhookResultEnum.NOOP
    assert repository.saves == 1


@pytest.mark.asyncio
async def test_succeeded_after_completion_is_noop() -> None:
    booking = make_booking(
        BookingStatusEnum.COMPLETED,
        AuthorizationStatusEnum.SUCCEEDED,
        amount_captured=100_000,
        completed_at=datetime(2026, 10, 18, 9, 0, tzinfo=UTC),
    )
    processor, _, queue, audit = build(booking)

    outcome = await processor.apply(event("payment_intent.succeeded", amount_received=100_000))

    assert outcome.result == WebhookResultEnum.NOOP
    assert booking.status == BookingStatusEnum.COMPLETED
    assert queue.issues == []
    assert audit.events == []


@pytest.mark.asyncio
async def test_succeeded_completes_in_progress_booking() -> None:
    booking = make_booking(BookingStatusEnum.IN_PROGRESS)
    processor, _, _, audit = build(booking)

    outcome = await processor.apply(event("payment_intent.succeeded", amount_received=100_000))

    assert outcome.result == WebhookResultEnum.APPLIED
    assert booking.status == BookingStatusEnum.COMPLETED
    assert booking.amount_captured == 100_000
    assert booking.completed_at is not None
    assert audit.events == ["booking.completed"]


@pytest.mark.asyncio
async def test_canceled_after_completion_is_stale() -> None:
    booking = make_booking(BookingStatusEnum.COMPLETED, AuthorizationStatusEnum.SUCCEEDED, amount_captured=100_000)
    processor, repository, queue, _ = build(booking)

    outcome = await processor.apply(event("payment_intent.canceled"))

    assert outcome.result == WebhookResultEnum.STALE
    assert booking.status == BookingStatusEnum.COMPLETED
    assert queue.issues[0]["kind"] == ReconciliationKindEnum.STALE_EVENT_IGNORED
    assert repository.saves == 0


@pytest.mark.asyncio
async def test_redelivered_stale_event_opens_one_issue() -> None:
    booking = make_booking(BookingStatusEnum.COMPLETED, AuthorizationStatusEnum.SUCCEEDED, amount_captured=100_000)
    issues = InMemoryIssueRepository()
    queue = ReconciliationQueue(NullSession, lambda session: issues)  # type: ignore[arg-type]
    processor = WebhookProcessor(FakeBookingRepository([booking]), FakeAuditRepository(), queue)  # type: ignore[arg-type]
    delivered = event("payment_intent.canceled")

    outcomes = [await processor.apply(delivered) for _ in range(3)]

    assert [outcome.result for outcome in outcomes] == [WebhookResultEnum.STALE] * 3
    assert len(issues.rows) == 1
    assert issues.rows[0].kind == ReconciliationKindEnum.STALE_EVENT_IGNORED
    assert issues.rows[0].details["event_id"] == delivered.id
    assert booking.status == BookingStatusEnum.COMPLETED


@pytest.mark.asyncio
async def test_canceled_event_cancels_confirmed_booking() -> None:
    booking = make_booking(BookingStatusEnum.CONFIRMED)
    processor, _, _, audit = build(booking)

    outcome = await processor.apply(event("payment_intent.canceled", cancellation_reason="abandoned"))

    assert outcome.result == WebhookResultEnum.APPLIED
    assert booking.status == BookingStatusEnum.CANCELED
    assert booking.canceled_by == CancellationInitiatorEnum.SYSTEM
    assert booking.cancellation_reason == "abandoned"
    assert audit.events == ["booking.canceled"]


@pytest.mark.asyncio
async def test_capturable_on_canceled_booking_is_flagged_as_orphan() -> None:
    booking = make_booking(BookingStatusEnum.CANCELED, AuthorizationStatusEnum.CANCELED)
    processor, _, queue, _ = build(booking)

    outcome = await processor.apply(event("payment_intent.amount_capturable_updated", amount_capturable=100_000))

    assert outcome.result == WebhookResultEnum.STALE
    assert booking.status == BookingStatusEnum.CANCELED
    assert queue.issues[0]["kind"] == ReconciliationKindEnum.ORPHAN_AUTHORIZATION
    assert queue.issues[0]["booking_id"] == booking.id


@pytest.mark.asyncio
async def test_unmatched_authorization_opens_orphan_issue() -> None:
    processor, _, queue, _ = build()

    outcome = await processor.apply(event("payment_intent.amount_capturable_updated", amount=75_000))

    assert outcome.result == WebhookResultEnum.UNMATCHED
    (issue,) = queue.issues
    assert issue["kind"] == ReconciliationKindEnum.ORPHAN_AUTHORIZATION
    assert issue["authorization_id"] == "pi_123"
    assert issue["provider_amount"] == 75_000


@pytest.mark.asyncio
async def test_unmatched_failure_does_not_open_issue() -> None:
    processor, _, queue, _ = build()

    outcome = await processor.apply(event("payment_intent.payment_failed"))

    assert outcome.result == WebhookResultEnum.UNMATCHED
    assert queue.issues == []


@pytest.mark.asyncio
async def test_metadata_booking_id_adopts_authorization() -> None:
    booking = make_booking(BookingStatusEnum.PAYMENT_FAILED, AuthorizationStatusEnum.FAILED, authorization_id=None)
    processor, _, queue, _ = build(booking)

    outcome = await processor.apply(
        event("payment_intent.amount_capturable_updated", metadata={"booking_id": str(booking.id)}),
    )

    assert booking.authorization_id == "pi_123"
    assert outcome.booking_id == booking.id
    assert outcome.result == WebhookResultEnum.STALE
    assert queue.issues[0]["kind"] == ReconciliationKindEnum.ORPHAN_AUTHORIZATION


@pytest.mark.asyncio
async def test_payment_failed_moves_pending_booking() -> None:
    booking = make_booking(BookingStatusEnum.PENDING_PAYMENT, AuthorizationStatusEnum.REQUIRES_ACTION)
    processor, _, _, audit = build(booking)

    outcome = await processor.apply(event("payment_intent.payment_failed"))

    assert outcome.result == WebhookResultEnum.APPLIED
    assert booking.status == BookingStatusEnum.PAYMENT_FAILED
    assert audit.events == ["booking.payment_failed"]


@pytest.mark.asyncio
async def test_charge_refunded_marks_authorization_refunded() -> None:
    booking = make_booking(BookingStatusEnum.COMPLETED, AuthorizationStatusEnum.SUCCEEDED, amount_captured=100_000)
    processor, _, _, _ = build(booking)
    refund = WebhookEvent.from_payload(
        {"id": "evt_refund", "type": "charge.refunded", "data": {"object": {"id": "ch_1", "payment_intent": "pi_123"}}},
    )

    outcome = await processor.apply(refund)

    assert outcome.result == WebhookResultEnum.APPLIED
    assert booking.authorization_status == AuthorizationStatusEnum.REFUNDED
    assert booking.status == BookingStatusEnum.COMPLETED


@pytest.mark.asyncio
async def test_unsupported_event_type_is_ignored() -> None:
    processor, _, queue, _ = build()

    outcome = await processor.apply(event("customer.created"))

    assert outcome.result == WebhookResultEnum.IGNORED
    assert queue.issues == []
