from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import IntegrityError

import app.modules.reconciliation.service as reconciliation_service_module
from app.core.enums import ReconciliationKindEnum, ReconciliationStatusEnum, RoleEnum
from app.core.security import Actor
from app.modules.reconciliation.queue import ReconciliationQueue
from app.modules.reconciliation.service import ReconciliationService
from app.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


class FakeTransaction:
    def __init__(self, session: FakeSession) -> None:
        self.session = session

    async def __aenter__(self) -> FakeTransaction:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.session.committed = True


class FakeSession:
    def __init__(self) -> None:
        self.added: list[Any] = []
        self.committed = False
        self.closed = False

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    def begin(self) -> FakeTransaction:
        return FakeTransaction(self)

    def add(self, instance: Any) -> None:
        self.added.append(instance)

    async def flush(self) -> None:
        for instance in self.added:
            if instance.id is None:
                instance.id = uuid4()


class FakeSessionFactory:
    def __init__(self) -> None:
        self.sessions: list[FakeSession] = []

    def __call__(self) -> FakeSession:
        session = FakeSession()
        self.sessions.append(session)
        return session


@dataclass
class FakeIssue:
    id: UUID
    kind: ReconciliationKindEnum
    booking_id: UUID | None
    status: ReconciliationStatusEnum = ReconciliationStatusEnum.OPEN
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    details: dict = field(default_factory=dict)


class FakeReconciliationRepository:
    def __init__(self, issues: list[FakeIssue]) -> None:
        self.issues = {issue.id: issue for issue in issues}

    async def get_issue(self, issue_id: UUID) -> FakeIssue | None:
        return self.issues.get(issue_id)

    async def resolve_issue(self, issue: FakeIssue, resolved_by, resolved_at, notes) -> FakeIssue:
        issue.status = ReconciliationStatusEnum.RESOLVED
        issue.resolved_by = resolved_by
        issue.resolved_at = resolved_at
        issue.resolution_notes = notes
        return issue

    async def list_issues(self, status, kind, limit, offset):
        items = [
            issue
            for issue in self.issues.values()
            if (status is None or issue.status == status) and (kind is None or issue.kind == kind)
        ]
        return items[offset : offset + limit], len(items)


class InMemoryIssueRepository:
    """Issue table shared by every session the queue opens."""

    def __init__(self, rows: list[SimpleNamespace], lose_race_to: SimpleNamespace | None = None) -> None:
        self.rows = rows
        self.lose_race_to = lose_race_to

    def __call__(self, session: Any) -> InMemoryIssueRepository:
        return self

    async def find_open_issue_for_event(self, kind: ReconciliationKindEnum, event_id: str) -> SimpleNamespace | None:
        return next(
            (
                row
                for row in self.rows
                if row.kind == kind
                and row.details.get("event_id") == event_id
                and row.status == ReconciliationStatusEnum.OPEN
            ),
            None,
        )

    async def create_issue(self, **fields: Any) -> SimpleNamespace:
        if self.lose_race_to is not None:
            self.rows.append(self.lose_race_to)
            self.lose_race_to = None
            raise IntegrityError(
                "INSERT INTO reconciliation_issues",
                {},
                Exception('duplicate key value violates unique constraint "uq_reconciliation_issues_open_event"'),
            )
        row = SimpleNamespace(id=uuid4(), status=ReconciliationStatusEnum.OPEN, **fields)
        self.rows.append(row)
        return row


class FakeAuditRepository:
    def __init__(self) -> None:
        self.logs: list[dict[str, Any]] = []

    async def create_audit_log(self, **fields: Any) -> None:
        self.logs.append(fields)


@pytest.mark.asyncio
async def test_queue_commits_issue_in_its_own_session() -> None:
    factory = FakeSessionFactory()
    queue = ReconciliationQueue(factory)  # type: ignore[arg-type]
    booking_id = uuid4()

    issue_id = await queue.open_issue(
        ReconciliationKindEnum.EXTENSION_PERSIST_FAILED,
        booking_id=booking_id,
        authorization_id="pi_1",
        expected_amount=125_000,
        provider_amount=125_000,
        details={"time_extension_minutes": 30},
    )

    (session,) = factory.sessions
    assert session.committed is True
    assert session.closed is True
    (issue,) = session.added
    assert issue.id == issue_id
    assert issue.kind == ReconciliationKindEnum.EXTENSION_PERSIST_FAILED
    assert issue.status == ReconciliationStatusEnum.OPEN
    assert issue.booking_id == booking_id
    assert issue.details == {"time_extension_minutes": 30}


@pytest.mark.asyncio
async def test_queue_defaults_details_to_empty_mapping() -> None:
    factory = FakeSessionFactory()
    queue = ReconciliationQueue(factory)  # type: ignore[arg-type]

    await queue.open_issue(ReconciliationKindEnum.ORPHAN_AUTHORIZATION, authorization_id="pi_orphan")

    assert factory.sessions[0].added[0].details == {}


@pytest.mark.asyncio
async def test_redelivered_event_reuses_open_issue() -> None:
    rows: list[SimpleNamespace] = []
    queue = ReconciliationQueue(FakeSessionFactory(), InMemoryIssueRepository(rows))  # type: ignore[arg-type]
    details = {"event_id": "evt_stale", "event_type": "payment_intent.canceled"}

    first = await queue.open_issue(ReconciliationKindEnum.STALE_EVENT_IGNORED, details=details)
    second = await queue.open_issue(ReconciliationKindEnum.STALE_EVENT_IGNORED, details=dict(details))
    other_kind = await queue.open_issue(ReconciliationKindEnum.ORPHAN_AUTHORIZATION, details=dict(details))

    assert first == second
    assert other_kind != first
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_resolved_issue_does_not_absorb_new_delivery() -> None:
    rows: list[SimpleNamespace] = []
    queue = ReconciliationQueue(FakeSessionFactory(), InMemoryIssueRepository(rows))  # type: ignore[arg-type]
    details = {"event_id": "evt_again"}

    first = await queue.open_issue(ReconciliationKindEnum.STALE_EVENT_IGNORED, details=details)
    rows[0].status = ReconciliationStatusEnum.RESOLVED
    second = await queue.open_issue(ReconciliationKindEnum.STALE_EVENT_IGNORED, details=details)

    assert second != first
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_concurrent_insert_of_same_event_returns_winner() -> None:
    winner = SimpleNamespace(
        id=uuid4(),
        kind=ReconciliationKindEnum.STALE_EVENT_IGNORED,
        status=ReconciliationStatusEnum.OPEN,
        details={"event_id": "evt_race"},
    )
    rows: list[SimpleNamespace] = []
    queue = ReconciliationQueue(FakeSessionFactory(), InMemoryIssueRepository(rows, lose_race_to=winner))  # type: ignore[arg-type]

    issue_id = await queue.open_issue(ReconciliationKindEnum.STALE_EVENT_IGNORED, details={"event_id": "evt_race"})

    assert issue_id == winner.id
    assert rows == [winner]


@pytest.mark.asyncio
async def test_admin_resolves_open_issue(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(reconciliation_service_module, "utc_now", lambda: FIXED_NOW)
    issue = FakeIssue(uuid4(), ReconciliationKindEnum.CAPTURE_AMOUNT_MISMATCH, uuid4())
    audit = FakeAuditRepository()
    service = ReconciliationService(FakeReconciliationRepository([issue]), audit)  # type: ignore[arg-type]
    actor = Actor(id=uuid4(), role=RoleEnum.ADMIN)

    resolved = await service.resolve_issue(issue.id, "Captured manually in dashboard", actor)

    assert resolved.status == ReconciliationStatusEnum.RESOLVED
    assert resolved.resolved_by == actor.id
    assert resolved.resolved_at == FIXED_NOW
    assert audit.logs[0]["action"] == "reconciliation.resolved"

    with pytest.raises(ConflictException):
        await service.resolve_issue(issue.id, None, actor)


@pytest.mark.asyncio
async def test_resolve_unknown_issue_is_not_found() -> None:
    service = ReconciliationService(FakeReconciliationRepository([]), FakeAuditRepository())  # type: ignore[arg-type]

    with pytest.raises(NotFoundException):
        await service.resolve_issue(uuid4(), None, Actor(id=uuid4(), role=RoleEnum.ADMIN))


@pytest.mark.asyncio
async def test_list_issues_filters_by_kind_for_admin_only() -> None:
    issues = [
        FakeIssue(uuid4(), ReconciliationKindEnum.ORPHAN_AUTHORIZATION, None),
        FakeIssue(uuid4(), ReconciliationKindEnum.STALE_EVENT_IGNORED, uuid4()),
    ]
    service = ReconciliationService(FakeReconciliationRepository(issues), FakeAuditRepository())  # type: ignore[arg-type]

    items, total = await service.list_issues(
        Actor(id=uuid4(), role=RoleEnum.ADMIN),
        status=None,
        kind=ReconciliationKindEnum.ORPHAN_AUTHORIZATION,
        limit=10,
        offset=0,
    )
    assert total == 1
    assert items[0].kind == ReconciliationKindEnum.ORPHAN_AUTHORIZATION

    with pytest.raises(UnauthorizedException):
        await service.list_issues(Actor(id=uuid4(), role=RoleEnum.PROFESSIONAL), None, None, 10, 0)
