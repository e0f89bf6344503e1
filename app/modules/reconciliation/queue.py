"""Operator queue writer that outlives the caller's transaction.

Issues are opened right before the caller raises, and the request session is
then rolled back. Each issue is therefore written through its own session and
committed immediately.

Issues raised for a provider event carry its ``event_id`` in ``details``. At most
one open issue exists per kind and event, so redeliveries of the same event do
not pile up in the queue.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import SessionLocal, is_constraint_violation
from app.core.enums import ReconciliationKindEnum
from app.core.metrics import RECONCILIATION_ISSUES_TOTAL
from app.modules.reconciliation.models import OPEN_EVENT_ISSUE_INDEX
from app.modules.reconciliation.repository import ReconciliationRepository

logger = logging.getLogger(__name__)

_INFORMATIONAL_KINDS = frozenset({ReconciliationKindEnum.STALE_EVENT_IGNORED})


class ReconciliationQueue:
    """Open reconciliation issues in an independent transaction."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_factory: Callable[[AsyncSession], ReconciliationRepository] = ReconciliationRepository,
    ) -> None:
        self.session_factory = session_factory
        self.repository_factory = repository_factory

    async def _open_for_event(self, kind: ReconciliationKindEnum, event_id: str) -> UUID | None:
        async with self.session_factory() as session:
            issue = await self.repository_factory(session).find_open_issue_for_event(kind, event_id)
            return issue.id if issue is not None else None

    async def open_issue(
        self,
        kind: ReconciliationKindEnum,
        *,
        booking_id: UUID | None = None,
        authorization_id: str | None = None,
        expected_amount: int | None = None,
        provider_amount: int | None = None,
        details: dict | None = None,
    ) -> UUID:
        details = details or {}
        event_id = str(details["event_id"]) if details.get("event_id") else None
        if event_id is not None:
            existing_id = await self._open_for_event(kind, event_id)
            if existing_id is not None:
                logger.info("Reconciliation issue %s already open for event %s kind=%s", existing_id, event_id, kind)
                return existing_id

        try:
            async with self.session_factory() as session, session.begin():
                issue = await self.repository_factory(session).create_issue(
                    kind=kind,
                    booking_id=booking_id,
                    authorization_id=authorization_id,
                    expected_amount=expected_amount,
                    provider_amount=provider_amount,
                    details=details,
                )
                issue_id = issue.id
        except IntegrityError as exc:
            # A concurrent delivery of the same event won the insert.
            if event_id is None or not is_constraint_violation(exc, OPEN_EVENT_ISSUE_INDEX):
                raise
            existing_id = await self._open_for_event(kind, event_id)
            if existing_id is None:
                raise
            logger.info("Reconciliation issue %s already open for event %s kind=%s", existing_id, event_id, kind)
            return existing_id

        RECONCILIATION_ISSUES_TOTAL.labels(kind=str(kind)).inc()
        log = logger.warning if kind in _INFORMATIONAL_KINDS else logger.error
        log(
            "Reconciliation issue opened id=%s kind=%s booking_id=%s authorization_id=%s expected=%s provider=%s",
            issue_id,
            kind,
            booking_id,
            authorization_id,
            expected_amount,
            provider_amount,
        )
        return issue_id


def get_reconciliation_queue() -> ReconciliationQueue:
    """Dependency provider for the reconciliation queue."""
    return ReconciliationQueue(SessionLocal)
