from __future__ import annotations

from uuid import uuid4

import pytest

from app.core.enums import RoleEnum
from app.core.security import Actor
from app.modules.audit.service import AuditService
from app.shared.exceptions import UnauthorizedException


class FakeAuditRepository:
    def __init__(self) -> None:
        self.log_queries: list[dict] = []

    async def list_audit_logs(self, **filters):
        self.log_queries.append(filters)
        return [], 0

    async def list_pending_outbox(self, limit: int):
        return []


@pytest.mark.asyncio
async def test_admin_lists_logs_for_one_entity() -> None:
    repository = FakeAuditRepository()
    service = AuditService(repository)  # type: ignore[arg-type]
    booking_id = str(uuid4())

    items, total = await service.list_logs(Actor(id=uuid4(), role=RoleEnum.ADMIN), 20, 0, "booking", booking_id)

    assert (items, total) == ([], 0)
    assert repository.log_queries == [
        {"limit": 20, "offset": 0, "entity_type": "booking", "entity_id": booking_id, "action": None},
    ]


@pytest.mark.parametrize("role", [RoleEnum.CUSTOMER, RoleEnum.PROFESSIONAL])
@pytest.mark.asyncio
async def test_audit_trail_is_admin_only(role: RoleEnum) -> None:
    service = AuditService(FakeAuditRepository())  # type: ignore[arg-type]
    actor = Actor(id=uuid4(), role=role)

    with pytest.raises(UnauthorizedException):
        await service.list_logs(actor, 20, 0)
    with pytest.raises(UnauthorizedException):
        await service.list_pending_outbox(actor, limit=10)


@pytest.mark.asyncio
async def test_admin_filters_logs_by_action() -> None:
    repository = FakeAuditRepository()
    service = AuditService(repository)  # type: ignore[arg-type]

    await service.list_logs(Actor(id=uuid4(), role=RoleEnum.ADMIN), 50, 0, action="dispute.resolved")

    assert repository.log_queries[0]["action"] == "dispute.resolved"
    assert repository.log_queries[0]["entity_type"] is None
