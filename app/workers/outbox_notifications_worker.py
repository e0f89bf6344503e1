"""Executable worker that turns booking and dispute events into notifications."""

from __future__ import annotations

import asyncio
import logging

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.modules.audit.repository import AuditRepository
from app.modules.notifications.outbox_worker import NotificationsOutboxWorker
from app.modules.notifications.repository import NotificationsRepository

logger = logging.getLogger(__name__)
settings = get_settings()


async def run_cycle() -> dict[str, int]:
    """Run a single outbox processing cycle in one DB transaction."""
    async with SessionLocal() as session:
        worker = NotificationsOutboxWorker(
            audit_repository=AuditRepository(session),
            notifications_repository=NotificationsRepository(session),
            batch_size=settings.outbox_worker_batch_size,
            max_retries=settings.outbox_worker_max_retries,
            base_backoff_seconds=settings.outbox_worker_base_backoff_seconds,
            max_backoff_seconds=settings.outbox_worker_max_backoff_seconds,
        )
        stats = await worker.run_once()
        await session.commit()
        return stats


async def main() -> None:
    """Run once or keep polling, depending on OUTBOX_WORKER_MODE."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    mode = settings.outbox_worker_mode.strip().lower()

    if mode == "once":
        stats = await run_cycle()
        logger.info("Outbox notifications worker stats: %s", stats)
        return

    while True:
        try:
            stats = await run_cycle()
            logger.info("Outbox notifications worker stats: %s", stats)
        except Exception:
            logger.exception("Outbox notifications worker cycle failed")
        await asyncio.sleep(settings.outbox_worker_poll_seconds)


if __name__ == "__main__":
    asyncio.run(main())
