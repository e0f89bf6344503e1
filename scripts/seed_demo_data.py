"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.enums import RoleEnum
from app.core.security import create_access_token
from app.modules.professionals.repository import ProfessionalsRepository

# Fixed ids keep the seed idempotent and the printed tokens stable across runs.
DEMO_ADMIN_ID = UUID("00000000-0000-4000-8000-000000000001")
DEMO_PROFESSIONAL_ID = UUID("00000000-0000-4000-8000-000000000002")
DEMO_CUSTOMER_ID = UUID("00000000-0000-4000-8000-000000000003")

DEMO_HOURLY_RATE = 50_000
DEMO_WORKING_HOURS = {
    weekday: [{"start": "08:00", "end": "12:00"}, {"start": "13:00", "end": "18:00"}]
    for weekday in ("monday", "tuesday", "wednesday", "thursday", "friday")
}
DEMO_WORKING_HOURS["saturday"] = [{"start": "09:00", "end": "13:00"}]
DEMO_BLOCKED_DAY_OFFSET = 7


@dataclass(slots=True)
class SeedStats:
    profile_created: bool = False
    blocked_date_created: bool = False
    blocked_on: str | None = None


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()
    blocked_on = (datetime.now(UTC) + timedelta(days=DEMO_BLOCKED_DAY_OFFSET)).date()
    stats.blocked_on = blocked_on.isoformat()

    async with SessionLocal() as session:
        try:
            repository = ProfessionalsRepository(session)
            profile = await repository.get_profile(DEMO_PROFESSIONAL_ID)
            fields = {
                "display_name": "Demo Cleaning Professional",
                "hourly_rate": DEMO_HOURLY_RATE,
                "currency": settings.booking_default_currency,
                "working_hours": DEMO_WORKING_HOURS,
                "buffer_time_minutes": settings.default_buffer_time_minutes,
                "max_bookings_per_day": settings.default_max_bookings_per_day,
                "advance_booking_days": settings.default_advance_booking_days,
                "is_accepting_bookings": True,
            }
            if profile is None:
                await repository.create_profile(DEMO_PROFESSIONAL_ID, **fields)
                stats.profile_created = True
            else:
                await repository.update_profile(profile, **fields)

            if await repository.get_blocked_date(DEMO_PROFESSIONAL_ID, blocked_on) is None:
                await repository.add_blocked_date(DEMO_PROFESSIONAL_ID, blocked_on, "Demo day off")
                stats.blocked_date_created = True

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Seed idempotent demo data (professional profile, working hours, a blocked day).",
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Professional profile created: {stats.profile_created}")
    print(f"- Blocked date {stats.blocked_on} created: {stats.blocked_date_created}")
    print("")
    print("Demo bearer tokens (non-production only):")
    print(f"- admin:        {create_access_token(str(DEMO_ADMIN_ID), RoleEnum.ADMIN)}")
    print(f"- professional: {create_access_token(str(DEMO_PROFESSIONAL_ID), RoleEnum.PROFESSIONAL)}")
    print(f"- customer:     {create_access_token(str(DEMO_CUSTOMER_ID), RoleEnum.CUSTOMER)}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
