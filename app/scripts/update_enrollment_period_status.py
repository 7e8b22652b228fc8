"""
Activate enrollment periods whose start date has arrived and close active periods past their end date.

Idempotent; intended for a daily cron.
Usage: python -m app.scripts.update_enrollment_period_status [--dry-run]
"""

import argparse
import asyncio
from datetime import date
from typing import Optional

from app.api.v1.enrollment_periods import service as period_service
from app.core.logging import configure_logging
from app.db.session import AsyncSessionLocal


async def update_enrollment_period_status(dry_run: bool = False, today: Optional[date] = None) -> None:
    async with AsyncSessionLocal() as session:
        activated, closed = await period_service.sync_period_statuses(session, today=today, dry_run=dry_run)
    prefix = "[dry run] would have " if dry_run else ""
    print(f"{prefix}activated {activated} period(s), closed {closed} period(s).")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Update enrollment period statuses based on dates.")
    parser.add_argument("--dry-run", action="store_true", help="Show what would change without saving")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Reference date (YYYY-MM-DD)")
    args = parser.parse_args(argv)
    configure_logging()
    asyncio.run(update_enrollment_period_status(dry_run=args.dry_run, today=args.date))


if __name__ == "__main__":
    main()
