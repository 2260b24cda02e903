"""
Script to show which reminders were sent on a given day.

Usage:
    python scripts/show_notify_state.py [YYYY-MM-DD]

Defaults to today in the configured timezone.
"""

import argparse
import asyncio
import logging
import sys
from datetime import date
from typing import Optional

from attendance_bot.config import configure_logging, get_settings
from attendance_bot.dates import local_today
from attendance_bot.storage import NotifyStateLedger, TableStore
from attendance_bot.storage.notify_state import TABLE_NAME, NotificationKind

logger = logging.getLogger(__name__)


async def main(day: Optional[date]) -> None:
    """Print the ledger rows of one day."""
    settings = get_settings()
    day = day or local_today(settings.tz)
    table = TableStore(settings.require_storage_connection_string(), TABLE_NAME)

    try:
        states = await NotifyStateLedger(table).states_for_date(day)
        kinds = list(NotificationKind)
        print("employee\t" + "\t".join(kind.value for kind in kinds))
        for employee_number, row in sorted(states.items()):
            flags = ["x" if row.get(kind.column) else "." for kind in kinds]
            print(f"{employee_number}\t" + "\t".join(flags))
        logger.info(f"{len(states)} ledger rows for {day.isoformat()}")
    finally:
        await table.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Show sent reminders for a day")
    parser.add_argument("day", nargs="?", type=date.fromisoformat, help="Date (YYYY-MM-DD)")
    args = parser.parse_args()

    configure_logging()
    try:
        asyncio.run(main(args.day))
    except Exception as e:
        logger.error(f"Ledger listing failed: {e}", exc_info=True)
        sys.exit(1)
