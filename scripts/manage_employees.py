"""
Script to maintain the employee number / UPN map.

Usage:
    python scripts/manage_employees.py list
    python scripts/manage_employees.py add <upn> <employee_number> [--name NAME]
    python scripts/manage_employees.py remove <upn>
"""

import argparse
import asyncio
import logging
import sys

from attendance_bot.config import configure_logging, get_settings
from attendance_bot.storage import IdentityMap, TableStore
from attendance_bot.storage.identity_map import TABLE_NAME

logger = logging.getLogger(__name__)


async def main(args: argparse.Namespace) -> None:
    """Run one employee map action."""
    settings = get_settings()
    table = TableStore(settings.require_storage_connection_string(), TABLE_NAME)
    identity_map = IdentityMap(table)

    try:
        if args.action == "add":
            await identity_map.upsert(args.upn, args.employee_number, display_name=args.name)
        elif args.action == "remove":
            if not await identity_map.delete(args.upn):
                logger.warning(f"No mapping for {args.upn}")
        else:
            for upn, entry in (await identity_map.resolve_all()).items():
                print(f"{entry.subject_id}\t{upn}\t{entry.display_name or ''}")
    finally:
        await table.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Maintain the employee map")
    subparsers = parser.add_subparsers(dest="action", required=True)

    subparsers.add_parser("list")

    add = subparsers.add_parser("add")
    add.add_argument("upn")
    add.add_argument("employee_number")
    add.add_argument("--name")

    remove = subparsers.add_parser("remove")
    remove.add_argument("upn")

    configure_logging()
    try:
        asyncio.run(main(parser.parse_args()))
    except Exception as e:
        logger.error(f"Employee map update failed: {e}", exc_info=True)
        sys.exit(1)
