"""
Script to re-key Teams conversation rows by UPN.

Rows written before UPNs were used as the row key are keyed by the AAD
object id or Teams user id. This rewrites each of them under its UPN so
proactive messages can find them.

Usage:
    python scripts/migrate_conversations.py
"""

import asyncio
import logging
import sys

from attendance_bot.config import configure_logging, get_settings
from attendance_bot.storage import ConversationStore, TableStore
from attendance_bot.storage.conversations import TABLE_NAME

logger = logging.getLogger(__name__)


async def main():
    """Migrate legacy conversation rows."""
    logger.info("Starting conversation migration...")

    settings = get_settings()
    table = TableStore(settings.require_storage_connection_string(), TABLE_NAME)
    try:
        migrated = await ConversationStore(table).import_legacy_rows()
        logger.info(f"Migration complete: {migrated} rows re-keyed")
    finally:
        await table.close()


if __name__ == "__main__":
    configure_logging()
    try:
        asyncio.run(main())
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        sys.exit(1)
