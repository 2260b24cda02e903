"""
Script to manage the Flex refresh token stored in Azure Table Storage.

Seeds the first refresh token (Flex rotates it on every use afterwards),
shows what is stored, or removes it so the FLEX_REFRESH_TOKEN setting is
used again.

Prerequisites:
- AZURE_STORAGE_CONNECTION_STRING must be set
- A refresh token issued by Flex for the API user

Usage:
    python scripts/init_flex_token.py info
    python scripts/init_flex_token.py save <refresh_token>
    python scripts/init_flex_token.py delete
"""

import argparse
import asyncio
import json
import logging
import sys

from attendance_bot.config import configure_logging, get_settings
from attendance_bot.storage import RefreshTokenStore, TableStore
from attendance_bot.storage.refresh_tokens import TABLE_NAME

logger = logging.getLogger(__name__)


async def main(action: str, token: str | None = None) -> None:
    """Run one token management action."""
    settings = get_settings()
    table = TableStore(settings.require_storage_connection_string(), TABLE_NAME)
    store = RefreshTokenStore(table)

    try:
        if action == "save":
            await table.ensure_table()
            await store.save(token, updated_by="initial")
            logger.info("Refresh token saved")
        elif action == "delete":
            deleted = await store.delete()
            logger.info("Refresh token deleted" if deleted else "No refresh token stored")
        else:
            print(json.dumps(await store.info(), indent=2))
    finally:
        await table.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage the stored Flex refresh token")
    parser.add_argument("action", choices=["info", "save", "delete"])
    parser.add_argument("token", nargs="?", help="Refresh token (for save)")
    args = parser.parse_args()

    if args.action == "save" and not args.token:
        parser.error("save requires a refresh token")

    configure_logging()
    try:
        asyncio.run(main(args.action, args.token))
    except Exception as e:
        logger.error(f"Token management failed: {e}", exc_info=True)
        sys.exit(1)
