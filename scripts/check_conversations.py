"""
Script to report which employees can receive Teams reminders.

Lists every stored conversation with the employee number linked to its
account, then the mapped employees that have not messaged the bot yet.

Usage:
    python scripts/check_conversations.py
"""

import asyncio
import logging
import sys

from attendance_bot.config import configure_logging, get_settings
from attendance_bot.storage import ConversationStore, IdentityMap, TableStore
from attendance_bot.storage.conversations import TABLE_NAME as CONVERSATION_TABLE
from attendance_bot.storage.identity_map import TABLE_NAME as EMPLOYEE_MAP_TABLE

logger = logging.getLogger(__name__)


async def main() -> None:
    """Print onboarding status."""
    settings = get_settings()
    connection_string = settings.require_storage_connection_string()
    conversation_table = TableStore(connection_string, CONVERSATION_TABLE)
    employee_table = TableStore(connection_string, EMPLOYEE_MAP_TABLE)
    identity_map = IdentityMap(employee_table)

    try:
        references = await ConversationStore(conversation_table).list_all()
        print(f"Stored conversations: {len(references)}")
        for upn, reference in references.items():
            employee_number = await identity_map.subject_id_for(upn)
            print(f"  {upn}\t{employee_number or '-'}\t{reference.service_url}")

        mapping = await identity_map.resolve_all()
        missing = [upn for upn in mapping if upn not in references]
        print(f"Mapped employees without a conversation: {len(missing)}")
        for upn in missing:
            print(f"  {upn}\t{mapping[upn].subject_id}")
    finally:
        await conversation_table.close()
        await employee_table.close()


if __name__ == "__main__":
    configure_logging()
    try:
        asyncio.run(main())
    except Exception as e:
        logger.error(f"Conversation check failed: {e}", exc_info=True)
        sys.exit(1)
