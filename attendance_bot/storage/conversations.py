"""
Teams conversation reference store.

A conversation reference is captured when a user first messages the bot
and is required to push messages to that user later.

Schema (table ``TeamsConversation``):
- PartitionKey: "v1"
- RowKey: UPN, lowercase
- Columns: conversationReferenceJson, aadObjectId, teamsUserId
"""

import json
import logging
from typing import Optional

from botbuilder.schema import ConversationReference

from .identity_map import normalize_account_id
from .tables import TableStore

logger = logging.getLogger(__name__)

TABLE_NAME = "TeamsConversation"
PARTITION_KEY = "v1"


class ConversationStore:
    """Conversation references keyed by UPN."""

    def __init__(self, store: TableStore):
        self.store = store

    async def save(
        self,
        account_id: str,
        reference: ConversationReference,
        aad_object_id: Optional[str] = None,
        teams_user_id: Optional[str] = None,
    ) -> None:
        """Store or replace the conversation reference for an account."""
        entity = {
            "PartitionKey": PARTITION_KEY,
            "RowKey": normalize_account_id(account_id),
            "conversationReferenceJson": json.dumps(reference.serialize()),
        }
        if aad_object_id:
            entity["aadObjectId"] = aad_object_id
        if teams_user_id:
            entity["teamsUserId"] = teams_user_id

        await self.store.upsert_entity(entity, merge=False)
        logger.info(f"Saved conversation reference for {account_id}")

    async def get(self, account_id: str) -> Optional[ConversationReference]:
        """
        Load the conversation reference for an account.

        Returns:
            The reference, or None if the user never talked to the bot
        """
        entity = await self.store.get_entity(PARTITION_KEY, normalize_account_id(account_id))
        if not entity or not entity.get("conversationReferenceJson"):
            logger.debug(f"No conversation reference for {account_id}")
            return None
        return ConversationReference().deserialize(
            json.loads(entity["conversationReferenceJson"])
        )

    async def delete(self, account_id: str) -> bool:
        """Remove the stored reference for an account."""
        return await self.store.delete_entity(PARTITION_KEY, normalize_account_id(account_id))

    async def list_all(self) -> dict[str, ConversationReference]:
        """Return every stored reference keyed by UPN."""
        references = {}
        for entity in await self.store.list_entities(PARTITION_KEY):
            raw = entity.get("conversationReferenceJson")
            if raw:
                references[entity["RowKey"]] = ConversationReference().deserialize(
                    json.loads(raw)
                )
        return references

    async def import_legacy_rows(self) -> int:
        """
        Re-key rows written under an AAD object id or Teams user id.

        Older rows carry the UPN in an ``upn`` column instead of the row key.
        Each such row is rewritten under its UPN and the old row is removed.

        Returns:
            Number of rows migrated
        """
        migrated = 0
        for entity in await self.store.list_entities(PARTITION_KEY):
            upn = entity.get("upn")
            if not upn or normalize_account_id(upn) == entity["RowKey"]:
                continue

            new_entity = {
                "PartitionKey": PARTITION_KEY,
                "RowKey": normalize_account_id(upn),
                "conversationReferenceJson": entity.get("conversationReferenceJson", ""),
            }
            for column in ("aadObjectId", "teamsUserId"):
                if entity.get(column):
                    new_entity[column] = entity[column]

            await self.store.upsert_entity(new_entity, merge=False)
            await self.store.delete_entity(PARTITION_KEY, entity["RowKey"])
            migrated += 1
            logger.info(f"Migrated conversation row {entity['RowKey']} -> {upn}")

        return migrated
