"""
Async Azure Table Storage wrapper.

Each repository owns one TableStore bound to a single table. The table is
created on first use; point reads return None instead of raising when the
entity does not exist.
"""

import logging
from typing import Any, Optional

from azure.core.exceptions import (
    AzureError,
    ResourceExistsError,
    ResourceNotFoundError,
)
from azure.data.tables import UpdateMode
from azure.data.tables.aio import TableClient

from attendance_bot.exceptions import StorageError

logger = logging.getLogger(__name__)


class TableStore:
    """
    Point read/write/delete access to one Azure table.

    Entities are plain dicts carrying ``PartitionKey`` and ``RowKey``.
    """

    def __init__(self, connection_string: str, table_name: str):
        """
        Initialize the store.

        Args:
            connection_string: Storage account connection string
            table_name: Name of the table this store is bound to
        """
        self.table_name = table_name
        self._connection_string = connection_string
        self._client: Optional[TableClient] = None
        self._table_ready = False

    async def _get_client(self) -> TableClient:
        """Get or create the table client, creating the table once."""
        if self._client is None or not self._table_ready:
            await self.ensure_table()
        return self._client

    async def ensure_table(self) -> None:
        """Create the table if it does not exist yet."""
        if self._client is None:
            self._client = TableClient.from_connection_string(
                self._connection_string, table_name=self.table_name
            )
        try:
            await self._client.create_table()
            logger.info(f"Created table {self.table_name}")
        except ResourceExistsError:
            logger.debug(f"Table {self.table_name} already exists")
        except AzureError as e:
            raise StorageError(f"Failed to create table {self.table_name}: {e}") from e
        self._table_ready = True

    async def close(self) -> None:
        """Close the underlying client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._table_ready = False

    async def get_entity(
        self, partition_key: str, row_key: str
    ) -> Optional[dict[str, Any]]:
        """
        Read a single entity.

        Returns:
            The entity as a dict, or None when it does not exist
        """
        client = await self._get_client()
        try:
            entity = await client.get_entity(partition_key=partition_key, row_key=row_key)
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            raise StorageError(
                f"Failed to read {self.table_name}({partition_key}, {row_key}): {e}"
            ) from e
        return dict(entity)

    async def upsert_entity(self, entity: dict[str, Any], merge: bool = True) -> None:
        """
        Insert or update an entity.

        Args:
            entity: Entity with PartitionKey and RowKey
            merge: Merge into an existing entity instead of replacing it
        """
        client = await self._get_client()
        mode = UpdateMode.MERGE if merge else UpdateMode.REPLACE
        try:
            await client.upsert_entity(entity=entity, mode=mode)
        except AzureError as e:
            raise StorageError(
                f"Failed to upsert into {self.table_name}"
                f"({entity.get('PartitionKey')}, {entity.get('RowKey')}): {e}"
            ) from e

    async def delete_entity(self, partition_key: str, row_key: str) -> bool:
        """
        Delete an entity.

        Returns:
            False if there was nothing to delete
        """
        # The SDK treats deleting a missing entity as success
        if await self.get_entity(partition_key, row_key) is None:
            return False

        client = await self._get_client()
        try:
            await client.delete_entity(partition_key=partition_key, row_key=row_key)
        except ResourceNotFoundError:
            return False
        except AzureError as e:
            raise StorageError(
                f"Failed to delete {self.table_name}({partition_key}, {row_key}): {e}"
            ) from e
        return True

    async def list_entities(self, partition_key: str) -> list[dict[str, Any]]:
        """List every entity in a partition."""
        client = await self._get_client()
        entities = []
        try:
            async for entity in client.query_entities(
                query_filter="PartitionKey eq @pk",
                parameters={"pk": partition_key},
            ):
                entities.append(dict(entity))
        except AzureError as e:
            raise StorageError(
                f"Failed to list {self.table_name} partition {partition_key}: {e}"
            ) from e
        return entities
