import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from attendance_bot.exceptions import StorageError
from attendance_bot.storage.tables import TableStore


class FakeTableClient:
    """Mimics the SDK: deleting a missing entity is silently accepted."""

    def __init__(self) -> None:
        self.entities: dict[tuple[str, str], dict] = {}
        self.deleted: list[tuple[str, str]] = []
        self.fail = False

    async def get_entity(self, partition_key, row_key):
        if self.fail:
            raise HttpResponseError("service unavailable")
        try:
            return self.entities[(partition_key, row_key)]
        except KeyError:
            raise ResourceNotFoundError("entity not found") from None

    async def delete_entity(self, partition_key, row_key):
        self.deleted.append((partition_key, row_key))
        self.entities.pop((partition_key, row_key), None)

    async def close(self):
        return None


def make_store() -> tuple[TableStore, FakeTableClient]:
    store = TableStore("UseDevelopmentStorage=true", "EmployeeMap")
    client = FakeTableClient()
    store._client = client
    store._table_ready = True
    return store, client


@pytest.mark.asyncio
async def test_delete_reports_whether_entity_existed() -> None:
    store, client = make_store()
    client.entities[("v1", "alice@example.com")] = {"PartitionKey": "v1", "RowKey": "alice@example.com"}

    assert await store.delete_entity("v1", "alice@example.com") is True
    assert await store.delete_entity("v1", "alice@example.com") is False
    assert client.deleted == [("v1", "alice@example.com")]


@pytest.mark.asyncio
async def test_get_entity_missing_is_none() -> None:
    store, _ = make_store()

    assert await store.get_entity("v1", "nobody@example.com") is None


@pytest.mark.asyncio
async def test_sdk_errors_become_storage_errors() -> None:
    store, client = make_store()
    client.fail = True

    with pytest.raises(StorageError):
        await store.get_entity("v1", "alice@example.com")
