import pytest

from attendance_bot.storage.identity_map import IdentityMap, IdentityMapping, normalize_account_id


def test_normalize_account_id_lowercases_and_strips() -> None:
    assert normalize_account_id("  Kim.Minsu@Example.COM ") == "kim.minsu@example.com"


@pytest.mark.asyncio
async def test_upsert_and_resolve_all(employee_table) -> None:
    identity_map = IdentityMap(employee_table)

    await identity_map.upsert("Alice@Example.com", "E001", display_name="Alice")
    await identity_map.upsert("bob@example.com", "E002")

    mapping = await identity_map.resolve_all()

    assert mapping == {
        "alice@example.com": IdentityMapping(subject_id="E001", display_name="Alice"),
        "bob@example.com": IdentityMapping(subject_id="E002", display_name=None),
    }
    assert await identity_map.subject_id_for("ALICE@example.com") == "E001"


@pytest.mark.asyncio
async def test_upsert_replaces_previous_mapping(employee_table) -> None:
    identity_map = IdentityMap(employee_table)

    await identity_map.upsert("alice@example.com", "E001", display_name="Alice")
    await identity_map.upsert("alice@example.com", "E009")

    mapping = await identity_map.resolve_all()
    assert mapping["alice@example.com"] == IdentityMapping(subject_id="E009")


@pytest.mark.asyncio
async def test_duplicate_employee_numbers_resolve_to_first_account(employee_table) -> None:
    identity_map = IdentityMap(employee_table)
    await identity_map.upsert("first@example.com", "E001")
    await identity_map.upsert("second@example.com", "E001")
    await identity_map.upsert("third@example.com", "E003")

    mapping = await identity_map.resolve_all()

    assert IdentityMap.subject_ids_of(mapping) == ["E001", "E003"]
    assert await identity_map.account_id_for("E001", mapping) == "first@example.com"
    assert await identity_map.account_id_for("E404", mapping) is None


@pytest.mark.asyncio
async def test_rows_without_employee_number_are_skipped(employee_table) -> None:
    await employee_table.upsert_entity({"PartitionKey": "v1", "RowKey": "ghost@example.com"})
    identity_map = IdentityMap(employee_table)

    assert await identity_map.resolve_all() == {}


@pytest.mark.asyncio
async def test_delete(employee_table) -> None:
    identity_map = IdentityMap(employee_table)
    await identity_map.upsert("alice@example.com", "E001")

    assert await identity_map.delete("Alice@example.com") is True
    assert await identity_map.delete("alice@example.com") is False
    assert await identity_map.subject_id_for("alice@example.com") is None
