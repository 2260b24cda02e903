"""
Employee number to account (UPN) mapping.

Schema (table ``EmployeeMap``):
- PartitionKey: "v1"
- RowKey: UPN, lowercase
- Columns: employeeNumber, name (optional)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .tables import TableStore

logger = logging.getLogger(__name__)

TABLE_NAME = "EmployeeMap"
PARTITION_KEY = "v1"


@dataclass(frozen=True)
class IdentityMapping:
    """Employee number and optional display name for one account."""

    subject_id: str
    display_name: Optional[str] = None


def normalize_account_id(account_id: str) -> str:
    """Account ids are case-insensitive and stored lowercase."""
    return account_id.strip().lower()


class IdentityMap:
    """
    Bidirectional employee number / UPN lookup.

    Duplicate employee numbers are not rejected on write; reverse lookups
    resolve them to the first account seen.
    """

    def __init__(self, store: TableStore):
        self.store = store

    async def resolve_all(self) -> dict[str, IdentityMapping]:
        """
        Load the full mapping.

        Returns:
            Mapping of UPN to IdentityMapping in table order
        """
        entities = await self.store.list_entities(PARTITION_KEY)
        mapping: dict[str, IdentityMapping] = {}
        for entity in entities:
            subject_id = entity.get("employeeNumber")
            if not subject_id:
                logger.warning(f"Mapping row without employee number: {entity['RowKey']}")
                continue
            mapping[entity["RowKey"]] = IdentityMapping(
                subject_id=str(subject_id),
                display_name=entity.get("name") or None,
            )

        logger.info(f"Loaded {len(mapping)} employee mappings")
        return mapping

    @staticmethod
    def subject_ids_of(mapping: dict[str, IdentityMapping]) -> list[str]:
        """Project a mapping to its employee numbers, without duplicates."""
        return list(dict.fromkeys(m.subject_id for m in mapping.values()))

    async def account_id_for(
        self,
        subject_id: str,
        mapping: Optional[dict[str, IdentityMapping]] = None,
    ) -> Optional[str]:
        """
        Reverse lookup by linear scan.

        Args:
            subject_id: Employee number
            mapping: Already loaded mapping; loaded from the table when omitted

        Returns:
            The first UPN mapped to the employee number, or None
        """
        if mapping is None:
            mapping = await self.resolve_all()
        for account_id, entry in mapping.items():
            if entry.subject_id == subject_id:
                return account_id

        logger.warning(f"No account mapped to employee number {subject_id}")
        return None

    async def subject_id_for(self, account_id: str) -> Optional[str]:
        """Look up the employee number of an account."""
        entity = await self.store.get_entity(PARTITION_KEY, normalize_account_id(account_id))
        if not entity:
            return None
        return entity.get("employeeNumber") or None

    async def upsert(
        self,
        account_id: str,
        subject_id: str,
        display_name: Optional[str] = None,
    ) -> None:
        """Create or replace the mapping for an account (last write wins)."""
        entity = {
            "PartitionKey": PARTITION_KEY,
            "RowKey": normalize_account_id(account_id),
            "employeeNumber": subject_id,
        }
        if display_name:
            entity["name"] = display_name

        await self.store.upsert_entity(entity, merge=False)
        logger.info(f"Saved employee mapping {account_id} -> {subject_id}")

    async def delete(self, account_id: str) -> bool:
        """Remove the mapping for an account."""
        deleted = await self.store.delete_entity(
            PARTITION_KEY, normalize_account_id(account_id)
        )
        if deleted:
            logger.info(f"Deleted employee mapping {account_id}")
        return deleted
