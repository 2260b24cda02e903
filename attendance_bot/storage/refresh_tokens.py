"""
Durable store for the Flex refresh token.

Flex rotates the refresh token on every use and invalidates the old one,
so the latest value must survive process restarts.

Schema (table ``FlexTokenCache``):
- PartitionKey: "config"
- RowKey: "refresh_token"
- Columns: value, updatedAt, updatedBy
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from attendance_bot.exceptions import AttendanceBotError

from .tables import TableStore

logger = logging.getLogger(__name__)

TABLE_NAME = "FlexTokenCache"
PARTITION_KEY = "config"
ROW_KEY = "refresh_token"


class RefreshTokenStore:
    """Single-row refresh token persistence."""

    def __init__(
        self,
        store: TableStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self._clock = clock

    async def get(self) -> Optional[str]:
        """
        Read the stored refresh token.

        Returns:
            The token, or None when absent or when storage is unavailable
        """
        try:
            entity = await self.store.get_entity(PARTITION_KEY, ROW_KEY)
        except AttendanceBotError as e:
            logger.error(f"Failed to read refresh token, falling back to settings: {e}")
            return None

        if not entity or not entity.get("value"):
            logger.info("No refresh token in storage")
            return None

        logger.debug(
            f"Loaded refresh token updated at {entity.get('updatedAt')} "
            f"by {entity.get('updatedBy', 'unknown')}"
        )
        return entity["value"]

    async def save(self, refresh_token: str, updated_by: str = "auto") -> None:
        """
        Persist a new refresh token.

        Args:
            refresh_token: The token issued by Flex
            updated_by: Who rotated it ("auto", "manual" or "initial")
        """
        await self.store.upsert_entity(
            {
                "PartitionKey": PARTITION_KEY,
                "RowKey": ROW_KEY,
                "value": refresh_token,
                "updatedAt": self._clock().isoformat(),
                "updatedBy": updated_by,
            },
            merge=False,
        )
        logger.info(f"Saved refresh token (updated by {updated_by})")

    async def delete(self) -> bool:
        """Remove the stored token."""
        return await self.store.delete_entity(PARTITION_KEY, ROW_KEY)

    async def info(self) -> dict[str, Any]:
        """Describe the stored token without exposing it."""
        entity = await self.store.get_entity(PARTITION_KEY, ROW_KEY)
        if not entity:
            return {"exists": False}
        value = entity.get("value", "")
        return {
            "exists": True,
            "updatedAt": entity.get("updatedAt"),
            "updatedBy": entity.get("updatedBy"),
            "tokenLength": len(value),
            "tokenPreview": value[:8] + "...",
        }
