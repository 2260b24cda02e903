"""
Notification sent-flag ledger.

Prevents the same reminder from being delivered twice when a timer fires
more than once or is retried by the platform.

Schema (table ``NotifyState``):
- PartitionKey: date (YYYY-MM-DD)
- RowKey: employee number
- Columns: sentCheckIn1105, sentCheckIn1130, sentCheckOut2030,
  sentCheckOut2200, sentDailySummary2210, lastUpdated
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Union

from .tables import TableStore

logger = logging.getLogger(__name__)

TABLE_NAME = "NotifyState"

DateLike = Union[date, str]


class NotificationKind(str, Enum):
    """Scheduled notification types tracked per employee per day."""
    CHECK_IN_FIRST = "checkIn1105"
    CHECK_IN_FINAL = "checkIn1130"
    CHECK_OUT_FIRST = "checkOut2030"
    CHECK_OUT_FINAL = "checkOut2200"
    DAILY_SUMMARY = "dailySummary2210"

    @property
    def column(self) -> str:
        """Table column holding the sent flag for this kind."""
        return f"sent{self.value[0].upper()}{self.value[1:]}"


def _partition(day: DateLike) -> str:
    return day.isoformat() if isinstance(day, date) else day


class NotifyStateLedger:
    """
    Per (date, employee number, kind) sent flags.

    Flags are monotonic: once marked, an entry is never reset for that date.
    Entries are never deleted; a new date simply starts a new partition.
    """

    def __init__(
        self,
        store: TableStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Initialize the ledger.

        Args:
            store: Table store bound to the NotifyState table
            clock: Source of the lastUpdated timestamp
        """
        self.store = store
        self._clock = clock

    async def was_sent(self, day: DateLike, subject_id: str, kind: NotificationKind) -> bool:
        """Return True if the notification was already delivered."""
        entity = await self.store.get_entity(_partition(day), subject_id)
        sent = bool(entity) and entity.get(kind.column) is True
        logger.debug(f"Sent state {_partition(day)} {subject_id} {kind.value} = {sent}")
        return sent

    async def mark_sent(self, day: DateLike, subject_id: str, kind: NotificationKind) -> None:
        """
        Record a successful delivery.

        Merges into the existing row so flags for other kinds survive.
        """
        entity = {
            "PartitionKey": _partition(day),
            "RowKey": subject_id,
            kind.column: True,
            "lastUpdated": self._clock().isoformat(),
        }
        await self.store.upsert_entity(entity, merge=True)
        logger.info(f"Marked sent: {_partition(day)} {subject_id} {kind.value}")

    async def filter_unsent(
        self,
        day: DateLike,
        subject_ids: Iterable[str],
        kind: NotificationKind,
    ) -> list[str]:
        """
        Narrow a batch to the employees not yet notified.

        Lookups run concurrently; the result keeps the input order.
        """
        subject_ids = list(subject_ids)
        sent_flags = await asyncio.gather(
            *(self.was_sent(day, subject_id, kind) for subject_id in subject_ids)
        )
        unsent = [s for s, sent in zip(subject_ids, sent_flags) if not sent]

        logger.info(
            f"Unsent filter: {len(unsent)}/{len(subject_ids)} ({kind.value})"
        )
        return unsent

    async def mark_many_sent(
        self,
        day: DateLike,
        subject_ids: Iterable[str],
        kind: NotificationKind,
    ) -> None:
        """
        Mark a batch as sent.

        Each id is written independently; a failure on one is logged and
        does not block the others.
        """
        subject_ids = list(subject_ids)
        results = await asyncio.gather(
            *(self.mark_sent(day, subject_id, kind) for subject_id in subject_ids),
            return_exceptions=True,
        )
        for subject_id, result in zip(subject_ids, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Failed to mark {subject_id} sent for {kind.value}: {result}"
                )

        logger.info(f"Marked batch sent: {len(subject_ids)} ({kind.value})")

    async def states_for_date(self, day: DateLike) -> dict[str, dict]:
        """Return every ledger row of one day keyed by employee number."""
        entities = await self.store.list_entities(_partition(day))
        return {entity["RowKey"]: entity for entity in entities}
