"""
Proactive notification fan-out.

Looks up each recipient's conversation handle, sends the message and
aggregates per-recipient outcomes. Recording successes in the
NotifyStateLedger is left to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

from attendance_bot.exceptions import NotOnboardedError

logger = logging.getLogger(__name__)


class ConversationTransport(Protocol):
    """Messaging transport able to push to a stored conversation."""

    async def get_conversation_handle(self, account_id: str) -> Optional[Any]:
        ...

    async def send_message(self, handle: Any, text: str) -> None:
        ...


@dataclass
class Notification:
    """One message to one account."""

    account_id: str
    body: str


@dataclass
class DispatchResult:
    """
    Outcome of a batch send.

    ``failed_account_ids`` holds every failure, including accounts that
    were never onboarded; ``not_onboarded_account_ids`` is that subset.
    """

    succeeded_account_ids: list[str] = field(default_factory=list)
    failed_account_ids: list[str] = field(default_factory=list)
    not_onboarded_account_ids: list[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded_account_ids)

    @property
    def failed_count(self) -> int:
        return len(self.failed_account_ids)


class NotificationDispatcher:
    """Sends a batch of notifications with per-recipient failure isolation."""

    def __init__(self, transport: ConversationTransport, max_concurrency: int = 10):
        """
        Initialize the dispatcher.

        Args:
            transport: Conversation transport
            max_concurrency: Sends in flight at once
        """
        self.transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def _send_one(self, notification: Notification) -> None:
        async with self._semaphore:
            handle = await self.transport.get_conversation_handle(notification.account_id)
            if handle is None:
                raise NotOnboardedError(notification.account_id)
            await self.transport.send_message(handle, notification.body)

    async def send_many(self, notifications: Iterable[Notification]) -> DispatchResult:
        """
        Send every notification and report per-account outcomes.

        Never raises. ``success_count + failed_count`` always equals the
        number of notifications given.
        """
        notifications = list(notifications)
        outcomes = await asyncio.gather(
            *(self._send_one(n) for n in notifications),
            return_exceptions=True,
        )

        result = DispatchResult()
        for notification, outcome in zip(notifications, outcomes):
            account_id = notification.account_id
            if isinstance(outcome, NotOnboardedError):
                result.failed_account_ids.append(account_id)
                result.not_onboarded_account_ids.append(account_id)
                logger.warning(f"Not onboarded (no conversation with the bot): {account_id}")
            elif isinstance(outcome, BaseException):
                result.failed_account_ids.append(account_id)
                logger.error(f"Failed to send to {account_id}: {outcome}")
            else:
                result.succeeded_account_ids.append(account_id)

        logger.info(
            f"Dispatch complete: {result.success_count} sent, {result.failed_count} failed "
            f"({len(result.not_onboarded_account_ids)} not onboarded)"
        )
        return result
