"""
Dependencies shared by the scheduled jobs.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

from attendance_bot.auth.tokens import (
    CredentialSet,
    MsalClientCredentialsEndpoint,
    RefreshTokenEndpoint,
    TokenCache,
)
from attendance_bot.bot.dispatcher import NotificationDispatcher
from attendance_bot.bot.transport import BotTransport, create_adapter
from attendance_bot.config import Settings, get_settings
from attendance_bot.dates import local_now, local_today, utcnow
from attendance_bot.exceptions import ConfigurationError
from attendance_bot.flex.client import FlexClient
from attendance_bot.graph.client import GraphClient
from attendance_bot.storage.conversations import TABLE_NAME as CONVERSATION_TABLE
from attendance_bot.storage.conversations import ConversationStore
from attendance_bot.storage.identity_map import TABLE_NAME as EMPLOYEE_MAP_TABLE
from attendance_bot.storage.identity_map import IdentityMap
from attendance_bot.storage.notify_state import TABLE_NAME as NOTIFY_STATE_TABLE
from attendance_bot.storage.notify_state import NotifyStateLedger
from attendance_bot.storage.refresh_tokens import TABLE_NAME as REFRESH_TOKEN_TABLE
from attendance_bot.storage.refresh_tokens import RefreshTokenStore
from attendance_bot.storage.tables import TableStore

logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    """
    Everything a job needs, injected so tests can substitute fakes.

    ``dispatcher`` and ``mailer`` are optional because token rotation runs
    without bot or Graph credentials; jobs that need them call the
    ``require_*`` accessors.
    """

    settings: Settings
    identity_map: IdentityMap
    ledger: NotifyStateLedger
    flex: FlexClient
    token_cache: TokenCache
    flex_credentials: CredentialSet
    dispatcher: Optional[NotificationDispatcher] = None
    mailer: Optional[GraphClient] = None
    clock: Callable[[], datetime] = field(default=utcnow)
    tables: list[TableStore] = field(default_factory=list)

    def now(self) -> datetime:
        """Current time in the business timezone."""
        return local_now(self.settings.tz, self.clock)

    def today(self) -> date:
        """Current date in the business timezone."""
        return local_today(self.settings.tz, self.clock)

    def require_dispatcher(self) -> NotificationDispatcher:
        if self.dispatcher is None:
            raise ConfigurationError("Teams delivery is not configured (bot credentials)")
        return self.dispatcher

    def require_mailer(self) -> GraphClient:
        if self.mailer is None:
            raise ConfigurationError("Outlook delivery is not configured (Graph credentials)")
        return self.mailer

    async def close(self) -> None:
        """Close HTTP clients and table connections."""
        await self.flex.close()
        if self.mailer is not None:
            await self.mailer.close()
        for table in self.tables:
            await table.close()


def build_flex_credentials(settings: Settings, refresh_table: TableStore) -> CredentialSet:
    """Flex credential set backed by the refresh token table."""
    return CredentialSet(
        name="flex",
        endpoint=RefreshTokenEndpoint(
            token_url=settings.flex_token_url,
            client_id=settings.flex_client_id,
        ),
        refresh_store=RefreshTokenStore(refresh_table),
        static_refresh_token=settings.static_flex_refresh_token,
    )


def build_job_context(
    settings: Optional[Settings] = None,
    token_cache: Optional[TokenCache] = None,
) -> JobContext:
    """
    Wire a JobContext from settings.

    Args:
        settings: Settings to use; defaults to the cached settings
        token_cache: Cache to share across invocations

    Raises:
        ConfigurationError: The storage connection string is missing
    """
    settings = settings or get_settings()
    connection_string = settings.require_storage_connection_string()
    token_cache = token_cache or TokenCache(skew_seconds=settings.token_skew_seconds)

    employee_table = TableStore(connection_string, EMPLOYEE_MAP_TABLE)
    ledger_table = TableStore(connection_string, NOTIFY_STATE_TABLE)
    refresh_table = TableStore(connection_string, REFRESH_TOKEN_TABLE)
    tables = [employee_table, ledger_table, refresh_table]

    flex_credentials = build_flex_credentials(settings, refresh_table)
    flex = FlexClient(
        token_cache=token_cache,
        credentials=flex_credentials,
        base_url=settings.flex_api_base,
        batch_size=settings.flex_batch_size,
        work_block_name=settings.flex_work_block_name,
    )

    dispatcher = None
    try:
        adapter = create_adapter(settings)
    except ConfigurationError as e:
        logger.warning(f"Teams delivery disabled: {e}")
    else:
        conversation_table = TableStore(connection_string, CONVERSATION_TABLE)
        tables.append(conversation_table)
        conversation_store = ConversationStore(conversation_table)
        dispatcher = NotificationDispatcher(
            BotTransport(adapter, settings.microsoft_app_id, conversation_store)
        )

    mailer = None
    try:
        tenant_id, client_id, client_secret = settings.require_graph_credentials()
    except ConfigurationError as e:
        logger.warning(f"Outlook delivery disabled: {e}")
    else:
        graph_credentials = CredentialSet(
            name="graph",
            endpoint=MsalClientCredentialsEndpoint(tenant_id, client_id, client_secret),
        )
        mailer = GraphClient(
            token_cache=token_cache,
            credentials=graph_credentials,
            default_sender=settings.mail_sender,
            time_zone=settings.timezone,
            base_url=settings.graph_api_base_url,
        )

    return JobContext(
        settings=settings,
        identity_map=IdentityMap(employee_table),
        ledger=NotifyStateLedger(ledger_table),
        flex=flex,
        token_cache=token_cache,
        flex_credentials=flex_credentials,
        dispatcher=dispatcher,
        mailer=mailer,
        tables=tables,
    )
