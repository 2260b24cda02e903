"""
Bot Framework proactive messaging transport.
"""

import logging
from typing import Optional

from botbuilder.core import (
    BotFrameworkAdapter,
    BotFrameworkAdapterSettings,
    MessageFactory,
    TurnContext,
)
from botbuilder.schema import ConversationReference

from attendance_bot.config import Settings
from attendance_bot.storage.conversations import ConversationStore

logger = logging.getLogger(__name__)


def create_adapter(settings: Settings) -> BotFrameworkAdapter:
    """
    Build the Bot Framework adapter from settings.

    Raises:
        ConfigurationError: Bot credentials are missing
    """
    app_id, app_password = settings.require_bot_credentials()
    adapter_settings = BotFrameworkAdapterSettings(
        app_id=app_id,
        app_password=app_password,
        channel_auth_tenant=settings.microsoft_app_tenant_id,
    )
    return BotFrameworkAdapter(adapter_settings)


class BotTransport:
    """Pushes messages into stored Teams conversations."""

    def __init__(
        self,
        adapter: BotFrameworkAdapter,
        app_id: str,
        conversations: ConversationStore,
    ):
        self.adapter = adapter
        self.app_id = app_id
        self.conversations = conversations

    async def get_conversation_handle(self, account_id: str) -> Optional[ConversationReference]:
        """Stored conversation reference for an account, if onboarded."""
        return await self.conversations.get(account_id)

    async def send_message(self, reference: ConversationReference, text: str) -> None:
        """
        Send a markdown text message into a stored conversation.

        Errors from the Bot Connector propagate to the caller.
        """

        async def send(turn_context: TurnContext):
            await turn_context.send_activity(MessageFactory.text(text))

        await self.adapter.continue_conversation(reference, send, self.app_id)
        logger.debug(f"Proactive message sent to conversation {reference.conversation.id}")
