"""
Teams bot activity handler.

The bot only onboards users: every inbound message or install stores the
conversation reference needed for proactive reminders later.
"""

import logging
import re
from typing import Optional

from botbuilder.core import ActivityHandler, TurnContext
from botbuilder.core.teams import TeamsInfo
from botbuilder.schema import ChannelAccount

from attendance_bot.messages import teams as texts
from attendance_bot.storage.conversations import ConversationStore
from attendance_bot.storage.identity_map import IdentityMap

logger = logging.getLogger(__name__)

REGISTER_PATTERN = re.compile(r"^register\s+(\S+)$", re.IGNORECASE)


class AttendanceBot(ActivityHandler):
    """
    Onboarding bot for attendance reminders.

    Handles:
    - Message activities (store conversation, optional employee number)
    - Member added events (store conversation, welcome)
    """

    def __init__(self, conversations: ConversationStore, identity_map: IdentityMap):
        self.conversations = conversations
        self.identity_map = identity_map

    async def on_message_activity(self, turn_context: TurnContext) -> None:
        """Store the conversation and answer with onboarding info."""
        account_id = await self._save_conversation(turn_context)

        text = (TurnContext.remove_recipient_mention(turn_context.activity) or "").strip()
        logger.info(f"Message from {account_id}: {text!r}")

        match = REGISTER_PATTERN.match(text)
        if match:
            await self._register_employee_number(turn_context, account_id, match.group(1))
            return
        if text.lower() == "register":
            await turn_context.send_activity(texts.REGISTRATION_USAGE)
            return

        await turn_context.send_activity(texts.ONBOARDING_TEXT)

    async def on_members_added_activity(
        self,
        members_added: list[ChannelAccount],
        turn_context: TurnContext,
    ) -> None:
        """Store the conversation when a user installs the bot."""
        for member in members_added:
            if member.id != turn_context.activity.recipient.id:
                logger.info(f"New member: {member.name}")
                await self._save_conversation(turn_context)
                await turn_context.send_activity(texts.MEMBER_WELCOME_TEXT)

    async def _register_employee_number(
        self,
        turn_context: TurnContext,
        account_id: Optional[str],
        employee_number: str,
    ) -> None:
        if not account_id:
            await turn_context.send_activity("I couldn't identify your account. Please try again.")
            return

        sender = turn_context.activity.from_property
        await self.identity_map.upsert(
            account_id,
            employee_number,
            display_name=sender.name if sender else None,
        )
        await turn_context.send_activity(texts.registration_confirmed(employee_number))

    async def _resolve_account_id(self, turn_context: TurnContext) -> Optional[str]:
        """
        UPN of the sender.

        Falls back to the AAD object id when the Teams roster lookup fails.
        """
        sender = turn_context.activity.from_property
        if sender is None:
            return None
        try:
            member = await TeamsInfo.get_member(turn_context, sender.id)
            upn = member.user_principal_name or member.email
            if upn:
                return upn
        except Exception as e:
            logger.warning(f"Teams member lookup failed for {sender.id}: {e}")
        return sender.aad_object_id

    async def _save_conversation(self, turn_context: TurnContext) -> Optional[str]:
        """Persist the conversation reference keyed by UPN."""
        account_id = await self._resolve_account_id(turn_context)
        if not account_id:
            logger.warning("Cannot identify sender, conversation reference not saved")
            return None

        sender = turn_context.activity.from_property
        reference = TurnContext.get_conversation_reference(turn_context.activity)
        await self.conversations.save(
            account_id,
            reference,
            aad_object_id=sender.aad_object_id,
            teams_user_id=sender.id,
        )
        return account_id
