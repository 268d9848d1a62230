"""Recipient resolution for a chat-message event."""

from __future__ import annotations

import logging

from src.models import Conversation, InboundEvent, Recipient, SkipOutcome, SkipReason
from src.store.records import RecordStoreClient

logger = logging.getLogger(__name__)


def pick_recipient(conversation: Conversation, sender_id: str) -> str:
    """Return the participant that is not the sender.

    The sender is not checked for membership: if it matches neither slot,
    ``participant_a`` is chosen.
    """
    if conversation.participant_a == sender_id:
        return conversation.participant_b
    return conversation.participant_a


class RecipientResolver:
    """Resolves conversation -> recipient -> deliverable tokens.

    Record-store failures propagate as RecordStoreError; every "nothing to
    send" case comes back as a SkipOutcome.
    """

    def __init__(self, records: RecordStoreClient) -> None:
        self._records = records

    async def resolve(self, event: InboundEvent) -> Recipient | SkipOutcome:
        conversation = await self._records.fetch_conversation(event.conversation_id)
        if conversation is None:
            logger.info("Chat not found: %s", event.conversation_id)
            return _skip(SkipReason.CHAT_NOT_FOUND)

        recipient_id = pick_recipient(conversation, event.sender_id)
        if not recipient_id or recipient_id == event.sender_id:
            logger.info("Recipient is sender or empty, skip push")
            return _skip(SkipReason.RECIPIENT_IS_SENDER)

        recipient = await self._records.fetch_recipient(recipient_id)
        if recipient is None:
            logger.info("Recipient not found: %s", recipient_id)
            return _skip(SkipReason.RECIPIENT_NOT_FOUND)

        if recipient.notifications_enabled is not True:
            logger.info("Notifications disabled for recipient: %s", recipient_id)
            return _skip(SkipReason.NOTIFICATIONS_DISABLED)

        if not recipient.delivery_tokens:
            logger.info("No fcm_tokens for recipient: %s", recipient_id)
            return _skip(SkipReason.NO_DELIVERY_TOKENS)

        return recipient


def _skip(reason: SkipReason) -> SkipOutcome:
    return SkipOutcome(reason=reason)
