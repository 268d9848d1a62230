"""Notification text for a new chat message."""

from __future__ import annotations

import logging

import httpx

from src.errors import RecordStoreError
from src.models import InboundEvent, Notification
from src.store.records import RecordStoreClient

logger = logging.getLogger(__name__)

TITLE = "New Message"
DEFAULT_SENDER_NAME = "Someone"
DEFAULT_PREVIEW = "New message"
PREVIEW_MAX_CHARS = 80


def message_preview(content: str) -> str:
    """Trimmed content cut to PREVIEW_MAX_CHARS, or DEFAULT_PREVIEW when blank."""
    return content.strip()[:PREVIEW_MAX_CHARS] or DEFAULT_PREVIEW


def compose(sender_name: str | None, content: str) -> Notification:
    name = (sender_name or "").strip() or DEFAULT_SENDER_NAME
    return Notification(title=TITLE, body=f"{name}: {message_preview(content)}")


class MessageComposer:
    """Builds the notification, looking up the sender's display name.

    The name lookup is off the critical path: any failure falls back to
    DEFAULT_SENDER_NAME instead of failing the dispatch.
    """

    def __init__(self, records: RecordStoreClient) -> None:
        self._records = records

    async def sender_name(self, sender_id: str) -> str | None:
        try:
            sender = await self._records.fetch_sender(sender_id)
        except (RecordStoreError, httpx.HTTPError, ValueError) as exc:
            logger.warning("Sender name lookup failed for %s: %s", sender_id, exc)
            return None
        return sender.display_name if sender else None

    async def compose(self, event: InboundEvent) -> Notification:
        return compose(await self.sender_name(event.sender_id), event.content)
