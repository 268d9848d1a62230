"""Read-only client for the PostgREST record store (chats and users tables)."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from src.errors import RecordStoreError
from src.models import Conversation, Recipient, Sender, ensure_string

logger = logging.getLogger(__name__)


def valid_tokens(raw: object) -> tuple[str, ...]:
    """Keep only non-empty string entries of a raw token column, in order."""
    if not isinstance(raw, list):
        return ()
    return tuple(t for t in raw if isinstance(t, str) and t)


class RecordStoreClient:
    """Key lookups against ``{base_url}/rest/v1/<table>``.

    Every lookup returns ``None`` when no row matches and raises
    RecordStoreError on a non-2xx response.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._timeout = timeout
        self._transport = transport

    async def _first_row(
        self, table: str, row_id: str, select: str, what: str,
    ) -> dict[str, Any] | None:
        url = f"{self._base_url}/rest/v1/{table}?id=eq.{quote(row_id, safe='')}&select={select}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            resp = await client.get(url, headers=self._headers)

        if not resp.is_success:
            logger.error("%s fetch failed: %s %s", table.capitalize(), resp.status_code, resp.text)
            raise RecordStoreError(
                f"Failed to fetch {what}", status=resp.status_code, body=resp.text,
            )
        rows = resp.json()
        if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
            return None
        return rows[0]

    async def fetch_conversation(self, conversation_id: str) -> Conversation | None:
        row = await self._first_row("chats", conversation_id, "user1,user2", "chat")
        if row is None:
            return None
        return Conversation(
            id=conversation_id,
            participant_a=ensure_string(row.get("user1")),
            participant_b=ensure_string(row.get("user2")),
        )

    async def fetch_recipient(self, recipient_id: str) -> Recipient | None:
        row = await self._first_row(
            "users", recipient_id, "fcm_tokens,notifications_enabled", "recipient",
        )
        if row is None:
            return None
        return Recipient(
            id=recipient_id,
            # Anything but a JSON true (including null, "true", 1) means disabled
            notifications_enabled=row.get("notifications_enabled") is True,
            delivery_tokens=valid_tokens(row.get("fcm_tokens")),
        )

    async def fetch_sender(self, sender_id: str) -> Sender | None:
        row = await self._first_row("users", sender_id, "name", "sender")
        if row is None:
            return None
        name = row.get("name")
        return Sender(id=sender_id, display_name=name if isinstance(name, str) else None)
