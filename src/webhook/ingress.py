"""Database-webhook payload parsing (INSERT on chat_messages).

Payload shape::

    {"type": "INSERT", "table": "chat_messages",
     "record": {"chat_id": ..., "sender_id": ..., "content": ...}, ...}

``conversationId`` / ``senderId`` are accepted as alternative key names.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from src.errors import ValidationError
from src.models import InboundEvent, ensure_string

logger = logging.getLogger(__name__)

_CONVERSATION_KEYS = ("chat_id", "conversationId")
_SENDER_KEYS = ("sender_id", "senderId")


def _first_present(record: dict[str, Any], keys: tuple[str, ...]) -> object:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def parse_payload(body: bytes) -> dict[str, Any]:
    """Decode the request body; anything but a JSON object is rejected."""
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.error("Invalid JSON body: %s", exc)
        raise ValidationError("Invalid JSON") from exc
    if not isinstance(payload, dict):
        logger.error("JSON body is not an object")
        raise ValidationError("Invalid JSON")
    return payload


def extract_event(payload: dict[str, Any]) -> InboundEvent:
    """Normalize ``payload["record"]`` into an InboundEvent."""
    record = payload.get("record")
    if not isinstance(record, dict):
        record = {}

    raw_chat_id = _first_present(record, _CONVERSATION_KEYS)
    raw_sender_id = _first_present(record, _SENDER_KEYS)
    if raw_chat_id is None or raw_sender_id is None:
        logger.error("Missing chat_id or sender_id in payload.record")
        raise ValidationError("Missing chat_id or sender_id")

    conversation_id = ensure_string(raw_chat_id)
    sender_id = ensure_string(raw_sender_id)
    if not conversation_id or not sender_id:
        raise ValidationError("Missing chat_id or sender_id")

    return InboundEvent(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=ensure_string(record.get("content")),
    )


def parse_inbound_event(body: bytes) -> InboundEvent:
    return extract_event(parse_payload(body))
