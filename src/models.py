"""Shared Pydantic data models for chat-push-gateway."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class SkipReason(str, Enum):
    """Why a pipeline run finished successfully without sending anything."""

    CHAT_NOT_FOUND = "Chat not found"
    RECIPIENT_IS_SENDER = "Recipient is sender"
    RECIPIENT_NOT_FOUND = "Recipient not found"
    NOTIFICATIONS_DISABLED = "Notifications disabled"
    NO_DELIVERY_TOKENS = "No fcm_tokens"


class AuditEventType(str, Enum):
    PUSH_SKIPPED = "push_skipped"
    PUSH_DISPATCHED = "push_dispatched"
    PUSH_DELIVERY_FAILED = "push_delivery_failed"
    SESSION_ISSUED = "session_issued"
    SESSION_REJECTED = "session_rejected"


# --- Webhook / record models ---


class InboundEvent(BaseModel):
    """A validated chat-message insert, scoped to one request."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str = Field(min_length=1)
    sender_id: str = Field(min_length=1)
    content: str = ""


class Conversation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    participant_a: str
    participant_b: str


class Recipient(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    notifications_enabled: bool
    delivery_tokens: tuple[str, ...] = ()


class Sender(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str | None = None


# --- Dispatch models ---


class Notification(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    body: str


class ServiceAccountAssertion(BaseModel):
    """Claims of the JWT-bearer assertion sent to the token endpoint."""

    model_config = ConfigDict(frozen=True)

    iss: str
    sub: str
    aud: str
    iat: int
    exp: int
    scope: str


class DeliveryAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    ok: bool
    status_code: int | None = None
    error: str | None = None


class SkipOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: SkipReason

    def to_response(self) -> dict[str, object]:
        return {"ok": True, "reason": self.reason.value}


class DispatchResult(BaseModel):
    """Aggregate of one fan-out. ``sent < total`` is still a success."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str
    attempts: tuple[DeliveryAttempt, ...] = ()

    @property
    def sent(self) -> int:
        return sum(1 for a in self.attempts if a.ok)

    @property
    def total(self) -> int:
        return len(self.attempts)

    def to_response(self) -> dict[str, object]:
        return {
            "ok": True,
            "sent": self.sent,
            "total": self.total,
            "conversationId": self.conversation_id,
        }


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    subject_id: str | None = None
    action: str
    result: str  # "success" | "skipped" | "failure" | "rejected"
    details: dict[str, object] | None = None


def mask_token(token: str) -> str:
    """Return only the tail of a device or bearer token for logs."""
    return f"...{token[-8:]}" if len(token) > 8 else "..."


def ensure_string(value: object) -> str:
    """Coerce a loosely typed id to str; ``None`` becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
