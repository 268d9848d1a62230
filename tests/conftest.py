"""Shared test fixtures for chat-push-gateway."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from src.audit.logger import AuditLogger
from src.config import Settings
from src.models import AuditEvent, AuditEventType, InboundEvent
from src.tokens.compact import HmacSha256Signer, encode_compact

SUPABASE_URL = "https://abcd1234.supabase.co"
SERVICE_ROLE_KEY = "service-role-key"
PROJECT_ID = "chat-app-test"
CLIENT_EMAIL = "push@chat-app-test.iam.gserviceaccount.com"
ACCESS_TOKEN = "ya29.test-access-token"
JWT_SECRET = "super-secret-jwt-signing-key-for-tests"

# One key per test session; RSA generation is slow
_RSA_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def rsa_key() -> rsa.RSAPrivateKey:
    return _RSA_KEY


def private_key_pem(escaped_newlines: bool = False) -> str:
    pem = _RSA_KEY.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    return pem.replace("\n", "\\n") if escaped_newlines else pem


def public_key_pem() -> bytes:
    return _RSA_KEY.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_settings(**kwargs: Any) -> Settings:
    """Factory for fully configured Settings."""
    defaults: dict[str, Any] = {
        "supabase_url": SUPABASE_URL,
        "supabase_service_role_key": SERVICE_ROLE_KEY,
        "firebase_project_id": PROJECT_ID,
        "firebase_client_email": CLIENT_EMAIL,
        "firebase_private_key": private_key_pem(escaped_newlines=True),
        "supabase_jwt_secret": JWT_SECRET,
    }
    defaults.update(kwargs)
    return Settings(**defaults)


def make_event(**kwargs: Any) -> InboundEvent:
    defaults: dict[str, Any] = {
        "conversation_id": "chat-1",
        "sender_id": "alice",
        "content": "hello there",
    }
    defaults.update(kwargs)
    return InboundEvent(**defaults)


def make_audit_event(**kwargs: Any) -> AuditEvent:
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.PUSH_DISPATCHED,
        "action": "send_chat_push",
        "result": "success",
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


def make_webhook_payload(**record: Any) -> dict[str, Any]:
    defaults: dict[str, Any] = {
        "id": "msg-1",
        "chat_id": "chat-1",
        "sender_id": "alice",
        "content": "hello there",
        "type": "text",
    }
    defaults.update(record)
    return {"type": "INSERT", "table": "chat_messages", "record": defaults, "old_record": None}


def make_firebase_id_token(now: int, **claims: Any) -> str:
    """Firebase-style ID token; only its claims are inspected, so any key signs it.

    A claim passed as ``None`` is left out.
    """
    defaults: dict[str, Any] = {
        "iss": f"https://securetoken.google.com/{PROJECT_ID}",
        "aud": PROJECT_ID,
        "sub": "firebase-uid-1",
        "iat": now - 60,
        "exp": now + 600,
    }
    defaults.update(claims)
    return encode_compact(
        {k: v for k, v in defaults.items() if v is not None}, HmacSha256Signer("irrelevant"),
    )


class FakeBackend:
    """In-memory record store, token endpoint and FCM behind httpx.MockTransport.

    ``chats`` maps chat id -> row, ``users`` maps user id -> row. Every request
    is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.chats: dict[str, dict[str, Any]] = {
            "chat-1": {"user1": "alice", "user2": "bob"},
        }
        self.users: dict[str, dict[str, Any]] = {
            "alice": {"name": "Alice", "notifications_enabled": True, "fcm_tokens": ["alice-device"]},
            "bob": {"name": "Bob", "notifications_enabled": True, "fcm_tokens": ["bob-phone", "bob-tablet"]},
        }
        self.chats_status = 200
        self.recipient_status = 200
        self.sender_status = 200
        self.sender_error: Exception | None = None
        self.token_status = 200
        self.token_body: dict[str, Any] = {"access_token": ACCESS_TOKEN, "expires_in": 3599}
        self.rejected_tokens: set[str] = set()
        self.requests: list[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/rest/v1/chats":
            return self._rows(self.chats, request, self.chats_status)
        if path == "/rest/v1/users":
            if request.url.params.get("select") == "name":
                if self.sender_error is not None:
                    raise self.sender_error
                return self._rows(self.users, request, self.sender_status)
            return self._rows(self.users, request, self.recipient_status)
        if path == "/token":
            return httpx.Response(self.token_status, json=self.token_body)
        if path.endswith("/messages:send"):
            token = json.loads(request.content)["message"]["token"]
            if token in self.rejected_tokens:
                return httpx.Response(
                    404, json={"error": {"code": 404, "status": "NOT_FOUND"}},
                )
            return httpx.Response(
                200, json={"name": f"projects/{PROJECT_ID}/messages/1"},
            )
        return httpx.Response(404, json={"error": "unexpected path"})

    @staticmethod
    def _rows(
        table: dict[str, dict[str, Any]], request: httpx.Request, status: int,
    ) -> httpx.Response:
        if status != 200:
            return httpx.Response(status, json={"message": "permission denied"})
        row_id = request.url.params.get("id", "").removeprefix("eq.")
        row = table.get(row_id)
        return httpx.Response(200, json=[row] if row is not None else [])

    def fcm_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/messages:send")]

    def fcm_tokens(self) -> list[str]:
        return [json.loads(r.content)["message"]["token"] for r in self.fcm_requests()]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def audit_log_path(tmp_path: Path) -> Path:
    return tmp_path / "audit" / "audit.jsonl"
