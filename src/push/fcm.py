"""Firebase Cloud Messaging HTTP v1 sender."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.config import FCM_BASE_URL
from src.models import DeliveryAttempt, Notification, mask_token

logger = logging.getLogger(__name__)


class FcmSender:
    """Sends one message per device token; never raises for a single token."""

    def __init__(
        self,
        project_id: str,
        base_url: str = FCM_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/v1/projects/{project_id}/messages:send"
        self._timeout = timeout
        self._transport = transport

    def client(self) -> httpx.AsyncClient:
        """Client shared by all sends of one fan-out."""
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    @staticmethod
    def envelope(token: str, notification: Notification, conversation_id: str) -> dict[str, Any]:
        return {
            "message": {
                "token": token,
                "notification": {"title": notification.title, "body": notification.body},
                "data": {"chat_id": conversation_id},
            },
        }

    async def send(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        token: str,
        notification: Notification,
        conversation_id: str,
    ) -> DeliveryAttempt:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        try:
            resp = await client.post(
                self._url,
                json=self.envelope(token, notification, conversation_id),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.error("[FCM v1] transport error for %s: %s", mask_token(token), exc)
            return DeliveryAttempt(token=token, ok=False, error=str(exc))

        if resp.is_success:
            logger.info("[FCM v1] success: %s %s", resp.status_code, resp.text)
            return DeliveryAttempt(token=token, ok=True, status_code=resp.status_code)

        logger.error("[FCM v1] error: %s %s", resp.status_code, resp.text)
        return DeliveryAttempt(
            token=token, ok=False, status_code=resp.status_code, error=resp.text,
        )
