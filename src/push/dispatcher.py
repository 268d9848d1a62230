"""Chat push dispatch pipeline.

Stages for one webhook delivery:
1. Resolve recipient (conversation -> recipient -> tokens), or skip
2. Compose title/body (best-effort sender name)
3. Authorize: sign service-account assertion, exchange for bearer token
4. Fan out to every token, counting successes
5. Audit log

Nothing is kept between runs.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx

from src.audit.logger import AuditLogger
from src.config import Settings
from src.models import (
    AuditEvent,
    AuditEventType,
    DeliveryAttempt,
    DispatchResult,
    InboundEvent,
    Notification,
    SkipOutcome,
    mask_token,
)
from src.oauth.service_account import GoogleTokenExchanger, ServiceAccountSigner
from src.push.composer import MessageComposer
from src.push.fcm import FcmSender
from src.push.resolver import RecipientResolver
from src.store.records import RecordStoreClient

logger = logging.getLogger(__name__)


class PushDispatcher:
    """Runs the dispatch pipeline for one InboundEvent at a time."""

    def __init__(
        self,
        settings: Settings,
        audit_logger: AuditLogger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._audit = audit_logger
        self._transport = transport
        self._clock = clock

    async def dispatch(self, event: InboundEvent) -> SkipOutcome | DispatchResult:
        """Run the pipeline; errors propagate as PushGatewayError subclasses."""
        settings = self._settings
        settings.require("supabase_url", "supabase_service_role_key")
        records = RecordStoreClient(
            settings.supabase_url or "",
            settings.supabase_service_role_key or "",
            timeout=settings.http_timeout_seconds,
            transport=self._transport,
        )

        recipient = await RecipientResolver(records).resolve(event)
        if isinstance(recipient, SkipOutcome):
            self._audit_skip(event, recipient)
            return recipient

        notification = await MessageComposer(records).compose(event)

        access_token = await self._authorize()
        result = await self._fan_out(
            access_token, recipient.delivery_tokens, notification, event.conversation_id,
        )
        logger.info(
            "sent %d/%d FCM v1 messages for chat=%s",
            result.sent, result.total, event.conversation_id,
        )
        self._audit_result(event, recipient.id, result)
        return result

    async def _authorize(self) -> str:
        settings = self._settings
        settings.require(
            "firebase_project_id",
            "firebase_client_email",
            "firebase_private_key",
            message="FCM not configured",
        )
        signer = ServiceAccountSigner.from_pem(
            settings.firebase_client_email or "",
            settings.firebase_private_key or "",
            audience=settings.google_token_url,
            clock=self._clock,
        )
        exchanger = GoogleTokenExchanger(
            token_url=settings.google_token_url,
            timeout=settings.http_timeout_seconds,
            transport=self._transport,
        )
        return await exchanger.exchange(signer.sign())

    async def _fan_out(
        self,
        access_token: str,
        tokens: tuple[str, ...],
        notification: Notification,
        conversation_id: str,
    ) -> DispatchResult:
        sender = FcmSender(
            self._settings.firebase_project_id or "",
            base_url=self._settings.fcm_base_url,
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        )
        attempts: list[DeliveryAttempt] = []
        async with sender.client() as client:
            for token in tokens:
                attempts.append(
                    await sender.send(client, access_token, token, notification, conversation_id),
                )
        return DispatchResult(conversation_id=conversation_id, attempts=tuple(attempts))

    def _record(self, event: AuditEvent) -> None:
        """Write one audit event; a failed write is logged, never raised."""
        if not self._audit:
            return
        try:
            self._audit.log(event)
        except OSError:
            logger.exception("audit write failed for %s", event.event_type.value)

    def _audit_skip(self, event: InboundEvent, skip: SkipOutcome) -> None:
        if not self._audit:
            return
        self._record(AuditEvent(
            event_type=AuditEventType.PUSH_SKIPPED,
            subject_id=event.sender_id,
            action="send_chat_push",
            result="skipped",
            details={"chat_id": event.conversation_id, "reason": skip.reason.value},
        ))

    def _audit_result(self, event: InboundEvent, recipient_id: str, result: DispatchResult) -> None:
        if not self._audit:
            return
        for attempt in result.attempts:
            if attempt.ok:
                continue
            self._record(AuditEvent(
                event_type=AuditEventType.PUSH_DELIVERY_FAILED,
                subject_id=recipient_id,
                action="fcm_send",
                result="failure",
                details={
                    "chat_id": event.conversation_id,
                    "token": mask_token(attempt.token),
                    "status_code": attempt.status_code,
                },
            ))
        self._record(AuditEvent(
            event_type=AuditEventType.PUSH_DISPATCHED,
            subject_id=recipient_id,
            action="send_chat_push",
            result="success",
            details={
                "chat_id": event.conversation_id,
                "sent": result.sent,
                "total": result.total,
            },
        ))
