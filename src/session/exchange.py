"""Firebase ID token -> HS256 session token exchange.

Lets the record store's row-level security trust Firebase identities: the
caller presents a Firebase ID token and receives a locally signed token whose
``sub``/``user_id`` is the Firebase uid.

The ID token's claims (iss, aud, exp, sub) are checked; its signature is not.
Signature verification against the securetoken JWKS is not implemented.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from src.audit.logger import AuditLogger
from src.config import Settings
from src.errors import PushGatewayError, ValidationError
from src.models import AuditEvent, AuditEventType
from src.tokens.compact import (
    HmacSha256Signer,
    MalformedTokenError,
    decode_unverified,
    encode_compact,
)

logger = logging.getLogger(__name__)

SESSION_LIFETIME_SECONDS = 3600
_PROJECT_REF_RE = re.compile(r"https://([^.]+)")


class InvalidIdTokenError(PushGatewayError):
    """The Firebase ID token is malformed, expired or for another project."""

    status_code = 401


@dataclass(frozen=True)
class SessionToken:
    access_token: str
    expires_in: int = SESSION_LIFETIME_SECONDS

    def to_response(self) -> dict[str, object]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.access_token,
            "expires_in": self.expires_in,
        }


def project_ref(supabase_url: str | None, default: str) -> str:
    """First host label of the project URL, e.g. ``abcd`` for https://abcd.supabase.co."""
    match = _PROJECT_REF_RE.match(supabase_url or "")
    return match.group(1) if match else default


def extract_id_token(authorization: str | None, body: object) -> str:
    """Take the ID token from ``Authorization: Bearer`` or the JSON body."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:]
    elif isinstance(body, dict):
        token = body.get("id_token") or body.get("idToken")
    else:
        token = None
    if not isinstance(token, str) or not token:
        raise ValidationError("Missing id_token or Authorization: Bearer")
    return token


class SessionExchanger:
    """Verifies Firebase ID token claims and mints HS256 session tokens."""

    def __init__(
        self,
        settings: Settings,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._audit = audit_logger
        self._clock = clock

    def verify_id_token(self, id_token: str) -> str:
        """Return the Firebase uid of a token whose claims are acceptable."""
        self._settings.require("firebase_project_id")
        project_id = self._settings.firebase_project_id
        try:
            _, claims = decode_unverified(id_token)
        except MalformedTokenError as exc:
            raise InvalidIdTokenError("Invalid or expired Firebase token") from exc

        uid = claims.get("sub")
        exp = claims.get("exp")
        if not isinstance(uid, str) or not uid:
            reason = "missing_sub"
        elif exp is not None and (not isinstance(exp, int | float) or exp < int(self._clock())):
            reason = "expired"
        elif claims.get("iss") != f"https://securetoken.google.com/{project_id}":
            reason = "issuer_mismatch"
        elif claims.get("aud") != project_id:
            reason = "audience_mismatch"
        else:
            return uid

        self._log(AuditEventType.SESSION_REJECTED, None, "rejected", {"reason": reason})
        raise InvalidIdTokenError("Invalid or expired Firebase token")

    def issue(self, uid: str) -> SessionToken:
        self._settings.require("supabase_jwt_secret")
        now = int(self._clock())
        claims = {
            "iss": "supabase",
            "ref": project_ref(self._settings.supabase_url, self._settings.session_default_ref),
            "role": "authenticated",
            "sub": uid,
            "user_id": uid,
            "iat": now,
            "exp": now + SESSION_LIFETIME_SECONDS,
        }
        token = encode_compact(claims, HmacSha256Signer(self._settings.supabase_jwt_secret or ""))
        self._log(AuditEventType.SESSION_ISSUED, uid, "success", None)
        return SessionToken(access_token=token)

    def exchange(self, id_token: str) -> SessionToken:
        return self.issue(self.verify_id_token(id_token))

    def _log(
        self,
        event_type: AuditEventType,
        uid: str | None,
        result: str,
        details: dict[str, object] | None,
    ) -> None:
        logger.info("session exchange %s uid=%s", result, uid)
        if not self._audit:
            return
        try:
            self._audit.log(AuditEvent(
                event_type=event_type,
                subject_id=uid,
                action="exchange_firebase_token",
                result=result,
                details=details,
            ))
        except OSError:
            logger.exception("audit write failed for %s", event_type.value)
