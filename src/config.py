"""Process-wide configuration read from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from src.errors import ConfigurationError

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
FCM_BASE_URL = "https://fcm.googleapis.com"

# Settings field -> environment variable
_ENV_FIELDS = {
    "supabase_url": "SUPABASE_URL",
    "supabase_service_role_key": "SUPABASE_SERVICE_ROLE_KEY",
    "firebase_project_id": "FIREBASE_PROJECT_ID",
    "firebase_client_email": "FIREBASE_CLIENT_EMAIL",
    "firebase_private_key": "FIREBASE_PRIVATE_KEY",
    "supabase_jwt_secret": "SUPABASE_JWT_SECRET",
    "session_default_ref": "SESSION_DEFAULT_REF",
    "http_timeout_seconds": "HTTP_TIMEOUT_SECONDS",
    "audit_log_path": "AUDIT_LOG_PATH",
    "audit_log_max_bytes": "AUDIT_LOG_MAX_BYTES",
    "audit_log_backup_count": "AUDIT_LOG_BACKUP_COUNT",
    "log_level": "LOG_LEVEL",
    "google_token_url": "GOOGLE_TOKEN_URL",
    "fcm_base_url": "FCM_BASE_URL",
}


class Settings(BaseModel):
    """Immutable settings shared read-only by every request handler.

    Credentials are optional at construction time. Handlers call
    :meth:`require` right before a credential is used, so a missing secret
    only fails the requests that actually need it.
    """

    model_config = ConfigDict(frozen=True)

    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    firebase_project_id: str | None = None
    firebase_client_email: str | None = None
    firebase_private_key: str | None = None
    supabase_jwt_secret: str | None = None
    session_default_ref: str = "supabase"
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    audit_log_path: str | None = None
    audit_log_max_bytes: int = Field(default=10_485_760, gt=0)
    audit_log_backup_count: int = Field(default=5, ge=0)
    log_level: str = "INFO"
    google_token_url: str = GOOGLE_TOKEN_URL
    fcm_base_url: str = FCM_BASE_URL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables; empty values count as unset."""
        env = os.environ if environ is None else environ
        values = {
            field: env[var]
            for field, var in _ENV_FIELDS.items()
            if env.get(var, "").strip()
        }
        return cls(**values)

    def require(self, *fields: str, message: str = "Server misconfiguration") -> None:
        """Raise ConfigurationError if any of ``fields`` is unset or empty."""
        missing = [f for f in fields if not getattr(self, f)]
        if missing:
            raise ConfigurationError(
                message, missing=[_ENV_FIELDS.get(f, f) for f in missing],
            )
