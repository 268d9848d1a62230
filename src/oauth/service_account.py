"""Service-account credentials for the FCM HTTP v1 API.

A self-signed RS256 assertion is exchanged at the OAuth2 token endpoint using
the JWT-bearer grant. The resulting bearer token is used for a single dispatch
and never cached.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx

from src.config import GOOGLE_TOKEN_URL
from src.errors import TokenExchangeError
from src.models import ServiceAccountAssertion
from src.tokens.compact import RsaSha256Signer, TokenSigner, encode_compact

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600


class ServiceAccountSigner:
    """Builds and signs JWT-bearer assertions for one service account."""

    def __init__(
        self,
        client_email: str,
        signer: TokenSigner,
        audience: str = GOOGLE_TOKEN_URL,
        scope: str = FCM_SCOPE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_email = client_email
        self._signer = signer
        self._audience = audience
        self._scope = scope
        self._clock = clock

    @classmethod
    def from_pem(
        cls,
        client_email: str,
        private_key_pem: str,
        audience: str = GOOGLE_TOKEN_URL,
        clock: Callable[[], float] = time.time,
    ) -> ServiceAccountSigner:
        return cls(
            client_email,
            RsaSha256Signer.from_pem(private_key_pem),
            audience=audience,
            clock=clock,
        )

    def build_assertion(self) -> ServiceAccountAssertion:
        now = int(self._clock())
        return ServiceAccountAssertion(
            iss=self._client_email,
            sub=self._client_email,
            aud=self._audience,
            iat=now,
            exp=now + ASSERTION_LIFETIME_SECONDS,
            scope=self._scope,
        )

    def sign(self, assertion: ServiceAccountAssertion | None = None) -> str:
        """Return the compact RS256 token for ``assertion`` (a fresh one by default)."""
        claims = assertion or self.build_assertion()
        return encode_compact(claims.model_dump(), self._signer)


class GoogleTokenExchanger:
    """Exchanges a signed assertion for a short-lived bearer token."""

    def __init__(
        self,
        token_url: str = GOOGLE_TOKEN_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_url = token_url
        self._timeout = timeout
        self._transport = transport

    async def exchange(self, assertion: str) -> str:
        """POST the assertion and return ``access_token``.

        Raises:
            TokenExchangeError: non-2xx status or a response without a token.
        """
        form = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            resp = await client.post(self._token_url, data=form)

        if not resp.is_success:
            logger.error("OAuth2 token exchange failed: %s %s", resp.status_code, resp.text)
            raise TokenExchangeError(
                f"Google OAuth2 token failed: {resp.status_code} {resp.text}",
                status=resp.status_code,
                body=resp.text,
            )

        try:
            data = resp.json()
        except ValueError:
            data = None
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeError(
                "Google OAuth2 response missing access_token",
                status=resp.status_code,
                body=resp.text,
            )
        return access_token
