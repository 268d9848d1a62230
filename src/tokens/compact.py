"""Compact signed tokens (header.payload.signature).

One encoder builds the base64url JSON segments and delegates the signature to
a pluggable signer, so HMAC session tokens and RSA service-account assertions
share the same string handling.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from abc import ABC, abstractmethod
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from src.errors import ConfigurationError


class MalformedTokenError(ValueError):
    """Raised when a compact token cannot be split or decoded."""


def b64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def b64url_decode(segment: str) -> bytes:
    """Decode a base64url segment whose padding may have been stripped."""
    try:
        return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError) as exc:
        raise MalformedTokenError("invalid base64url segment") from exc


def _json_segment(data: dict[str, Any]) -> str:
    return b64url_encode(json.dumps(data, separators=(",", ":")).encode())


class TokenSigner(ABC):
    """Signs the ``header.payload`` bytes of a compact token."""

    alg: str

    @abstractmethod
    def sign(self, signing_input: bytes) -> bytes: ...


class HmacSha256Signer(TokenSigner):
    alg = "HS256"

    def __init__(self, secret: str | bytes) -> None:
        self._secret = secret.encode() if isinstance(secret, str) else secret

    def sign(self, signing_input: bytes) -> bytes:
        return hmac.new(self._secret, signing_input, hashlib.sha256).digest()


class RsaSha256Signer(TokenSigner):
    """RSASSA-PKCS1-v1_5 with SHA-256 over a PEM-encoded private key."""

    alg = "RS256"

    def __init__(self, private_key: rsa.RSAPrivateKey) -> None:
        self._key = private_key

    @classmethod
    def from_pem(cls, pem: str) -> RsaSha256Signer:
        """Load a PKCS#8 or PKCS#1 PEM key.

        Keys copied from a service-account JSON file into an environment
        variable often carry literal ``\\n`` sequences instead of newlines.
        """
        normalized = pem.replace("\\n", "\n").strip()
        try:
            key = serialization.load_pem_private_key(normalized.encode(), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise ConfigurationError("FCM not configured") from exc
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ConfigurationError("FCM not configured")
        return cls(key)

    def sign(self, signing_input: bytes) -> bytes:
        return self._key.sign(signing_input, padding.PKCS1v15(), hashes.SHA256())


def encode_compact(payload: dict[str, Any], signer: TokenSigner) -> str:
    """Serialize ``payload`` into a signed three-segment token."""
    header = {"alg": signer.alg, "typ": "JWT"}
    signing_input = f"{_json_segment(header)}.{_json_segment(payload)}"
    signature = signer.sign(signing_input.encode())
    return f"{signing_input}.{b64url_encode(signature)}"


def decode_unverified(token: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return (header, payload) of a compact token without checking its signature."""
    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedTokenError("expected three segments")
    try:
        header = json.loads(b64url_decode(parts[0]))
        payload = json.loads(b64url_decode(parts[1]))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedTokenError("segment is not JSON") from exc
    if not isinstance(header, dict) or not isinstance(payload, dict):
        raise MalformedTokenError("segment is not a JSON object")
    return header, payload
