"""Identity-verification collaborator and the signed tokens it accepts."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Optional, Protocol

from .errors import InvalidCredential


@dataclass(frozen=True)
class Identity:
    user_id: str
    display_name: str


class IdentityVerifier(Protocol):
    def verify(self, credential: str) -> Identity:
        ...


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class SignedTokenVerifier:
    """HMAC-SHA256 tokens of the form ``<payload>.<signature>``.

    The payload is url-safe base64 JSON holding ``id`` and ``username``.
    """

    def __init__(self, secret: str) -> None:
        self._key = secret.encode("utf-8")

    def _sign(self, payload: str) -> str:
        digest = hmac.new(self._key, payload.encode("utf-8", "replace"), hashlib.sha256)
        return _b64encode(digest.digest())

    def issue(self, user_id: str, display_name: str) -> str:
        body = json.dumps({"id": user_id, "username": display_name}, separators=(",", ":"))
        payload = _b64encode(body.encode("utf-8"))
        return f"{payload}.{self._sign(payload)}"

    def verify(self, credential: str) -> Identity:
        payload, _, signature = credential.strip().partition(".")
        if not payload or not signature:
            raise InvalidCredential()
        expected = self._sign(payload).encode("ascii")
        if not hmac.compare_digest(expected, signature.encode("utf-8", "replace")):
            raise InvalidCredential()
        try:
            claims = json.loads(_b64decode(payload))
            return Identity(user_id=str(claims["id"]), display_name=str(claims["username"]))
        except (ValueError, KeyError, TypeError) as exc:
            raise InvalidCredential() from exc


def bearer_token(header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
