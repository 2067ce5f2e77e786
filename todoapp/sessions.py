"""Stateless bearer tokens for the to-do API.

Tokens are Fernet messages carrying the user id, email, issue time and
expiry. Verification needs only the signing secret; nothing is stored
server-side, so a token stays valid until it expires.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger("todoapp.sessions")

DEFAULT_TOKEN_TTL = timedelta(days=7)


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


def _build_cipher(secret: str) -> Fernet:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    key = base64.urlsafe_b64encode(digest)
    return Fernet(key)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionIssuer:
    """Issue and verify signed, time-limited bearer tokens."""

    def __init__(
        self,
        secret: str,
        *,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("A token signing secret must be provided")
        if ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        self._cipher = _build_cipher(secret)
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, user_id: str, email: str) -> str:
        issued_at = int(self._clock().timestamp())
        payload = {
            "userId": user_id,
            "email": email,
            "issuedAt": issued_at,
            "expiresAt": issued_at + int(self._ttl.total_seconds()),
        }
        raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return self._cipher.encrypt(raw).decode("ascii")

    def verify(self, token: str) -> Optional[SessionClaims]:
        """Return the embedded claims, or ``None`` when the token is unusable."""

        try:
            raw = self._cipher.decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError):
            return None

        try:
            payload = json.loads(raw)
            claims = SessionClaims(
                user_id=str(payload["userId"]),
                email=str(payload["email"]),
                issued_at=datetime.fromtimestamp(int(payload["issuedAt"]), timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["expiresAt"]), timezone.utc),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding signed token with an unexpected payload")
            return None

        if claims.expires_at <= self._clock():
            return None
        return claims


__all__ = ["DEFAULT_TOKEN_TTL", "SessionClaims", "SessionIssuer"]
