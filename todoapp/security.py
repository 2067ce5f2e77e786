"""Password hashing and bearer-token authentication helpers."""
from __future__ import annotations

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .errors import AuthenticationError
from .sessions import SessionClaims, SessionIssuer

BCRYPT_ROUNDS = 10
MIN_PASSWORD_LENGTH = 6

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


class BearerAuth:
    """Resolve the ``Authorization: Bearer`` header into session claims."""

    def __init__(self, issuer: SessionIssuer) -> None:
        self._issuer = issuer
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> SessionClaims:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise AuthenticationError("Authentication required")

        claims = self._issuer.verify(credentials.credentials)
        if claims is None:
            raise AuthenticationError("Invalid or expired token")
        return claims


__all__ = [
    "BCRYPT_ROUNDS",
    "BearerAuth",
    "MIN_PASSWORD_LENGTH",
    "hash_password",
    "verify_password",
]
