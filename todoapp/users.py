"""Account storage: registration, lookups and credential verification."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from .config import Settings
from .errors import AuthenticationError, DuplicateError, ValidationError
from .models import User, UserRecord
from .security import MIN_PASSWORD_LENGTH, hash_password, verify_password
from .storage import StorageBackend

logger = logging.getLogger("todoapp.users")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


class CredentialStore:
    """Owns the user collection of a :class:`StorageBackend`.

    Lookups return the hash-free :class:`User`. The stored hash is only
    reachable through :meth:`find_credentials_by_email`, which backs
    :meth:`authenticate`.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend

    def find_by_email(self, email: str) -> Optional[User]:
        record = self.find_credentials_by_email(email)
        return record.public() if record is not None else None

    def find_by_username(self, username: str) -> Optional[User]:
        record = self._backend.get_user("username", username.strip())
        return record.public() if record is not None else None

    def find_by_id(self, user_id: str) -> Optional[User]:
        record = self._backend.get_user("id", user_id)
        return record.public() if record is not None else None

    def find_credentials_by_email(self, email: str) -> Optional[UserRecord]:
        return self._backend.get_user("email", normalize_email(email))

    def list_all(self) -> List[User]:
        return [record.public() for record in self._backend.list_users()]

    def create(self, username: str, email: str, password: str) -> User:
        """Register a new account and return its public view."""

        normalized_username = (username or "").strip()
        normalized_email = normalize_email(email or "")
        if not normalized_username or not normalized_email or not password:
            raise ValidationError("Username, email, and password are required")
        if "@" not in normalized_email:
            raise ValidationError("Email address is invalid")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        if (
            self._backend.get_user("email", normalized_email) is not None
            or self._backend.get_user("username", normalized_username) is not None
        ):
            raise DuplicateError("User already exists")

        now = _current_timestamp()
        record = UserRecord(
            id=uuid.uuid4().hex,
            username=normalized_username,
            email=normalized_email,
            credential_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        self._backend.insert_user(record)
        logger.info("Registered user %s (%s)", record.id, record.username)
        return record.public()

    def authenticate(self, email: str, password: str) -> User:
        """Return the account for valid credentials.

        Unknown emails and wrong passwords fail the same way.
        """

        record = self.find_credentials_by_email(email)
        if record is None or not verify_password(password, record.credential_hash):
            logger.warning("Failed login attempt for %s", normalize_email(email))
            raise AuthenticationError("Invalid credentials")
        return record.public()


def ensure_demo_account(store: CredentialStore, settings: Settings) -> Optional[User]:
    """Create the demo account unless it already exists."""

    if not settings.demo_enabled:
        return None

    existing = store.find_by_email(settings.demo_email)
    if existing is None:
        existing = store.find_by_username(settings.demo_username)
    if existing is not None:
        return existing

    logger.info("Creating demo user %s", settings.demo_username)
    try:
        return store.create(settings.demo_username, settings.demo_email, settings.demo_password)
    except DuplicateError:
        # Another worker seeded it between the check and the insert.
        return store.find_by_username(settings.demo_username)


__all__ = ["CredentialStore", "ensure_demo_account", "normalize_email"]
