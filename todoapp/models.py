"""Domain models for users and their to-do tasks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TaskStatus(str, Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"

    def toggled(self) -> "TaskStatus":
        if self is TaskStatus.COMPLETED:
            return TaskStatus.INCOMPLETE
        return TaskStatus.COMPLETED


@dataclass(frozen=True)
class User:
    """Public view of an account. Never carries credential material."""

    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UserRecord:
    """Stored account row, including the password hash.

    Only the credential verification path works with this type; everything
    that leaves the store goes through :meth:`public`.
    """

    id: str
    username: str
    email: str
    credential_hash: str
    created_at: datetime
    updated_at: datetime

    def public(self) -> User:
        return User(
            id=self.id,
            username=self.username,
            email=self.email,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class Task:
    id: str
    owner_id: str
    title: str
    description: Optional[str]
    status: TaskStatus
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TaskStats:
    total: int
    completed: int
    incomplete: int
    completion_rate: int


__all__ = ["Task", "TaskStats", "TaskStatus", "User", "UserRecord"]
