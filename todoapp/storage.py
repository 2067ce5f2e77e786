"""Storage interface shared by the SQLite and in-memory backends.

The stores in :mod:`todoapp.users` and :mod:`todoapp.tasks` only talk to a
:class:`StorageBackend`, so the same credential and task rules run against
either persistence layer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional, Protocol

from .models import Task, UserRecord

USER_LOOKUP_FIELDS = frozenset({"id", "email", "username"})
TASK_UPDATE_FIELDS = frozenset({"title", "description", "status"})


class StorageBackend(Protocol):
    def initialize(self) -> None: ...

    # Users
    def insert_user(self, record: UserRecord) -> None: ...
    def get_user(self, field: str, value: str) -> Optional[UserRecord]: ...
    def list_users(self) -> List[UserRecord]: ...

    # Tasks
    def insert_task(self, task: Task) -> None: ...
    def get_task(self, task_id: str, owner_id: str) -> Optional[Task]: ...
    def list_tasks(self, owner_id: str) -> List[Task]: ...

    def update_task(
        self,
        task_id: str,
        owner_id: str,
        fields: Mapping[str, Any],
        updated_at: datetime,
    ) -> Optional[Task]: ...

    def toggle_task(self, task_id: str, owner_id: str, updated_at: datetime) -> Optional[Task]: ...
    def delete_task(self, task_id: str, owner_id: str) -> bool: ...


def check_lookup_field(field: str) -> None:
    if field not in USER_LOOKUP_FIELDS:
        raise ValueError(f"Unsupported user lookup field {field!r}")


def check_update_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - TASK_UPDATE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported task fields: {', '.join(sorted(unknown))}")


__all__ = [
    "StorageBackend",
    "TASK_UPDATE_FIELDS",
    "USER_LOOKUP_FIELDS",
    "check_lookup_field",
    "check_update_fields",
]
