"""In-process storage backend used by tests and throwaway deployments."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .errors import DuplicateError, NotFoundError
from .models import Task, UserRecord
from .storage import check_lookup_field, check_update_fields


class MemoryDatabase:
    """Keep users and tasks in dictionaries owned by this instance.

    Every mutation happens while holding the instance lock, so a toggle
    reads the current status and writes its inverse as one step.
    """

    def __init__(self) -> None:
        self._users: Dict[str, UserRecord] = {}
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()

    def initialize(self) -> None:
        return None

    def insert_user(self, record: UserRecord) -> None:
        with self._lock:
            for existing in self._users.values():
                if existing.username == record.username or existing.email == record.email:
                    raise DuplicateError("User already exists")
            if record.id in self._users:
                raise DuplicateError("User already exists")
            self._users[record.id] = record

    def get_user(self, field: str, value: str) -> Optional[UserRecord]:
        check_lookup_field(field)
        with self._lock:
            for record in self._users.values():
                if getattr(record, field) == value:
                    return record
        return None

    def list_users(self) -> List[UserRecord]:
        with self._lock:
            return list(self._users.values())

    def insert_task(self, task: Task) -> None:
        with self._lock:
            if task.owner_id not in self._users:
                raise NotFoundError("User not found")
            self._tasks[task.id] = task

    def get_task(self, task_id: str, owner_id: str) -> Optional[Task]:
        with self._lock:
            return self._owned(task_id, owner_id)

    def list_tasks(self, owner_id: str) -> List[Task]:
        with self._lock:
            return [task for task in self._tasks.values() if task.owner_id == owner_id]

    def update_task(
        self,
        task_id: str,
        owner_id: str,
        fields: Mapping[str, Any],
        updated_at: datetime,
    ) -> Optional[Task]:
        check_update_fields(fields)
        with self._lock:
            task = self._owned(task_id, owner_id)
            if task is None:
                return None
            updated = replace(task, updated_at=updated_at, **dict(fields))
            self._tasks[task_id] = updated
            return updated

    def toggle_task(self, task_id: str, owner_id: str, updated_at: datetime) -> Optional[Task]:
        with self._lock:
            task = self._owned(task_id, owner_id)
            if task is None:
                return None
            updated = replace(task, status=task.status.toggled(), updated_at=updated_at)
            self._tasks[task_id] = updated
            return updated

    def delete_task(self, task_id: str, owner_id: str) -> bool:
        with self._lock:
            if self._owned(task_id, owner_id) is None:
                return False
            del self._tasks[task_id]
            return True

    def _owned(self, task_id: str, owner_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None or task.owner_id != owner_id:
            return None
        return task


__all__ = ["MemoryDatabase"]
