"""Owner-scoped task storage with search, filtering, sorting and statistics."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .errors import ValidationError
from .models import Task, TaskStats, TaskStatus
from .storage import StorageBackend

logger = logging.getLogger("todoapp.tasks")

STATUS_ALL = "all"
SORT_FIELDS = ("title", "status", "createdAt")
SORT_ORDERS = ("asc", "desc")

_SORT_KEYS: Dict[str, Callable[[Task], Any]] = {
    "title": lambda task: task.title,
    "status": lambda task: task.status.value,
    "createdAt": lambda task: task.created_at,
}


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _parse_status(value: object) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError as exc:
        raise ValidationError("Status must be 'completed' or 'incomplete'") from exc


def _clean_title(value: object) -> str:
    title = value.strip() if isinstance(value, str) else ""
    if not title:
        raise ValidationError("Title is required")
    return title


def _clean_description(value: object) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Description must be a string")
    return value


def sort_tasks(tasks: Iterable[Task], sort_by: str, sort_order: str) -> List[Task]:
    """Sort ``tasks`` by one field; equal keys keep their incoming order."""

    try:
        key = _SORT_KEYS[sort_by]
    except KeyError as exc:
        raise ValidationError(f"Cannot sort by {sort_by!r}") from exc
    if sort_order not in SORT_ORDERS:
        raise ValidationError("Sort order must be 'asc' or 'desc'")
    return sorted(tasks, key=key, reverse=sort_order == "desc")


def compute_stats(tasks: Iterable[Task]) -> TaskStats:
    total = 0
    completed = 0
    for task in tasks:
        total += 1
        if task.status is TaskStatus.COMPLETED:
            completed += 1
    # Integer round-half-up of 100 * completed / total.
    rate = (200 * completed + total) // (2 * total) if total else 0
    return TaskStats(
        total=total,
        completed=completed,
        incomplete=total - completed,
        completion_rate=rate,
    )


@dataclass(frozen=True)
class TaskQuery:
    """Filters and ordering requested by ``GET /tasks``.

    Search and status restrictions intersect when both are given. A status
    other than ``"all"`` matches tasks by exact value, so an unknown one
    matches nothing.
    """

    status: str = STATUS_ALL
    search: str = ""
    sort_by: str = "createdAt"
    sort_order: str = "desc"

    def __post_init__(self) -> None:
        if self.sort_by not in SORT_FIELDS:
            raise ValidationError("sortBy must be one of 'title', 'status' or 'createdAt'")
        if self.sort_order not in SORT_ORDERS:
            raise ValidationError("sortOrder must be 'asc' or 'desc'")


class TaskStore:
    """Owns the task collection of a :class:`StorageBackend`.

    Every operation takes the caller's ``owner_id``; a task that belongs to
    someone else behaves exactly like a task that does not exist.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend

    def list_by_owner(self, owner_id: str) -> List[Task]:
        """Return the owner's tasks, most recently created first."""
        return sort_tasks(self._backend.list_tasks(owner_id), "createdAt", "desc")

    def get_by_id(self, task_id: str, owner_id: str) -> Optional[Task]:
        return self._backend.get_task(task_id, owner_id)

    def create(
        self,
        owner_id: str,
        title: str,
        description: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Task:
        now = _current_timestamp()
        task = Task(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=_clean_title(title),
            description=_clean_description(description),
            status=_parse_status(status) if status is not None else TaskStatus.INCOMPLETE,
            created_at=now,
            updated_at=now,
        )
        self._backend.insert_task(task)
        logger.debug("Created task %s for user %s", task.id, owner_id)
        return task

    def update(self, task_id: str, owner_id: str, **fields: Any) -> Optional[Task]:
        """Apply the supplied fields and refresh ``updated_at``.

        Returns ``None`` when the owner has no task with that id.
        """

        changes: Dict[str, Any] = {}
        for key, value in fields.items():
            if key == "title":
                changes["title"] = _clean_title(value)
            elif key == "description":
                changes["description"] = _clean_description(value)
            elif key == "status":
                changes["status"] = _parse_status(value)
            else:
                raise ValidationError(f"Unknown task field {key!r}")
        return self._backend.update_task(task_id, owner_id, changes, _current_timestamp())

    def delete(self, task_id: str, owner_id: str) -> bool:
        return self._backend.delete_task(task_id, owner_id)

    def toggle_status(self, task_id: str, owner_id: str) -> Optional[Task]:
        return self._backend.toggle_task(task_id, owner_id, _current_timestamp())

    def search(self, owner_id: str, query: str) -> List[Task]:
        needle = query.lower()
        return [
            task
            for task in self.list_by_owner(owner_id)
            if needle in task.title.lower()
            or (task.description is not None and needle in task.description.lower())
        ]

    def filter_by_status(self, owner_id: str, status: str) -> List[Task]:
        tasks = self.list_by_owner(owner_id)
        if status == STATUS_ALL:
            return tasks
        return [task for task in tasks if task.status.value == status]

    def get_stats(self, owner_id: str) -> TaskStats:
        return compute_stats(self._backend.list_tasks(owner_id))

    def query(self, owner_id: str, query: TaskQuery) -> List[Task]:
        if query.search:
            tasks = self.search(owner_id, query.search)
        else:
            tasks = self.list_by_owner(owner_id)
        if query.status != STATUS_ALL:
            tasks = [task for task in tasks if task.status.value == query.status]
        return sort_tasks(tasks, query.sort_by, query.sort_order)


__all__ = [
    "SORT_FIELDS",
    "SORT_ORDERS",
    "STATUS_ALL",
    "TaskQuery",
    "TaskStore",
    "compute_stats",
    "sort_tasks",
]
