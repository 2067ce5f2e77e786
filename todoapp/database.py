"""SQLite-backed persistence for users and tasks."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional

from .errors import DuplicateError, InternalError, NotFoundError
from .models import Task, TaskStatus, UserRecord
from .storage import check_lookup_field, check_update_fields

logger = logging.getLogger("todoapp.database")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "todo.sqlite3").resolve(strict=False)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _column_value(value: Any) -> Any:
    if isinstance(value, TaskStatus):
        return value.value
    return value


class Database:
    """Simple wrapper around SQLite for persisting users and tasks."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.DatabaseError as exc:
            logger.exception("SQLite operation failed on %s", self._path)
            raise InternalError() from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tasks (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'incomplete'
                        CHECK (status IN ('completed', 'incomplete')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks(user_id);
                """
            )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def insert_user(self, record: UserRecord) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO users (id, username, email, password_hash, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.username,
                        record.email,
                        record.credential_hash,
                        _serialize_datetime(record.created_at),
                        _serialize_datetime(record.updated_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateError("User already exists") from exc

    def get_user(self, field: str, value: str) -> Optional[UserRecord]:
        check_lookup_field(field)
        with self._transaction() as conn:
            row = conn.execute(f"SELECT * FROM users WHERE {field} = ?", (value,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[UserRecord]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at, rowid").fetchall()
        return [self._row_to_user(row) for row in rows]

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    def insert_task(self, task: Task) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO tasks (id, user_id, title, description, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task.id,
                        task.owner_id,
                        task.title,
                        task.description,
                        task.status.value,
                        _serialize_datetime(task.created_at),
                        _serialize_datetime(task.updated_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise NotFoundError("User not found") from exc

    def get_task(self, task_id: str, owner_id: str) -> Optional[Task]:
        with self._transaction() as conn:
            return self._fetch_task(conn, task_id, owner_id)

    def list_tasks(self, owner_id: str) -> List[Task]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE user_id = ? ORDER BY seq",
                (owner_id,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def update_task(
        self,
        task_id: str,
        owner_id: str,
        fields: Mapping[str, Any],
        updated_at: datetime,
    ) -> Optional[Task]:
        check_update_fields(fields)

        updates: List[str] = []
        values: List[object] = []
        for column in ("title", "description", "status"):
            if column not in fields:
                continue
            updates.append(f"{column} = ?")
            values.append(_column_value(fields[column]))
        updates.append("updated_at = ?")
        values.append(_serialize_datetime(updated_at))

        values.extend([task_id, owner_id])
        query = f"UPDATE tasks SET {', '.join(updates)} WHERE id = ? AND user_id = ?"

        with self._transaction() as conn:
            cursor = conn.execute(query, values)
            if cursor.rowcount == 0:
                return None
            return self._fetch_task(conn, task_id, owner_id)

    def toggle_task(self, task_id: str, owner_id: str, updated_at: datetime) -> Optional[Task]:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE tasks
                   SET status = CASE status WHEN 'completed' THEN 'incomplete' ELSE 'completed' END,
                       updated_at = ?
                 WHERE id = ? AND user_id = ?
                """,
                (_serialize_datetime(updated_at), task_id, owner_id),
            )
            if cursor.rowcount == 0:
                return None
            return self._fetch_task(conn, task_id, owner_id)

    def delete_task(self, task_id: str, owner_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE id = ? AND user_id = ?",
                (task_id, owner_id),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fetch_task(self, conn: sqlite3.Connection, task_id: str, owner_id: str) -> Optional[Task]:
        row = conn.execute(
            "SELECT * FROM tasks WHERE id = ? AND user_id = ?",
            (task_id, owner_id),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def _row_to_user(self, row: sqlite3.Row) -> UserRecord:
        return UserRecord(
            id=str(row["id"]),
            username=str(row["username"]),
            email=str(row["email"]),
            credential_hash=str(row["password_hash"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            owner_id=str(row["user_id"]),
            title=str(row["title"]),
            description=row["description"],
            status=TaskStatus(row["status"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
