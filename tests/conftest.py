from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from todoapp.database import Database  # noqa: E402
from todoapp.memory import MemoryDatabase  # noqa: E402
from todoapp.tasks import TaskStore  # noqa: E402
from todoapp.users import CredentialStore  # noqa: E402


@pytest.fixture(params=["sqlite", "memory"])
def backend(request, tmp_path: Path):
    """Run the store contract against both persistence layers."""
    if request.param == "sqlite":
        db = Database(tmp_path / "todo.sqlite3")
    else:
        db = MemoryDatabase()
    db.initialize()
    return db


@pytest.fixture()
def users(backend) -> CredentialStore:
    return CredentialStore(backend)


@pytest.fixture()
def tasks(backend) -> TaskStore:
    return TaskStore(backend)


@pytest.fixture()
def ticking_clock(monkeypatch: pytest.MonkeyPatch):
    """Give every task timestamp its own second so ordering is deterministic."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    counter = itertools.count()

    def _now() -> datetime:
        return start + timedelta(seconds=next(counter))

    monkeypatch.setattr("todoapp.tasks._current_timestamp", _now)
    return _now
