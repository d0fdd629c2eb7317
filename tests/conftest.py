from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings
from app.database import Database
from app.models import User

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "tasks.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(database_path=tmp_path / "tasks.sqlite3", secret_key="tests-secret-key")


@pytest.fixture()
def owner(database: Database) -> User:
    return database.create_user("alice", "alice@example.com", "alice-password")


@pytest.fixture()
def stranger(database: Database) -> User:
    return database.create_user("bob", "bob@example.com", "bob-password")


@pytest.fixture()
def set_store_time(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], None]:
    """Pin the timestamp the store assigns to new and updated records."""

    def _set(moment: datetime) -> None:
        monkeypatch.setattr("app.database._current_timestamp", lambda: moment)

    _set(NOW)
    return _set
