"""SQLite-backed persistence for users and tasks."""
from __future__ import annotations

import logging
import re
import secrets
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Tuple, Type, TypeVar

from passlib.context import CryptContext

from .errors import ConflictError, InternalError, ValidationError
from .models import Priority, Task, TaskFilter, TaskSort, TaskStatus, User

logger = logging.getLogger("taskmanager.database")

_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_SORT_COLUMNS = {
    "title": "title",
    "description": "description",
    "due_date": "due_date",
    "priority": "priority",
    "status": "status",
    "created_at": "created_at",
    "updated_at": "updated_at",
}

_GROUP_COLUMNS = {"priority": "priority", "status": "status"}

_UPDATABLE_COLUMNS = ("title", "description", "due_date", "priority", "status")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "tasks.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _generate_id() -> str:
    return secrets.token_hex(12)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return _to_utc(value).isoformat(timespec="microseconds")


def _parse_datetime(value: str) -> datetime:
    return _to_utc(datetime.fromisoformat(value))


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


_E = TypeVar("_E", Priority, TaskStatus)


def _coerce_enum(enum_type: Type[_E], value: object) -> _E:
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid {enum_type.__name__.lower()} '{value}'") from exc


def _icontains(haystack: Optional[str], needle: Optional[str]) -> int:
    if haystack is None or needle is None:
        return 0
    return int(needle.casefold() in haystack.casefold())


class Database:
    """Simple wrapper around SQLite for persisting users and tasks."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.create_function("icontains", 2, _icontains, deterministic=True)
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and is always closed.

        Driver failures surface as :class:`InternalError`; integrity errors
        are translated by the caller before they reach this point.
        """

        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            logger.error("Unable to open database at %s: %s", self._path, exc)
            raise InternalError("Task store unavailable") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Database operation failed: %s", exc)
            raise InternalError("Task store unavailable") from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._session() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id),
                    title TEXT NOT NULL,
                    description TEXT,
                    due_date TEXT,
                    priority TEXT NOT NULL DEFAULT 'Medium'
                        CHECK (priority IN ('Low', 'Medium', 'High')),
                    status TEXT NOT NULL DEFAULT 'Pending'
                        CHECK (status IN ('Pending', 'Completed')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks(user_id);
                CREATE INDEX IF NOT EXISTS idx_tasks_user_due ON tasks(user_id, due_date);
                """
            )
        logger.info("Database initialised at %s", self._path)

    def is_valid_id(self, value: str) -> bool:
        return bool(_ID_PATTERN.match(value or ""))

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, username: str, email: str, password: str) -> User:
        """Create a new user with a hashed password."""

        if not password:
            raise ValidationError("Password is required")

        created_at = _current_timestamp()
        user_id = _generate_id()
        normalized_email = email.strip().lower()
        password_hash = _hash_password(password)

        with self._session() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users (id, username, email, password_hash, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        username,
                        normalized_email,
                        password_hash,
                        _serialize_datetime(created_at),
                        _serialize_datetime(created_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("User already exists") from exc

        return User(
            id=user_id,
            username=username,
            email=normalized_email,
            created_at=created_at,
            updated_at=created_at,
        )

    def get_user(self, user_id: str) -> Optional[User]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        if row is None:
            return None
        stored_hash = row["password_hash"]
        if not stored_hash or not _verify_password(password, stored_hash):
            return None
        return self._row_to_user(row)

    # ------------------------------------------------------------------
    # Task management
    # ------------------------------------------------------------------
    def create_task(
        self,
        user_id: str,
        *,
        title: str,
        description: Optional[str] = None,
        due_date: Optional[datetime] = None,
        priority: Priority = Priority.MEDIUM,
        status: TaskStatus = TaskStatus.PENDING,
    ) -> Task:
        created_at = _serialize_datetime(_current_timestamp())
        task_id = _generate_id()
        with self._session() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO tasks (
                        id, user_id, title, description, due_date, priority, status,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task_id,
                        user_id,
                        title,
                        description,
                        _serialize_datetime(due_date) if due_date is not None else None,
                        _coerce_enum(Priority, priority).value,
                        _coerce_enum(TaskStatus, status).value,
                        created_at,
                        created_at,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError("Task could not be stored") from exc

        task = self.get_task(task_id)
        if task is None:
            raise InternalError("Failed to load task after creation")
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def find_tasks(self, criteria: TaskFilter, sort: Optional[TaskSort] = None) -> List[Task]:
        clauses: List[str] = ["user_id = ?"]
        values: List[object] = [criteria.owner_id]

        if criteria.status is not None:
            clauses.append("status = ?")
            values.append(_coerce_enum(TaskStatus, criteria.status).value)
        if criteria.search:
            clauses.append("(icontains(title, ?) OR icontains(description, ?))")
            values.extend([criteria.search, criteria.search])

        for column, operator, bound in (
            ("created_at", ">=", criteria.created_from),
            ("created_at", "<=", criteria.created_to),
            ("due_date", ">=", criteria.due_from),
            ("due_date", "<=", criteria.due_to),
        ):
            if bound is None:
                continue
            clauses.append(f"{column} {operator} ?")
            values.append(_serialize_datetime(bound))

        sort = sort or TaskSort()
        column = _SORT_COLUMNS.get(sort.field)
        if column is None:
            raise ValidationError(f"Cannot sort by '{sort.field}'")
        direction = "DESC" if sort.descending else "ASC"

        query = (
            f"SELECT * FROM tasks WHERE {' AND '.join(clauses)} "
            f"ORDER BY {column} {direction}, rowid {direction}"
        )
        with self._session() as conn:
            rows = conn.execute(query, values).fetchall()
        return [self._row_to_task(row) for row in rows]

    def update_task(self, task_id: str, fields: Mapping[str, object]) -> Optional[Task]:
        updates: List[str] = []
        values: List[object] = []
        for column in _UPDATABLE_COLUMNS:
            if column not in fields:
                continue
            value = fields[column]
            if column == "due_date" and isinstance(value, datetime):
                value = _serialize_datetime(value)
            elif column == "priority" and value is not None:
                value = _coerce_enum(Priority, value).value
            elif column == "status" and value is not None:
                value = _coerce_enum(TaskStatus, value).value
            updates.append(f"{column} = ?")
            values.append(value)

        updates.append("updated_at = ?")
        values.append(_serialize_datetime(_current_timestamp()))
        values.append(task_id)

        with self._session() as conn:
            try:
                cursor = conn.execute(
                    f"UPDATE tasks SET {', '.join(updates)} WHERE id = ?",
                    values,
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError("Task could not be stored") from exc
            if cursor.rowcount == 0:
                return None

        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> bool:
        with self._session() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cursor.rowcount > 0

    def count_tasks_by(self, owner_id: str, group_by: str) -> List[Tuple[str, int]]:
        """Group the owner's tasks by ``group_by`` and count each group."""

        column = _GROUP_COLUMNS.get(group_by)
        if column is None:
            raise ValidationError(f"Cannot group by '{group_by}'")
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT {column} AS value, COUNT(*) AS count FROM tasks "
                f"WHERE user_id = ? GROUP BY {column}",
                (owner_id,),
            ).fetchall()
        return [(str(row["value"]), int(row["count"])) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            username=str(row["username"]),
            email=str(row["email"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        due_date = row["due_date"]
        return Task(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            title=str(row["title"]),
            description=row["description"],
            due_date=_parse_datetime(str(due_date)) if due_date else None,
            priority=Priority(row["priority"]),
            status=TaskStatus(row["status"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
