"""Task operations scoped to the authenticated owner."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from .errors import NotFoundError, ValidationError
from .models import Priority, Task, TaskFilter, TaskSort, TaskStatus
from .ownership import enforce
from .stores import TaskStore

logger = logging.getLogger("taskmanager.tasks")

SORTABLE_FIELDS: Dict[str, str] = {
    "title": "title",
    "description": "description",
    "dueDate": "due_date",
    "due_date": "due_date",
    "priority": "priority",
    "status": "status",
    "createdAt": "created_at",
    "created_at": "created_at",
    "updatedAt": "updated_at",
    "updated_at": "updated_at",
}

_UPDATABLE_FIELDS = ("title", "description", "due_date", "priority", "status")


def parse_sort(value: Optional[str]) -> TaskSort:
    """Parse a ``field:direction`` expression.

    ``desc`` sorts descending; any other direction, or none, sorts ascending.
    Without an expression the newest tasks come first.
    """

    if not value or not value.strip():
        return TaskSort()

    field, _, direction = value.strip().partition(":")
    resolved = SORTABLE_FIELDS.get(field.strip())
    if resolved is None:
        raise ValidationError(f"Invalid sort field '{field.strip()}'")
    return TaskSort(field=resolved, descending=direction.strip().lower() == "desc")


def _coerce_due_date(value: object) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError("Due date must be a valid date") from exc
    raise ValidationError("Due date must be a valid date")


class TaskService:
    """Create, query and change tasks on behalf of a single owner."""

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    def create(self, payload: Mapping[str, object], owner_id: str) -> Task:
        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title is required")

        priority = payload.get("priority")
        status = payload.get("status")
        task = self._store.create_task(
            owner_id,
            title=title.strip(),
            description=payload.get("description"),  # type: ignore[arg-type]
            due_date=_coerce_due_date(payload.get("due_date")),
            priority=Priority.MEDIUM if priority is None else priority,  # type: ignore[arg-type]
            status=TaskStatus.PENDING if status is None else status,  # type: ignore[arg-type]
        )
        logger.info("User %s created task %s", owner_id, task.id)
        return task

    def list(
        self,
        owner_id: str,
        *,
        status: Optional[TaskStatus] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
    ) -> List[Task]:
        criteria = TaskFilter(owner_id=owner_id, status=status, search=search or None)
        return self._store.find_tasks(criteria, parse_sort(sort_by))

    def get(self, task_id: str, owner_id: str) -> Task:
        self._require_valid_id(task_id)
        return enforce(self._store.get_task(task_id), owner_id, "access")

    def update(self, task_id: str, owner_id: str, changes: Mapping[str, object]) -> Task:
        """Overwrite the truthy fields of ``changes``.

        Empty or missing values leave the stored field untouched, so a field
        cannot be cleared through this operation. Owner fields are never read.
        """

        self._require_valid_id(task_id)
        enforce(self._store.get_task(task_id), owner_id, "update")

        fields: Dict[str, object] = {}
        for name in _UPDATABLE_FIELDS:
            value = changes.get(name)
            if name == "title" and isinstance(value, str):
                value = value.strip()
            if not value:
                continue
            if name == "due_date":
                value = _coerce_due_date(value)
            fields[name] = value

        updated = self._store.update_task(task_id, fields)
        if updated is None:
            raise NotFoundError("Task not found")
        return updated

    def delete(self, task_id: str, owner_id: str) -> Task:
        self._require_valid_id(task_id)
        task = enforce(self._store.get_task(task_id), owner_id, "delete")
        if not self._store.delete_task(task_id):
            raise NotFoundError("Task not found")
        logger.info("User %s deleted task %s", owner_id, task_id)
        return task

    def _require_valid_id(self, task_id: str) -> None:
        if not self._store.is_valid_id(task_id):
            raise ValidationError("Invalid task ID")


__all__ = ["SORTABLE_FIELDS", "TaskService", "parse_sort"]
