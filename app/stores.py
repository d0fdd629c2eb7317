"""Storage capabilities the services depend on.

:class:`app.database.Database` implements both protocols on top of SQLite; any
other engine offering the same operations can be passed to the services
instead.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Mapping, Optional, Protocol, Tuple

from .models import Priority, Task, TaskFilter, TaskSort, TaskStatus, User


class IdentityStore(Protocol):
    def create_user(self, username: str, email: str, password: str) -> User:
        ...

    def get_user(self, user_id: str) -> Optional[User]:
        ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        ...


class TaskStore(Protocol):
    def create_task(
        self,
        user_id: str,
        *,
        title: str,
        description: Optional[str],
        due_date: Optional[datetime],
        priority: Priority,
        status: TaskStatus,
    ) -> Task:
        ...

    def get_task(self, task_id: str) -> Optional[Task]:
        ...

    def find_tasks(self, criteria: TaskFilter, sort: Optional[TaskSort] = None) -> List[Task]:
        ...

    def update_task(self, task_id: str, fields: Mapping[str, object]) -> Optional[Task]:
        ...

    def delete_task(self, task_id: str) -> bool:
        ...

    def count_tasks_by(self, owner_id: str, group_by: str) -> List[Tuple[str, int]]:
        ...

    def is_valid_id(self, value: str) -> bool:
        ...


__all__ = ["IdentityStore", "TaskStore"]
