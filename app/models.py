"""Domain models for users and their tasks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class TaskStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"


@dataclass(frozen=True)
class User:
    """Represents a registered account."""

    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Task:
    """A to-do item owned by exactly one user."""

    id: str
    user_id: str
    title: str
    description: Optional[str]
    due_date: Optional[datetime]
    priority: Priority
    status: TaskStatus
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TaskFilter:
    """Criteria understood by :meth:`TaskStore.find_tasks`.

    ``owner_id`` is mandatory; every other criterion is optional and the
    populated ones are combined with a logical AND. ``search`` matches the
    title OR the description, case-insensitively, as a literal substring.
    Date bounds are inclusive.
    """

    owner_id: str
    status: Optional[TaskStatus] = None
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    due_from: Optional[datetime] = None
    due_to: Optional[datetime] = None


@dataclass(frozen=True)
class TaskSort:
    field: str = "created_at"
    descending: bool = True


__all__ = ["Priority", "Task", "TaskFilter", "TaskSort", "TaskStatus", "User"]
