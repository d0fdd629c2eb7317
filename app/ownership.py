"""Access rules for reading and changing a single task."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .errors import ForbiddenError, NotFoundError
from .models import Task


class Decision(str, Enum):
    ALLOW = "allow"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


def decide(task: Optional[Task], user_id: str) -> Decision:
    """Decide whether ``user_id`` may act on ``task``.

    Existence is checked before ownership, so a caller probing an id that has
    no record always sees ``NOT_FOUND``.
    """

    if task is None:
        return Decision.NOT_FOUND
    if task.user_id != user_id:
        return Decision.FORBIDDEN
    return Decision.ALLOW


def enforce(task: Optional[Task], user_id: str, action: str = "access") -> Task:
    decision = decide(task, user_id)
    if decision is Decision.NOT_FOUND:
        raise NotFoundError("Task not found")
    if decision is Decision.FORBIDDEN:
        raise ForbiddenError(f"Not authorized to {action} this task")
    assert task is not None
    return task


__all__ = ["Decision", "decide", "enforce"]
