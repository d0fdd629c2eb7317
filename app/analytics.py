"""Dashboard aggregations computed from a user's tasks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, List, Optional

from .errors import ValidationError
from .models import Task, TaskFilter, TaskSort, TaskStatus
from .stores import TaskStore

MIN_WINDOW_DAYS = 1
MAX_WINDOW_DAYS = 365
DEFAULT_WINDOW_DAYS = 7


@dataclass(frozen=True)
class PriorityCount:
    priority: str
    count: int


@dataclass(frozen=True)
class CompletionRatePoint:
    date: str
    completion_rate: float
    completed: int
    total: int


@dataclass
class _Bucket:
    completed: int = 0
    total: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_window(days: int) -> int:
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValidationError("Days must be a number between 1 and 365")
    if days < MIN_WINDOW_DAYS or days > MAX_WINDOW_DAYS:
        raise ValidationError("Days must be a number between 1 and 365")
    return days


def completion_rate(completed: int, total: int) -> float:
    if total == 0:
        return 0
    return round(completed / total * 100, 2)


class AnalyticsService:
    """Compute dashboard figures fresh from the store on every call."""

    def __init__(self, store: TaskStore, *, now: Optional[Callable[[], datetime]] = None) -> None:
        self._store = store
        self._now = now or _utcnow

    def priority_distribution(self, user_id: str) -> List[PriorityCount]:
        """Count tasks per priority; priorities with no tasks are omitted."""

        return [
            PriorityCount(priority=value, count=count)
            for value, count in self._store.count_tasks_by(user_id, "priority")
            if count > 0
        ]

    def completion_rate(self, user_id: str, days: int = DEFAULT_WINDOW_DAYS) -> List[CompletionRatePoint]:
        """Return one point per UTC calendar day, oldest first.

        The series always holds ``days`` points ending today. The window
        starts at midnight of the first day and ends now; every task created
        inside it lands in the bucket of its creation day.
        """

        validate_window(days)
        now = self._now().astimezone(timezone.utc)
        today = now.date()
        first_day = today - timedelta(days=days - 1)
        window_start = datetime.combine(first_day, time.min, tzinfo=timezone.utc)
        tasks = self._store.find_tasks(
            TaskFilter(owner_id=user_id, created_from=window_start, created_to=now)
        )

        buckets: Dict[date, _Bucket] = {
            first_day + timedelta(days=offset): _Bucket() for offset in range(days)
        }
        for task in tasks:
            bucket = buckets[task.created_at.astimezone(timezone.utc).date()]
            bucket.total += 1
            if task.status is TaskStatus.COMPLETED:
                bucket.completed += 1

        return [
            CompletionRatePoint(
                date=day.isoformat(),
                completion_rate=completion_rate(bucket.completed, bucket.total),
                completed=bucket.completed,
                total=bucket.total,
            )
            for day, bucket in buckets.items()
        ]

    def upcoming_deadlines(self, user_id: str, days: int = DEFAULT_WINDOW_DAYS) -> List[Task]:
        """Pending tasks due between now and ``days`` from now, soonest first."""

        validate_window(days)
        now = self._now()
        return self._store.find_tasks(
            TaskFilter(
                owner_id=user_id,
                status=TaskStatus.PENDING,
                due_from=now,
                due_to=now + timedelta(days=days),
            ),
            TaskSort(field="due_date", descending=False),
        )


__all__ = [
    "AnalyticsService",
    "CompletionRatePoint",
    "DEFAULT_WINDOW_DAYS",
    "MAX_WINDOW_DAYS",
    "MIN_WINDOW_DAYS",
    "PriorityCount",
    "completion_rate",
    "validate_window",
]
