from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    TODO = "todo"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    SKIPPED = "skipped"


class RecurrenceType(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ViewMode(StrEnum):
    DAILY = "daily"
    ARCHIVE = "archive"
    FOCUS = "focus"


FINISHED_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.ARCHIVED})
