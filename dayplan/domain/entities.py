from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, TypeAlias

from .enums import RecurrenceType, TaskPriority, TaskStatus

VIRTUAL_PREFIX = "virtual"


@dataclass(frozen=True)
class TaskRecord:
    id: str
    series_id: str
    created_at: datetime
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    recurrence: RecurrenceType = RecurrenceType.NONE
    parent_id: Optional[str] = None
    section_id: Optional[str] = None
    order: int = 0
    priority: str = TaskPriority.MEDIUM.value
    category: str = ""
    due_date: Optional[date] = None
    notes: str | None = None
    link: str | None = None
    image_url: str | None = None
    remind_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    @property
    def is_template(self) -> bool:
        return self.id == self.series_id

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != RecurrenceType.NONE

    @property
    def created_on(self) -> date:
        return self.created_at.date()

    @property
    def finished_on(self) -> Optional[date]:
        """Day the task reached its current completed/archived status."""
        if self.status == TaskStatus.ARCHIVED:
            stamp = self.archived_at or self.completed_at
        elif self.status == TaskStatus.COMPLETED:
            stamp = self.completed_at
        else:
            return None
        return stamp.date() if isinstance(stamp, datetime) else None

    @property
    def group_key(self) -> tuple[str | None, str | None]:
        return (self.parent_id, self.section_id)


@dataclass(frozen=True)
class Real:
    task: TaskRecord

    @property
    def id(self) -> str:
        return self.task.id


@dataclass(frozen=True)
class Virtual:
    """Today's occurrence of a recurring series that has no persisted row yet."""

    task: TaskRecord
    day: date

    @property
    def id(self) -> str:
        return self.task.id


Representative: TypeAlias = Real | Virtual


def virtual_id(series_id: str, day: date) -> str:
    return f"{VIRTUAL_PREFIX}:{series_id}:{day.isoformat()}"


@dataclass(frozen=True)
class Section:
    id: str
    name: str
    order: int = 0
    include_in_focus_mode: bool = True


@dataclass(frozen=True)
class UserSettings:
    user_id: str
    focused_task_id: str | None = None
    future_tasks_days_visible: int = -1
    focus_tasks_only: bool = False
