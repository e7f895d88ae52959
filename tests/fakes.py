from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from itertools import count
from typing import Iterable

from sqlalchemy.exc import OperationalError

from dayplan.domain.batches import OffLogBatch, SectionUpdate, TaskUpdate
from dayplan.domain.entities import Section, TaskRecord, UserSettings
from dayplan.domain.enums import RecurrenceType, TaskStatus
from dayplan.domain.errors import SectionNotFoundError, TaskNotFoundError

# column name -> TaskRecord field, for the keys the service passes through
COLUMNS = {
    "description": "description",
    "status": "status",
    "recurring_type": "recurrence",
    "parent_task_id": "parent_id",
    "section_id": "section_id",
    "priority": "priority",
    "category": "category",
    "due_date": "due_date",
    "notes": "notes",
    "link": "link",
    "image_url": "image_url",
    "remind_at": "remind_at",
    "created_at": "created_at",
    "completed_at": "completed_at",
    "archived_at": "archived_at",
}


def make_task(task_id: str, created: date = date(2024, 1, 1), **fields) -> TaskRecord:
    fields.setdefault("series_id", task_id)
    fields.setdefault("description", f"task {task_id}")
    return TaskRecord(
        id=task_id,
        created_at=datetime.combine(created, datetime.min.time()).replace(hour=9),
        **fields,
    )


def make_template(task_id: str, recurrence: RecurrenceType, created: date, **fields) -> TaskRecord:
    return make_task(task_id, created, recurrence=recurrence, **fields)


def store_failure() -> OperationalError:
    return OperationalError("UPDATE tasks", {}, Exception("connection lost"))


def _fields(data: dict) -> dict:
    fields = {COLUMNS[key]: value for key, value in data.items()}
    if "status" in fields:
        fields["status"] = TaskStatus(fields["status"])
    if "recurrence" in fields:
        fields["recurrence"] = RecurrenceType(fields["recurrence"])
    return fields


class FakeRepo:
    """In-memory store with the same surface as TaskRepository."""

    def __init__(
        self,
        tasks: Iterable[TaskRecord] = (),
        sections: Iterable[Section] = (),
        settings: UserSettings | None = None,
    ) -> None:
        self.tasks: dict[str, TaskRecord] = {task.id: task for task in tasks}
        self.sections: dict[str, Section] = {section.id: section for section in sections}
        self.off_log: set[tuple[str, date]] = set()
        self.settings = settings
        self.fail_next = False
        self.list_calls = 0
        self._ids = count(1)

    def _maybe_fail(self) -> None:
        if self.fail_next:
            self.fail_next = False
            raise store_failure()

    def list_series(self, user_id: str) -> list[TaskRecord]:
        self.list_calls += 1
        return list(self.tasks.values())

    def list_sections(self, user_id: str) -> list[Section]:
        return sorted(self.sections.values(), key=lambda s: s.order)

    def list_off_log(self, user_id: str, day: date) -> frozenset[str]:
        return frozenset(series_id for series_id, off_day in self.off_log if off_day == day)

    def get_user_settings(self, user_id: str) -> UserSettings | None:
        return self.settings

    def save_user_settings(self, settings: UserSettings) -> None:
        self._maybe_fail()
        self.settings = settings

    def create_task(self, user_id: str, data: dict) -> TaskRecord:
        self._maybe_fail()
        task_id = f"new-{next(self._ids)}"
        fields = _fields(data)
        group = (fields.get("parent_id"), fields.get("section_id"))
        orders = [task.order for task in self.tasks.values() if task.group_key == group]
        task = TaskRecord(
            id=task_id,
            series_id=task_id,
            order=max(orders) + 1 if orders else 0,
            **fields,
        )
        self.tasks[task_id] = task
        return task

    def update_task(self, task_id: str, data: dict) -> TaskRecord | None:
        self._maybe_fail()
        task = self.tasks.get(task_id)
        if not task:
            return None
        updated = replace(task, **_fields(data))
        self.tasks[task_id] = updated
        return updated

    def bulk_update_tasks(
        self,
        user_id: str,
        task_ids: Iterable[str],
        data: dict,
        realized: Iterable[TaskRecord] = (),
    ) -> list[TaskRecord]:
        self._maybe_fail()
        staged = dict(self.tasks)
        for record in realized:
            staged[record.id] = record
        updated = []
        for task_id in task_ids:
            if task_id not in staged:
                raise TaskNotFoundError(task_id)
            staged[task_id] = replace(staged[task_id], **_fields(data))
            updated.append(staged[task_id])
        self.tasks = staged
        return updated

    def delete_tasks(
        self,
        user_id: str,
        task_ids: Iterable[str],
        series_ids: Iterable[str] = (),
        updates: Iterable[TaskUpdate] = (),
        realized: Iterable[TaskRecord] = (),
    ) -> list[str]:
        self._maybe_fail()
        for record in realized:
            self.tasks[record.id] = record
        series_ids = set(series_ids)
        doomed = set(task_ids) | {
            task.id for task in self.tasks.values() if task.series_id in series_ids
        }
        frontier = set(doomed)
        while frontier:
            frontier = {
                task.id for task in self.tasks.values() if task.parent_id in frontier
            } - doomed
            doomed |= frontier
        for task_id in doomed:
            self.tasks.pop(task_id, None)
        self.off_log = {entry for entry in self.off_log if entry[0] not in doomed}
        self.apply_task_batch(updates)
        return sorted(doomed)

    def insert_realized_task(self, user_id: str, record: TaskRecord) -> str:
        self._maybe_fail()
        self.tasks[record.id] = record
        return record.id

    def apply_task_batch(self, updates: Iterable[TaskUpdate]) -> None:
        self._maybe_fail()
        updates = list(updates)
        for update in updates:
            if update.id not in self.tasks:
                raise TaskNotFoundError(update.id)
        for update in updates:
            self.tasks[update.id] = replace(
                self.tasks[update.id],
                order=update.order,
                parent_id=update.parent_id,
                section_id=update.section_id,
            )

    def apply_reorder(
        self, user_id: str, realized: Iterable[TaskRecord], updates: Iterable[TaskUpdate]
    ) -> None:
        self._maybe_fail()
        for record in realized:
            self.tasks[record.id] = record
        self.apply_task_batch(updates)

    def apply_off_log_batch(self, user_id: str, batch: OffLogBatch) -> None:
        self._maybe_fail()
        for series_id in batch.remove:
            self.off_log.discard((series_id, batch.day))
        for series_id in batch.add:
            self.off_log.add((series_id, batch.day))

    def create_section(self, user_id: str, name: str, include_in_focus_mode: bool = True) -> Section:
        self._maybe_fail()
        orders = [section.order for section in self.sections.values()]
        section = Section(
            id=f"section-{next(self._ids)}",
            name=name,
            order=max(orders) + 1 if orders else 0,
            include_in_focus_mode=include_in_focus_mode,
        )
        self.sections[section.id] = section
        return section

    def update_section(self, section_id: str, data: dict) -> Section:
        self._maybe_fail()
        if section_id not in self.sections:
            raise SectionNotFoundError(section_id)
        self.sections[section_id] = replace(self.sections[section_id], **data)
        return self.sections[section_id]

    def delete_section(
        self,
        user_id: str,
        section_id: str,
        updates: Iterable[TaskUpdate] = (),
        realized: Iterable[TaskRecord] = (),
    ) -> None:
        self._maybe_fail()
        if section_id not in self.sections:
            raise SectionNotFoundError(section_id)
        for record in realized:
            self.tasks[record.id] = record
        self.apply_task_batch(updates)
        for task_id, task in list(self.tasks.items()):
            if task.section_id == section_id:
                self.tasks[task_id] = replace(task, section_id=None)
        del self.sections[section_id]

    def apply_section_batch(self, updates: Iterable[SectionUpdate]) -> None:
        self._maybe_fail()
        for update in updates:
            self.sections[update.id] = replace(self.sections[update.id], order=update.order)
