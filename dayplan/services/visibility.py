from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import AbstractSet, Iterable, Sequence

from dayplan.domain.entities import Representative, Section, TaskRecord
from dayplan.domain.enums import FINISHED_STATUSES, TaskStatus, ViewMode
from dayplan.domain.filters import ALL, NO_SECTION, FilterState

from .do_today import is_off


def relevant_date(task: TaskRecord) -> date | None:
    """Due date, else creation day. None when the row carries neither."""
    if isinstance(task.due_date, date):
        return task.due_date
    if isinstance(task.created_at, datetime):
        return task.created_at.date()
    return None


def finished_today(task: TaskRecord, today: date) -> bool:
    return task.status in FINISHED_STATUSES and task.finished_on == today


def is_relevant_today(task: TaskRecord, today: date) -> bool:
    """Completed or archived today, or an open task due (or created) on or before today."""
    if finished_today(task, today):
        return True
    day = relevant_date(task)
    if task.status != TaskStatus.TODO or day is None:
        return False
    return day <= today


def focus_section_ids(sections: Iterable[Section]) -> frozenset[str]:
    return frozenset(section.id for section in sections if section.include_in_focus_mode)


def in_focus_area(task: TaskRecord, focus_ids: AbstractSet[str]) -> bool:
    return task.parent_id is None and (task.section_id is None or task.section_id in focus_ids)


def matches_search(task: TaskRecord, search: str) -> bool:
    needle = search.lower()
    return any(needle in (value or "").lower() for value in (task.description, task.notes, task.link))


def _status_allowed(task: TaskRecord, state: FilterState) -> bool:
    if state.view_mode == ViewMode.ARCHIVE:
        return task.status == TaskStatus.ARCHIVED
    if state.status != ALL:
        return task.status == state.status
    return task.status != TaskStatus.ARCHIVED


def _section_allowed(task: TaskRecord, section_filter: str) -> bool:
    if section_filter == ALL:
        return True
    if section_filter == NO_SECTION:
        return task.section_id is None
    return task.section_id == section_filter


def within_window(task: TaskRecord, today: date, days: int) -> bool:
    day = relevant_date(task)
    if days < 0 or task.status != TaskStatus.TODO or day is None:
        return True
    return day <= today + timedelta(days=days)


def filter_tasks(
    tasks: Sequence[Representative],
    state: FilterState,
    today: date,
    sections: Sequence[Section] = (),
    off_ids: AbstractSet[str] | None = None,
) -> list[Representative]:
    """Apply the view predicates in order.

    Passing ``off_ids`` requests the today-eligible subset: open non-recurring tasks
    taken off Do Today for ``today`` are dropped as a last step.
    """
    result = list(tasks)

    if state.view_mode == ViewMode.DAILY:
        result = [item for item in result if is_relevant_today(item.task, today)]

    if state.search:
        result = [item for item in result if matches_search(item.task, state.search)]

    result = [item for item in result if _status_allowed(item.task, state)]

    if state.category != ALL:
        result = [item for item in result if item.task.category == state.category]
    if state.priority != ALL:
        result = [item for item in result if item.task.priority == state.priority]
    result = [item for item in result if _section_allowed(item.task, state.section)]

    if state.focus_only:
        focus_ids = focus_section_ids(sections)
        result = [item for item in result if in_focus_area(item.task, focus_ids)]

    if state.future_days_visible >= 0:
        result = [
            item for item in result if within_window(item.task, today, state.future_days_visible)
        ]

    if off_ids is not None:
        result = [
            item
            for item in result
            if not (item.task.status == TaskStatus.TODO and is_off(item.task, off_ids))
        ]

    return result
