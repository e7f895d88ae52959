from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, Iterable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from dayplan.config import SETTINGS
from dayplan.domain.batches import ReorderResult
from dayplan.domain.entities import Representative, Section, TaskRecord, UserSettings, Virtual
from dayplan.domain.enums import TaskStatus, ViewMode
from dayplan.domain.errors import (
    DayPlanError,
    ProtectedFieldError,
    RealizationError,
    SectionNotFoundError,
    StoreError,
)
from dayplan.domain.filters import FilterState
from dayplan.infra.repository import TaskRepository

from .do_today import DoTodayLedger
from .materializer import SeriesMaterializer
from .reorder import ReorderEngine, find
from .sections import reorder_sections
from .selectors import DailyProgress, NextTaskSelector, ProgressAggregator
from .visibility import filter_tasks

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _stamp(today: date) -> datetime:
    return datetime.combine(today, datetime.utcnow().time())


# series membership and placement only change through the reorder engine
PROTECTED_FIELDS = frozenset(
    {"id", "user_id", "original_task_id", "order", "parent_task_id", "section_id", "created_at"}
)
CREATE_PROTECTED_FIELDS = frozenset({"id", "user_id", "original_task_id", "order"})


def _reject(data: dict, protected: frozenset[str]) -> None:
    blocked = protected.intersection(data)
    if blocked:
        raise ProtectedFieldError(blocked)


def _stamp_status(data: dict, today: date) -> None:
    status = data.get("status")
    if status == TaskStatus.COMPLETED.value and "completed_at" not in data:
        data["completed_at"] = _stamp(today)
    if status and status not in (TaskStatus.COMPLETED.value, TaskStatus.ARCHIVED.value):
        data["completed_at"] = None
    if status == TaskStatus.ARCHIVED.value and "archived_at" not in data:
        data["archived_at"] = _stamp(today)
    if status and status != TaskStatus.ARCHIVED.value:
        data["archived_at"] = None


def _section(snap: DaySnapshot, section_id: str) -> Section:
    for section in snap.sections:
        if section.id == section_id:
            return section
    raise SectionNotFoundError(section_id)


@dataclass(frozen=True)
class DaySnapshot:
    day: date
    tasks: tuple[Representative, ...]
    sections: tuple[Section, ...]
    off_ids: frozenset[str]
    settings: UserSettings


class TaskService:
    """Caller side of the engine: caches one snapshot per day and submits batches.

    Every intent installs the engine's new snapshot before the store confirms it.
    When the store rejects a batch the cached day is dropped, so the next read
    refetches instead of trusting the optimistic state.
    """

    def __init__(self, repo: TaskRepository, user_id: str) -> None:
        self._repo = repo
        self._user_id = user_id
        self._snapshots: dict[date, DaySnapshot] = {}
        self._materializer = SeriesMaterializer()
        self._ledger = DoTodayLedger()
        self._reorder = ReorderEngine()
        self._next_task = NextTaskSelector()
        self._progress = ProgressAggregator()

    def snapshot(self, today: date) -> DaySnapshot:
        cached = self._snapshots.get(today)
        if cached is None:
            cached = self._fetch(today)
            self._snapshots[today] = cached
        return cached

    def invalidate(self, today: date | None = None) -> None:
        if today is None:
            self._snapshots.clear()
        else:
            self._snapshots.pop(today, None)

    def processed_tasks(self, today: date) -> list[Representative]:
        return list(self.snapshot(today).tasks)

    def sections(self, today: date) -> list[Section]:
        return list(self.snapshot(today).sections)

    def default_filters(self, today: date, view_mode: ViewMode = ViewMode.DAILY) -> FilterState:
        settings = self.snapshot(today).settings
        return FilterState(
            view_mode=view_mode,
            focus_only=view_mode == ViewMode.FOCUS and settings.focus_tasks_only,
            future_days_visible=settings.future_tasks_days_visible,
        )

    def filtered_tasks(self, today: date, state: FilterState | None = None) -> list[Representative]:
        snap = self.snapshot(today)
        return filter_tasks(snap.tasks, state or self.default_filters(today), today, snap.sections)

    def today_tasks(self, today: date, state: FilterState | None = None) -> list[Representative]:
        snap = self.snapshot(today)
        return filter_tasks(
            snap.tasks,
            state or self.default_filters(today),
            today,
            snap.sections,
            off_ids=snap.off_ids,
        )

    def next_available_task(self, today: date) -> Representative | None:
        snap = self.snapshot(today)
        return self._next_task.select(
            snap.tasks, snap.sections, snap.off_ids, snap.settings.focused_task_id
        )

    def daily_progress(self, today: date) -> DailyProgress:
        snap = self.snapshot(today)
        return self._progress.aggregate(snap.tasks, snap.sections, snap.off_ids, today)

    def toggle_do_today(self, today: date, task_id: str) -> frozenset[str]:
        snap = self.snapshot(today)
        result = self._ledger.toggle(find(snap.tasks, task_id).task, today, snap.off_ids)
        self._install(replace(snap, off_ids=result.off_ids))
        self._submit(today, lambda: self._repo.apply_off_log_batch(self._user_id, result.batch))
        return result.off_ids

    def toggle_all_do_today(self, today: date, state: FilterState | None = None) -> frozenset[str]:
        snap = self.snapshot(today)
        candidates = [item.task for item in self.filtered_tasks(today, state)]
        result = self._ledger.toggle_all(candidates, today, snap.off_ids)
        if result.batch.is_empty:
            return result.off_ids
        self._install(replace(snap, off_ids=result.off_ids))
        self._submit(today, lambda: self._repo.apply_off_log_batch(self._user_id, result.batch))
        return result.off_ids

    def reorder(
        self,
        today: date,
        moved_id: str,
        parent_id: str | None,
        section_id: str | None,
        over_id: str | None = None,
        dragging_down: bool = False,
    ) -> ReorderResult:
        snap = self.snapshot(today)
        result = self._reorder.reorder(
            snap.tasks, moved_id, parent_id, section_id, over_id, dragging_down
        )
        self._install(replace(snap, tasks=result.snapshot))
        if not result.realized:
            self._submit(today, lambda: self._repo.apply_task_batch(result.batch))
        else:
            self._submit(
                today,
                lambda: self._repo.apply_reorder(self._user_id, result.realized, result.batch),
                realizing=True,
            )
        return result

    def realize_virtual(self, today: date, task_id: str) -> TaskRecord:
        snap = self.snapshot(today)
        item = find(snap.tasks, task_id)
        if not isinstance(item, Virtual):
            return item.task
        tasks, record = self._reorder.realize_virtual(snap.tasks, task_id)
        self._install(replace(snap, tasks=tasks))
        self._submit(
            today,
            lambda: self._repo.insert_realized_task(self._user_id, record),
            realizing=True,
        )
        return record

    def add_task(self, today: date, data: dict) -> TaskRecord:
        """Create a task at the end of its sibling group."""
        normalized = self._normalize_data(data)
        _reject(normalized, CREATE_PROTECTED_FIELDS)
        parent_id = normalized.get("parent_task_id")
        if parent_id is not None:
            normalized["parent_task_id"] = self.realize_virtual(today, parent_id).id
        normalized.setdefault("created_at", _stamp(today))
        _stamp_status(normalized, today)
        created = self._submit(today, lambda: self._repo.create_task(self._user_id, normalized))
        self.invalidate(today)
        logger.info("Added task %s for %s", created.id, self._user_id)
        return created

    def update_task(self, today: date, task_id: str, data: dict) -> TaskRecord | None:
        normalized = self._normalize_data(data)
        _reject(normalized, PROTECTED_FIELDS)
        record = self.realize_virtual(today, task_id)
        _stamp_status(normalized, today)
        updated = self._submit(today, lambda: self._repo.update_task(record.id, normalized))
        # completion can change which row represents the series
        self.invalidate(today)
        return updated

    def bulk_update_tasks(self, today: date, task_ids: Iterable[str], data: dict) -> list[TaskRecord]:
        normalized = self._normalize_data(data)
        _reject(normalized, PROTECTED_FIELDS)
        task_ids = list(dict.fromkeys(task_ids))
        if not task_ids:
            return []
        snap = self.snapshot(today)
        tasks, ids, realized = self._reorder.realize_all(snap.tasks, task_ids)
        self._install(replace(snap, tasks=tasks))
        _stamp_status(normalized, today)
        targets = [ids[task_id] for task_id in task_ids]
        updated = self._submit(
            today,
            lambda: self._repo.bulk_update_tasks(self._user_id, targets, normalized, realized),
            realizing=bool(realized),
        )
        self.invalidate(today)
        return updated

    def archive_all_completed(self, today: date) -> list[TaskRecord]:
        ids = [
            item.id
            for item in self.snapshot(today).tasks
            if item.task.status == TaskStatus.COMPLETED
        ]
        return self.bulk_update_tasks(today, ids, {"status": TaskStatus.ARCHIVED})

    def complete_section(self, today: date, section_id: str | None) -> list[TaskRecord]:
        """Complete every open top-level task of a section, or of the unsectioned list."""
        ids = [
            item.id
            for item in self.snapshot(today).tasks
            if item.task.status == TaskStatus.TODO
            and item.task.parent_id is None
            and item.task.section_id == section_id
        ]
        return self.bulk_update_tasks(today, ids, {"status": TaskStatus.COMPLETED})

    def delete_task(self, today: date, task_id: str, whole_series: bool = False) -> tuple[str, ...]:
        """Delete a task with its subtasks and close the gap in its sibling group.

        Today's virtual occurrence has no row to delete: unless the whole series
        goes, it is skipped for the day instead. ``whole_series`` on a recurring
        task removes the template and every instance.
        """
        snap = self.snapshot(today)
        item = find(snap.tasks, task_id)
        if isinstance(item, Virtual) and not whole_series:
            self.update_task(today, task_id, {"status": TaskStatus.SKIPPED})
            return ()

        series_ids = (item.task.series_id,) if whole_series and item.task.is_recurring else ()
        targets = [task_id] + [
            other.id
            for other in snap.tasks
            if other.task.series_id in series_ids and other.id != task_id
        ]
        result = self._reorder.remove(snap.tasks, targets)
        virtual_ids = {other.id for other in snap.tasks if isinstance(other, Virtual)}
        row_ids = [removed for removed in result.removed_ids if removed not in virtual_ids]

        self._install(replace(snap, tasks=result.snapshot))
        deleted = self._submit(
            today,
            lambda: self._repo.delete_tasks(
                self._user_id, row_ids, series_ids, result.batch, result.realized
            ),
            realizing=bool(result.realized),
        )
        logger.info("Deleted %d tasks for %s", len(deleted), self._user_id)
        return tuple(deleted)

    def create_section(self, today: date, name: str, include_in_focus_mode: bool = True) -> Section:
        section = self._submit(
            today, lambda: self._repo.create_section(self._user_id, name, include_in_focus_mode)
        )
        self.invalidate(today)
        return section

    def rename_section(self, today: date, section_id: str, name: str) -> Section:
        return self._update_section(today, section_id, name=name)

    def set_section_focus_mode(self, today: date, section_id: str, include: bool) -> Section:
        return self._update_section(today, section_id, include_in_focus_mode=include)

    def delete_section(self, today: date, section_id: str) -> None:
        """Delete a section; its tasks join the end of the unsectioned list."""
        snap = self.snapshot(today)
        _section(snap, section_id)
        result = self._reorder.dissolve_section(snap.tasks, section_id)
        self._install(
            replace(
                snap,
                tasks=result.snapshot,
                sections=tuple(section for section in snap.sections if section.id != section_id),
            )
        )
        self._submit(
            today,
            lambda: self._repo.delete_section(
                self._user_id, section_id, result.batch, result.realized
            ),
            realizing=bool(result.realized),
        )

    def reorder_sections(self, today: date, active_id: str, over_id: str) -> list[Section]:
        snap = self.snapshot(today)
        result = reorder_sections(snap.sections, active_id, over_id)
        self._install(replace(snap, sections=result.sections))
        self._submit(today, lambda: self._repo.apply_section_batch(result.batch))
        return list(result.sections)

    def set_focus_task(self, today: date, task_id: str | None) -> UserSettings:
        if task_id is not None:
            task_id = self.realize_virtual(today, task_id).id
        snap = self.snapshot(today)
        settings = replace(snap.settings, focused_task_id=task_id)
        self._install(replace(snap, settings=settings))
        self._submit(today, lambda: self._repo.save_user_settings(settings))
        return settings

    def _update_section(self, today: date, section_id: str, **fields) -> Section:
        snap = self.snapshot(today)
        edited = replace(_section(snap, section_id), **fields)
        self._install(
            replace(
                snap,
                sections=tuple(edited if s.id == section_id else s for s in snap.sections),
            )
        )
        return self._submit(today, lambda: self._repo.update_section(section_id, fields))

    def _fetch(self, today: date) -> DaySnapshot:
        rows = self._repo.list_series(self._user_id)
        settings = self._repo.get_user_settings(self._user_id) or UserSettings(
            user_id=self._user_id,
            future_tasks_days_visible=SETTINGS.future_tasks_days_visible,
        )
        return DaySnapshot(
            day=today,
            tasks=tuple(self._materializer.materialize(rows, today)),
            sections=tuple(self._repo.list_sections(self._user_id)),
            off_ids=frozenset(self._repo.list_off_log(self._user_id, today)),
            settings=settings,
        )

    def _install(self, snap: DaySnapshot) -> None:
        self._snapshots[snap.day] = snap

    def _submit(self, today: date, action: Callable[[], T], realizing: bool = False) -> T:
        try:
            return action()
        except SQLAlchemyError as exc:
            logger.exception("Store rejected update for %s on %s", self._user_id, today)
            self.invalidate(today)
            if realizing:
                raise RealizationError(f"Could not persist realized task: {exc}") from exc
            raise StoreError(f"Could not apply update: {exc}") from exc
        except DayPlanError:
            self.invalidate(today)
            raise

    @staticmethod
    def _normalize_data(data: dict) -> dict:
        normalized = dict(data)
        if "status" in normalized and isinstance(normalized["status"], TaskStatus):
            normalized["status"] = normalized["status"].value
        return normalized
