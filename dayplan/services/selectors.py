from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import AbstractSet, Sequence

from dayplan.domain.entities import Representative, Section
from dayplan.domain.enums import FINISHED_STATUSES, TaskStatus

from .do_today import is_do_today
from .visibility import focus_section_ids, in_focus_area, is_relevant_today


@dataclass(frozen=True)
class DailyProgress:
    total_count: int = 0
    completed_count: int = 0
    overdue_count: int = 0


def _position(item: Representative):
    created = item.task.created_at
    return (item.task.order, created if isinstance(created, datetime) else datetime.min, item.id)


class NextTaskSelector:
    def select(
        self,
        tasks: Sequence[Representative],
        sections: Sequence[Section],
        off_ids: AbstractSet[str],
        focused_task_id: str | None = None,
    ) -> Representative | None:
        if focused_task_id:
            focused = next((item for item in tasks if item.id == focused_task_id), None)
            if (
                focused is not None
                and focused.task.status == TaskStatus.TODO
                and is_do_today(focused.task, off_ids)
            ):
                return focused

        groups: dict[str | None, list[Representative]] = defaultdict(list)
        for item in tasks:
            task = item.task
            if task.status == TaskStatus.TODO and task.parent_id is None and is_do_today(task, off_ids):
                groups[task.section_id].append(item)

        for section in sorted(sections, key=lambda s: (s.order, s.id)):
            candidates = groups.get(section.id)
            if candidates:
                return min(candidates, key=_position)

        unsectioned = groups.get(None)
        if unsectioned:
            return min(unsectioned, key=_position)
        return None


class ProgressAggregator:
    def aggregate(
        self,
        tasks: Sequence[Representative],
        sections: Sequence[Section],
        off_ids: AbstractSet[str],
        today: date,
    ) -> DailyProgress:
        focus_ids = focus_section_ids(sections)
        scope = [
            item.task
            for item in tasks
            if is_relevant_today(item.task, today)
            and in_focus_area(item.task, focus_ids)
            and is_do_today(item.task, off_ids)
        ]
        return DailyProgress(
            total_count=sum(1 for task in scope if task.status != TaskStatus.SKIPPED),
            completed_count=sum(1 for task in scope if task.status in FINISHED_STATUSES),
            overdue_count=sum(
                1
                for task in scope
                if task.status == TaskStatus.TODO
                and isinstance(task.due_date, date)
                and task.due_date < today
            ),
        )
