from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime, time
from typing import Iterable

from dayplan.domain.entities import Real, Representative, TaskRecord, Virtual, virtual_id
from dayplan.domain.enums import RecurrenceType, TaskStatus

logger = logging.getLogger(__name__)


def _sort_key(task: TaskRecord) -> tuple[datetime, str]:
    return (task.created_at, task.id)


def matches_recurrence(template: TaskRecord, day: date) -> bool:
    """Whether ``day`` is an occurrence day of the template's rule."""
    anchor = template.created_on
    if day < anchor:
        return False
    if template.recurrence == RecurrenceType.DAILY:
        return True
    if template.recurrence == RecurrenceType.WEEKLY:
        return day.weekday() == anchor.weekday()
    if template.recurrence == RecurrenceType.MONTHLY:
        return day.day == anchor.day
    return False


def build_virtual(template: TaskRecord, source: TaskRecord, day: date) -> Virtual:
    task = replace(
        source,
        id=virtual_id(template.id, day),
        series_id=template.id,
        created_at=datetime.combine(day, time.min),
        status=TaskStatus.TODO,
        due_date=day if source.due_date else None,
        completed_at=None,
        archived_at=None,
    )
    return Virtual(task=task, day=day)


class SeriesMaterializer:
    """Turns the raw rows of a user into one representative task per series."""

    def materialize(self, rows: Iterable[TaskRecord], today: date) -> list[Representative]:
        series: dict[str, list[TaskRecord]] = defaultdict(list)
        for row in rows:
            series[row.series_id].append(row)

        result: list[Representative] = []
        for series_id in sorted(series, key=str):
            rows_in_series = series[series_id]
            try:
                members = sorted(rows_in_series, key=_sort_key)
                result.extend(self._materialize_series(series_id, members, today))
            except (AttributeError, TypeError, ValueError):
                logger.warning(
                    "Malformed rows in series %s, passing %d rows through",
                    series_id,
                    len(rows_in_series),
                    exc_info=True,
                )
                result.extend(Real(task) for task in sorted(rows_in_series, key=lambda t: str(t.id)))
        return result

    def _materialize_series(
        self, series_id: str, members: list[TaskRecord], today: date
    ) -> list[Representative]:
        template = next((task for task in members if task.id == series_id), None)
        if template is None:
            logger.warning("Series %s has no template, passing %d rows through", series_id, len(members))
            return [Real(task) for task in members]

        if not template.is_recurring:
            return [Real(template)]

        instances = [task for task in members if not task.is_template]

        created_today = [task for task in instances if task.created_on == today]
        if created_today:
            return [Real(created_today[-1])]

        carried_over = [
            task
            for task in instances
            if task.created_on < today and task.status == TaskStatus.TODO
        ]
        if carried_over:
            return [Real(carried_over[-1])]

        if template.status == TaskStatus.ARCHIVED or not matches_recurrence(template, today):
            return []

        earlier = [task for task in instances if task.created_on < today]
        source = earlier[-1] if earlier else template
        return [build_virtual(template, source, today)]


def materialize(rows: Iterable[TaskRecord], today: date) -> list[Representative]:
    return SeriesMaterializer().materialize(rows, today)
