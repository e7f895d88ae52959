from __future__ import annotations

import logging
from datetime import date
from typing import AbstractSet, Iterable

from dayplan.domain.batches import LedgerResult, OffLogBatch
from dayplan.domain.entities import TaskRecord
from dayplan.domain.errors import TaskNotExcludableError

logger = logging.getLogger(__name__)


def is_excludable(task: TaskRecord) -> bool:
    return not task.is_recurring


def is_off(task: TaskRecord, off_ids: AbstractSet[str]) -> bool:
    return is_excludable(task) and task.series_id in off_ids


def is_do_today(task: TaskRecord, off_ids: AbstractSet[str]) -> bool:
    return not is_off(task, off_ids)


class DoTodayLedger:
    """Per-day set of non-recurring series hidden from today without completing them.

    The ledger holds no state: every call receives the current off-set for ``day``
    and returns the new off-set together with the batch that persists it.
    """

    def toggle(self, task: TaskRecord, day: date, off_ids: AbstractSet[str]) -> LedgerResult:
        if not is_excludable(task):
            raise TaskNotExcludableError(task.id)

        series_id = task.series_id
        if series_id in off_ids:
            logger.debug("Series %s back on Do Today for %s", series_id, day)
            return LedgerResult(
                off_ids=frozenset(off_ids) - {series_id},
                batch=OffLogBatch(day=day, remove=(series_id,)),
            )
        logger.debug("Series %s off Do Today for %s", series_id, day)
        return LedgerResult(
            off_ids=frozenset(off_ids) | {series_id},
            batch=OffLogBatch(day=day, add=(series_id,)),
        )

    def toggle_all(
        self, candidates: Iterable[TaskRecord], day: date, off_ids: AbstractSet[str]
    ) -> LedgerResult:
        series_ids: list[str] = []
        for task in candidates:
            if is_excludable(task) and task.series_id not in series_ids:
                series_ids.append(task.series_id)

        if not series_ids:
            return LedgerResult(off_ids=frozenset(off_ids), batch=OffLogBatch(day=day))

        on_count = sum(1 for series_id in series_ids if series_id not in off_ids)
        turn_off = on_count > len(series_ids) / 2
        logger.info(
            "Turning %d tasks %s Do Today for %s (%d currently on)",
            len(series_ids),
            "off" if turn_off else "on",
            day,
            on_count,
        )

        remaining = frozenset(off_ids) - set(series_ids)
        if turn_off:
            return LedgerResult(
                off_ids=remaining | set(series_ids),
                batch=OffLogBatch(day=day, add=tuple(series_ids), remove=tuple(series_ids)),
            )
        return LedgerResult(
            off_ids=remaining,
            batch=OffLogBatch(day=day, remove=tuple(series_ids)),
        )
