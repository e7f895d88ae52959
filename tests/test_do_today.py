from __future__ import annotations

from datetime import date

import pytest

from dayplan.domain.enums import RecurrenceType
from dayplan.domain.errors import TaskNotExcludableError
from dayplan.services.do_today import DoTodayLedger, is_do_today

from fakes import make_task, make_template

DAY = date(2024, 6, 10)


def test_toggle_flips_membership_and_back() -> None:
    ledger = DoTodayLedger()
    task = make_task("A")

    off = ledger.toggle(task, DAY, frozenset())
    assert off.off_ids == {"A"}
    assert off.batch.add == ("A",)
    assert off.batch.remove == ()

    on = ledger.toggle(task, DAY, off.off_ids)
    assert on.off_ids == frozenset()
    assert on.batch.remove == ("A",)
    assert on.batch.day == DAY


def test_toggle_uses_series_id() -> None:
    instance = make_task("copy", series_id="origin")

    result = DoTodayLedger().toggle(instance, DAY, frozenset())

    assert result.off_ids == {"origin"}


def test_recurring_series_cannot_be_excluded() -> None:
    template = make_template("R", RecurrenceType.DAILY, DAY)

    with pytest.raises(TaskNotExcludableError):
        DoTodayLedger().toggle(template, DAY, frozenset())
    assert is_do_today(template, frozenset({"R"}))


def test_toggle_all_tie_turns_everything_on() -> None:
    tasks = [make_task(task_id) for task_id in "ABCD"]

    result = DoTodayLedger().toggle_all(tasks, DAY, frozenset({"A", "B"}))

    assert result.off_ids == frozenset()
    assert set(result.batch.remove) == {"A", "B", "C", "D"}
    assert result.batch.add == ()


def test_toggle_all_majority_on_turns_everything_off() -> None:
    tasks = [make_task(task_id) for task_id in "ABC"]

    result = DoTodayLedger().toggle_all(tasks, DAY, frozenset({"A"}))

    assert result.off_ids == {"A", "B", "C"}
    assert set(result.batch.remove) == {"A", "B", "C"}
    assert set(result.batch.add) == {"A", "B", "C"}


def test_toggle_all_ignores_recurring_and_keeps_unrelated_entries() -> None:
    tasks = [make_task("A"), make_template("R", RecurrenceType.DAILY, DAY)]

    result = DoTodayLedger().toggle_all(tasks, DAY, frozenset({"elsewhere"}))

    assert result.off_ids == {"A", "elsewhere"}
    assert result.batch.add == ("A",)


def test_toggle_all_without_candidates_is_empty() -> None:
    result = DoTodayLedger().toggle_all([], DAY, frozenset({"X"}))

    assert result.batch.is_empty
    assert result.off_ids == {"X"}
