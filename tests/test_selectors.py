from __future__ import annotations

from datetime import date, datetime

from dayplan.domain.entities import Real, Section
from dayplan.domain.enums import RecurrenceType, TaskStatus
from dayplan.services.selectors import DailyProgress, NextTaskSelector, ProgressAggregator

from fakes import make_task, make_template

TODAY = date(2024, 6, 10)
SECTIONS = [
    Section(id="later", name="Later", order=1, include_in_focus_mode=False),
    Section(id="first", name="First", order=0),
]


def test_pinned_task_wins_when_open() -> None:
    tasks = [
        Real(make_task("top", section_id="first", order=0)),
        Real(make_task("pinned", section_id="later", order=5)),
    ]

    chosen = NextTaskSelector().select(tasks, SECTIONS, frozenset(), focused_task_id="pinned")

    assert chosen.id == "pinned"


def test_pinned_task_ignored_when_done_or_off_today() -> None:
    tasks = [
        Real(make_task("top", section_id="first", order=0)),
        Real(make_task("done", status=TaskStatus.COMPLETED)),
        Real(make_task("off")),
    ]
    selector = NextTaskSelector()

    assert selector.select(tasks, SECTIONS, frozenset(), "done").id == "top"
    assert selector.select(tasks, SECTIONS, frozenset({"off"}), "off").id == "top"


def test_first_task_of_first_section_in_configured_order() -> None:
    tasks = [
        Real(make_task("l0", section_id="later", order=0)),
        Real(make_task("f1", section_id="first", order=1)),
        Real(make_task("f0-sub", section_id="first", order=0, parent_id="f1")),
        Real(make_task("f0-done", section_id="first", order=0, status=TaskStatus.COMPLETED)),
        Real(make_task("loose", order=0)),
    ]

    assert NextTaskSelector().select(tasks, SECTIONS, frozenset()).id == "f1"


def test_falls_back_to_unsectioned_then_none() -> None:
    recurring = make_template("R", RecurrenceType.DAILY, date(2024, 1, 1), order=1)
    tasks = [Real(make_task("off", order=0)), Real(recurring)]
    selector = NextTaskSelector()

    assert selector.select(tasks, SECTIONS, frozenset({"off", "R"})).id == "R"
    assert selector.select([Real(make_task("off"))], SECTIONS, frozenset({"off"})) is None


def test_progress_counts_focus_eligible_tasks_for_today() -> None:
    tasks = [
        Real(make_task("open", due_date=TODAY)),
        Real(make_task("late", due_date=date(2024, 6, 8))),
        Real(make_task("done", status=TaskStatus.COMPLETED, completed_at=datetime(2024, 6, 10, 11))),
        Real(make_task("arch", status=TaskStatus.ARCHIVED, archived_at=datetime(2024, 6, 10, 12))),
        Real(make_task("hidden-section", section_id="later")),
        Real(make_task("subtask", parent_id="open")),
        Real(make_task("off")),
        Real(make_task("future", due_date=date(2024, 6, 11))),
        Real(make_task("old-done", status=TaskStatus.COMPLETED, completed_at=datetime(2024, 6, 9))),
    ]

    progress = ProgressAggregator().aggregate(tasks, SECTIONS, frozenset({"off"}), TODAY)

    assert progress == DailyProgress(total_count=4, completed_count=2, overdue_count=1)


def test_due_today_is_not_overdue() -> None:
    tasks = [Real(make_task("today", due_date=TODAY))]

    progress = ProgressAggregator().aggregate(tasks, [], frozenset(), TODAY)

    assert progress.overdue_count == 0
    assert progress.total_count == 1
