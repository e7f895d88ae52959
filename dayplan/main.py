from __future__ import annotations

import argparse
import logging
import sys
from datetime import date

from dayplan.config import SETTINGS
from dayplan.domain.entities import Virtual
from dayplan.infra.db import init_db
from dayplan.infra.logging import setup_logging
from dayplan.infra.repository import TaskRepository
from dayplan.services.task_service import TaskService

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="dayplan", description="Print the plan for a day.")
    parser.add_argument("--user", default=SETTINGS.default_user_id, help="user id (DAYPLAN_USER_ID)")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="YYYY-MM-DD, default today")
    return parser.parse_args(argv)


def print_plan(service: TaskService, today: date) -> None:
    progress = service.daily_progress(today)
    print(
        f"{today.isoformat()}: {progress.completed_count}/{progress.total_count} done, "
        f"{progress.overdue_count} overdue"
    )

    next_task = service.next_available_task(today)
    if next_task is not None:
        print(f"Next: {next_task.task.description}")

    section_names = {section.id: section.name for section in service.sections(today)}
    for item in service.today_tasks(today):
        task = item.task
        marker = "*" if isinstance(item, Virtual) else " "
        section = section_names.get(task.section_id, "-") if task.section_id else "-"
        indent = "    " if task.parent_id else ""
        print(f"{marker} {indent}[{task.status}] {task.description} ({section})")


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    setup_logging()
    if not args.user:
        print("No user given. Pass --user or set DAYPLAN_USER_ID.", file=sys.stderr)
        sys.exit(2)

    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.error("Database unavailable: %s", exc)
        print(f"DB error: {exc}", file=sys.stderr)
        sys.exit(1)

    service = TaskService(TaskRepository(), args.user)
    print_plan(service, args.date or date.today())


if __name__ == "__main__":
    main()
