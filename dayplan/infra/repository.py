from __future__ import annotations

import uuid
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from dayplan.domain.batches import OffLogBatch, SectionUpdate, TaskUpdate
from dayplan.domain.entities import Section, TaskRecord, UserSettings
from dayplan.domain.enums import RecurrenceType, TaskStatus
from dayplan.domain.errors import SectionNotFoundError, TaskNotFoundError

from .db import SessionLocal
from .models import DoTodayOffModel, SectionModel, TaskModel, UserSettingsModel


def _to_entity(model: TaskModel) -> TaskRecord:
    return TaskRecord(
        id=model.id,
        series_id=model.original_task_id or model.id,
        created_at=model.created_at,
        description=model.description,
        status=TaskStatus(model.status),
        recurrence=RecurrenceType(model.recurring_type),
        parent_id=model.parent_task_id,
        section_id=model.section_id,
        order=model.order or 0,
        priority=model.priority,
        category=model.category,
        due_date=model.due_date,
        notes=model.notes,
        link=model.link,
        image_url=model.image_url,
        remind_at=model.remind_at,
        completed_at=model.completed_at,
        archived_at=model.archived_at,
    )


def _to_model(user_id: str, record: TaskRecord) -> TaskModel:
    return TaskModel(
        id=record.id,
        user_id=user_id,
        original_task_id=record.series_id,
        description=record.description,
        status=record.status.value,
        recurring_type=record.recurrence.value,
        parent_task_id=record.parent_id,
        section_id=record.section_id,
        order=record.order,
        priority=record.priority,
        category=record.category,
        due_date=record.due_date,
        notes=record.notes,
        link=record.link,
        image_url=record.image_url,
        remind_at=record.remind_at,
        created_at=record.created_at,
        completed_at=record.completed_at,
        archived_at=record.archived_at,
    )


def _to_section(model: SectionModel) -> Section:
    return Section(
        id=model.id,
        name=model.name,
        order=model.order or 0,
        include_in_focus_mode=model.include_in_focus_mode,
    )


def _matches(column, value):
    return column.is_(None) if value is None else column == value


class TaskRepository:
    """SQLAlchemy-backed store for task rows, sections, the off-log and user settings."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_series(self, user_id: str) -> list[TaskRecord]:
        with self._session_factory() as session:
            stmt = (
                select(TaskModel)
                .where(TaskModel.user_id == user_id)
                .order_by(TaskModel.created_at.asc(), TaskModel.id.asc())
            )
            return [_to_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            return _to_entity(task) if task else None

    def list_sections(self, user_id: str) -> list[Section]:
        with self._session_factory() as session:
            stmt = (
                select(SectionModel)
                .where(SectionModel.user_id == user_id)
                .order_by(SectionModel.order.asc(), SectionModel.id.asc())
            )
            return [_to_section(section) for section in session.scalars(stmt)]

    def list_off_log(self, user_id: str, day: date) -> frozenset[str]:
        with self._session_factory() as session:
            stmt = select(DoTodayOffModel.task_id).where(
                DoTodayOffModel.user_id == user_id,
                DoTodayOffModel.off_date == day,
            )
            return frozenset(session.scalars(stmt))

    def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        with self._session_factory() as session:
            row = session.get(UserSettingsModel, user_id)
            if not row:
                return None
            return UserSettings(
                user_id=row.user_id,
                focused_task_id=row.focused_task_id,
                future_tasks_days_visible=row.future_tasks_days_visible,
                focus_tasks_only=row.focus_tasks_only,
            )

    def save_user_settings(self, settings: UserSettings) -> None:
        with self._session_factory() as session:
            row = session.get(UserSettingsModel, settings.user_id)
            if not row:
                row = UserSettingsModel(user_id=settings.user_id)
                session.add(row)
            row.focused_task_id = settings.focused_task_id
            row.future_tasks_days_visible = settings.future_tasks_days_visible
            row.focus_tasks_only = settings.focus_tasks_only
            session.commit()

    def create_task(self, user_id: str, data: dict) -> TaskRecord:
        with self._session_factory() as session:
            data = dict(data)
            task_id = data.pop("id", None) or str(uuid.uuid4())
            data.setdefault("original_task_id", task_id)
            if data.get("order") is None:
                data["order"] = self._next_order(
                    session, user_id, data.get("parent_task_id"), data.get("section_id")
                )
            task = TaskModel(id=task_id, user_id=user_id, **data)
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def update_task(self, task_id: str, data: dict) -> Optional[TaskRecord]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None
            for key, value in data.items():
                setattr(task, key, value)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def create_section(
        self, user_id: str, name: str, include_in_focus_mode: bool = True
    ) -> Section:
        with self._session_factory() as session:
            max_order = session.scalar(
                select(func.max(SectionModel.order)).where(SectionModel.user_id == user_id)
            )
            section = SectionModel(
                id=str(uuid.uuid4()),
                user_id=user_id,
                name=name,
                order=0 if max_order is None else max_order + 1,
                include_in_focus_mode=include_in_focus_mode,
            )
            session.add(section)
            session.commit()
            session.refresh(section)
            return _to_section(section)

    def update_section(self, section_id: str, data: dict) -> Section:
        with self._session_factory() as session:
            section = session.get(SectionModel, section_id)
            if not section:
                raise SectionNotFoundError(section_id)
            for key, value in data.items():
                setattr(section, key, value)
            session.commit()
            session.refresh(section)
            return _to_section(section)

    def delete_section(
        self,
        user_id: str,
        section_id: str,
        updates: Iterable[TaskUpdate] = (),
        realized: Iterable[TaskRecord] = (),
    ) -> None:
        with self._session_factory() as session:
            section = session.get(SectionModel, section_id)
            if not section:
                raise SectionNotFoundError(section_id)
            self._insert_realized(session, user_id, realized)
            self._apply_updates(session, updates)
            session.execute(
                update(TaskModel)
                .where(TaskModel.user_id == user_id, TaskModel.section_id == section_id)
                .values(section_id=None)
            )
            session.delete(section)
            session.commit()

    def insert_realized_task(self, user_id: str, record: TaskRecord) -> str:
        with self._session_factory() as session:
            session.add(_to_model(user_id, record))
            session.commit()
            return record.id

    def bulk_update_tasks(
        self,
        user_id: str,
        task_ids: Iterable[str],
        data: dict,
        realized: Iterable[TaskRecord] = (),
    ) -> list[TaskRecord]:
        with self._session_factory() as session:
            self._insert_realized(session, user_id, realized)
            tasks = []
            for task_id in task_ids:
                task = session.get(TaskModel, task_id)
                if not task:
                    raise TaskNotFoundError(task_id)
                for key, value in data.items():
                    setattr(task, key, value)
                tasks.append(task)
            session.commit()
            return [_to_entity(task) for task in tasks]

    def delete_tasks(
        self,
        user_id: str,
        task_ids: Iterable[str],
        series_ids: Iterable[str] = (),
        updates: Iterable[TaskUpdate] = (),
        realized: Iterable[TaskRecord] = (),
    ) -> list[str]:
        """Delete tasks, whole series and every subtask below them, then renumber."""
        with self._session_factory() as session:
            self._insert_realized(session, user_id, realized)
            doomed = set(task_ids)
            series_ids = list(series_ids)
            if series_ids:
                doomed.update(
                    session.scalars(
                        select(TaskModel.id).where(
                            TaskModel.user_id == user_id,
                            TaskModel.original_task_id.in_(series_ids),
                        )
                    )
                )
            frontier = set(doomed)
            while frontier:
                children = set(
                    session.scalars(
                        select(TaskModel.id).where(
                            TaskModel.user_id == user_id,
                            TaskModel.parent_task_id.in_(list(frontier)),
                        )
                    )
                )
                frontier = children - doomed
                doomed |= frontier
            session.execute(
                delete(TaskModel).where(
                    TaskModel.user_id == user_id,
                    TaskModel.id.in_(list(doomed)),
                )
            )
            session.execute(
                delete(DoTodayOffModel).where(
                    DoTodayOffModel.user_id == user_id,
                    DoTodayOffModel.task_id.in_(list(doomed)),
                )
            )
            self._apply_updates(session, updates)
            session.commit()
            return sorted(doomed)

    def apply_task_batch(self, updates: Iterable[TaskUpdate]) -> None:
        with self._session_factory() as session:
            self._apply_updates(session, updates)
            session.commit()

    def apply_reorder(
        self, user_id: str, realized: Iterable[TaskRecord], updates: Iterable[TaskUpdate]
    ) -> None:
        with self._session_factory() as session:
            self._insert_realized(session, user_id, realized)
            self._apply_updates(session, updates)
            session.commit()

    def apply_off_log_batch(self, user_id: str, batch: OffLogBatch) -> None:
        with self._session_factory() as session:
            if batch.remove:
                session.execute(
                    delete(DoTodayOffModel).where(
                        DoTodayOffModel.user_id == user_id,
                        DoTodayOffModel.off_date == batch.day,
                        DoTodayOffModel.task_id.in_(batch.remove),
                    )
                )
            for series_id in batch.add:
                session.add(DoTodayOffModel(user_id=user_id, task_id=series_id, off_date=batch.day))
            session.commit()

    def apply_section_batch(self, updates: Iterable[SectionUpdate]) -> None:
        with self._session_factory() as session:
            for change in updates:
                section = session.get(SectionModel, change.id)
                if not section:
                    raise SectionNotFoundError(change.id)
                section.order = change.order
            session.commit()

    @staticmethod
    def _apply_updates(session: Session, updates: Iterable[TaskUpdate]) -> None:
        for change in updates:
            task = session.get(TaskModel, change.id)
            if not task:
                raise TaskNotFoundError(change.id)
            task.order = change.order
            task.parent_task_id = change.parent_id
            task.section_id = change.section_id

    @staticmethod
    def _next_order(
        session: Session, user_id: str, parent_id: str | None, section_id: str | None
    ) -> int:
        max_order = session.scalar(
            select(func.max(TaskModel.order)).where(
                TaskModel.user_id == user_id,
                _matches(TaskModel.parent_task_id, parent_id),
                _matches(TaskModel.section_id, section_id),
            )
        )
        return 0 if max_order is None else max_order + 1

    @staticmethod
    def _insert_realized(session: Session, user_id: str, realized: Iterable[TaskRecord]) -> None:
        records = list(realized)
        if records:
            session.add_all(_to_model(user_id, record) for record in records)
            session.flush()
