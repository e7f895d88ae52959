from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text, UniqueConstraint

from .db import Base


def utcnow() -> datetime:
    return datetime.utcnow()


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    original_task_id = Column(String(64), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="todo", index=True)
    recurring_type = Column(String(20), nullable=False, default="none")
    parent_task_id = Column(String(64), nullable=True, index=True)
    section_id = Column(String(64), nullable=True, index=True)
    order = Column("order", Integer, nullable=False, default=0)
    priority = Column(String(20), nullable=False, default="medium")
    category = Column(String(100), nullable=False, default="")
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    link = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    remind_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)


class SectionModel(Base):
    __tablename__ = "task_sections"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    order = Column("order", Integer, nullable=False, default=0)
    include_in_focus_mode = Column(Boolean, nullable=False, default=True)


class DoTodayOffModel(Base):
    __tablename__ = "do_today_off_log"
    __table_args__ = (UniqueConstraint("user_id", "task_id", "off_date", name="uq_do_today_off"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    task_id = Column(String(64), nullable=False)
    off_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class UserSettingsModel(Base):
    __tablename__ = "user_settings"

    user_id = Column(String(64), primary_key=True)
    focused_task_id = Column(String(64), nullable=True)
    future_tasks_days_visible = Column(Integer, nullable=False, default=-1)
    focus_tasks_only = Column(Boolean, nullable=False, default=False)
