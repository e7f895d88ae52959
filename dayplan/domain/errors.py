from __future__ import annotations


class DayPlanError(Exception):
    """Base class for errors raised by the planning engine and its store."""


class TaskNotFoundError(DayPlanError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id!r} is not in the current snapshot")
        self.task_id = task_id


class SectionNotFoundError(DayPlanError):
    def __init__(self, section_id: str) -> None:
        super().__init__(f"Section {section_id!r} does not exist")
        self.section_id = section_id


class InvalidMoveError(DayPlanError):
    pass


class TaskNotExcludableError(DayPlanError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Recurring task {task_id!r} cannot be taken off Do Today")
        self.task_id = task_id


class StoreError(DayPlanError):
    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class RealizationError(StoreError):
    pass


class ProtectedFieldError(DayPlanError):
    """Raised when a plain edit tries to change series membership or placement."""

    def __init__(self, fields) -> None:
        self.fields = tuple(sorted(fields))
        super().__init__(f"Fields cannot be edited directly: {', '.join(self.fields)}")
