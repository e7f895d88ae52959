from __future__ import annotations

from dataclasses import dataclass

from .enums import ViewMode

ALL = "all"
NO_SECTION = "no-section"


@dataclass(frozen=True)
class FilterState:
    view_mode: ViewMode = ViewMode.DAILY
    search: str | None = None
    status: str = ALL
    category: str = ALL
    priority: str = ALL
    section: str = ALL
    focus_only: bool = False
    future_days_visible: int = -1
