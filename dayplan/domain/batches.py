from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .entities import Representative, Section, TaskRecord


@dataclass(frozen=True)
class TaskUpdate:
    id: str
    order: int
    parent_id: Optional[str]
    section_id: Optional[str]


@dataclass(frozen=True)
class SectionUpdate:
    id: str
    order: int


@dataclass(frozen=True)
class OffLogBatch:
    """Ledger change for one day. Removals are applied before additions."""

    day: date
    add: tuple[str, ...] = ()
    remove: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.add and not self.remove


@dataclass(frozen=True)
class ReorderResult:
    snapshot: tuple[Representative, ...]
    batch: tuple[TaskUpdate, ...]
    moved_id: str
    realized: tuple[TaskRecord, ...] = ()


@dataclass(frozen=True)
class RenumberResult:
    """Outcome of removing tasks from, or merging, sibling groups."""

    snapshot: tuple[Representative, ...]
    batch: tuple[TaskUpdate, ...]
    realized: tuple[TaskRecord, ...] = ()
    removed_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class LedgerResult:
    off_ids: frozenset[str]
    batch: OffLogBatch


@dataclass(frozen=True)
class SectionReorderResult:
    sections: tuple[Section, ...]
    batch: tuple[SectionUpdate, ...]
