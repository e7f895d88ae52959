from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from dayplan.domain.batches import RenumberResult, ReorderResult, TaskUpdate
from dayplan.domain.entities import Real, Representative, TaskRecord, Virtual
from dayplan.domain.errors import InvalidMoveError, TaskNotFoundError

logger = logging.getLogger(__name__)

GroupKey = tuple[Optional[str], Optional[str]]


def new_task_id() -> str:
    return str(uuid.uuid4())


def realize(virtual: Virtual, id_factory: Callable[[], str] = new_task_id) -> TaskRecord:
    """Persistable copy of a virtual occurrence under a fresh id, same series."""
    return replace(virtual.task, id=id_factory())


def find(snapshot: Sequence[Representative], task_id: str) -> Representative:
    for item in snapshot:
        if item.id == task_id:
            return item
    raise TaskNotFoundError(task_id)


def replace_item(
    snapshot: Sequence[Representative], old_id: str, new: Representative
) -> tuple[Representative, ...]:
    return tuple(new if item.id == old_id else item for item in snapshot)


def _sibling_sort_key(task: TaskRecord):
    created = task.created_at
    return (task.order, created if isinstance(created, datetime) else datetime.min, task.id)


def siblings(snapshot: Sequence[Representative], key: GroupKey) -> list[TaskRecord]:
    return sorted(
        (item.task for item in snapshot if item.task.group_key == key),
        key=_sibling_sort_key,
    )


def descendants(snapshot: Sequence[Representative], task_id: str) -> list[str]:
    children: dict[str, list[str]] = {}
    for item in snapshot:
        if item.task.parent_id is not None:
            children.setdefault(item.task.parent_id, []).append(item.id)
    found: list[str] = []
    frontier = [task_id]
    while frontier:
        current = frontier.pop()
        for child in children.get(current, ()):
            if child not in found and child != task_id:
                found.append(child)
                frontier.append(child)
    return found


def _ancestors(snapshot: Sequence[Representative], parent_id: str | None) -> list[str]:
    parents = {item.id: item.task.parent_id for item in snapshot}
    chain: list[str] = []
    while parent_id is not None and parent_id not in chain:
        chain.append(parent_id)
        parent_id = parents.get(parent_id)
    return chain


def _renumber(group: Iterable[TaskRecord], key: GroupKey, updates: dict[str, TaskUpdate]) -> None:
    for order, task in enumerate(group):
        updates[task.id] = TaskUpdate(task.id, order, *key)


class ReorderEngine:
    """Computes order/parent/section reassignments for a drag between sibling groups.

    Every group an operation renumbers is realized first: a virtual occurrence
    takes its order from its template on each pass, so it can only hold a new
    position once it has a row of its own.
    """

    def __init__(self, id_factory: Callable[[], str] = new_task_id) -> None:
        self._id_factory = id_factory

    def realize_virtual(
        self, snapshot: Sequence[Representative], task_id: str
    ) -> tuple[tuple[Representative, ...], TaskRecord]:
        match find(snapshot, task_id):
            case Real(task=task):
                return tuple(snapshot), task
            case Virtual() as item:
                record = realize(item, self._id_factory)
                logger.info("Realized %s as %s", item.id, record.id)
                return replace_item(snapshot, item.id, Real(record)), record

    def realize_all(
        self, snapshot: Sequence[Representative], task_ids: Iterable[str]
    ) -> tuple[tuple[Representative, ...], dict[str, str], tuple[TaskRecord, ...]]:
        """Realize the virtual ones among ``task_ids``.

        Returns the new snapshot, a map from every given id to its persisted id,
        and the records that need inserting.
        """
        snapshot = tuple(snapshot)
        ids: dict[str, str] = {}
        realized: list[TaskRecord] = []
        for task_id in task_ids:
            if task_id in ids:
                continue
            snapshot, record = self.realize_virtual(snapshot, task_id)
            ids[task_id] = record.id
            if record.id != task_id:
                realized.append(record)
        return snapshot, ids, tuple(realized)

    def realize_groups(
        self, snapshot: Sequence[Representative], keys: Iterable[GroupKey]
    ) -> tuple[tuple[Representative, ...], dict[str, str], tuple[TaskRecord, ...]]:
        wanted = set(keys)
        members = [
            item.id
            for item in snapshot
            if isinstance(item, Virtual) and item.task.group_key in wanted
        ]
        return self.realize_all(snapshot, members)

    def reorder(
        self,
        snapshot: Sequence[Representative],
        moved_id: str,
        parent_id: str | None,
        section_id: str | None,
        over_id: str | None = None,
        dragging_down: bool = False,
    ) -> ReorderResult:
        source_key = find(snapshot, moved_id).task.group_key
        target_key: GroupKey = (parent_id, section_id)
        wanted = [moved_id]
        if parent_id is not None and any(item.id == parent_id for item in snapshot):
            wanted.append(parent_id)
        snapshot, ids, realized = self.realize_all(snapshot, wanted)
        snapshot, group_ids, group_realized = self.realize_groups(snapshot, [source_key, target_key])
        ids.update(group_ids)
        realized += group_realized

        moved = find(snapshot, ids[moved_id]).task
        if parent_id is not None:
            parent_id = ids.get(parent_id, parent_id)
            target_key = (parent_id, section_id)
            if parent_id == moved.id or moved.id in _ancestors(snapshot, parent_id):
                raise InvalidMoveError(f"Task {moved.id!r} cannot be nested under itself")
        if over_id is not None:
            over_id = ids.get(over_id, over_id)

        source = siblings(snapshot, source_key)
        target = [task for task in siblings(snapshot, target_key) if task.id != moved.id]

        target_ids = [task.id for task in target]
        if over_id is not None and over_id in target_ids:
            index = target_ids.index(over_id) + (1 if dragging_down else 0)
        elif over_id == moved.id and source_key == target_key:
            index = [task.id for task in source].index(moved.id)
        else:
            index = len(target)

        moved = replace(moved, parent_id=parent_id, section_id=section_id)
        target.insert(index, moved)

        updates: dict[str, TaskUpdate] = {}
        if source_key != target_key:
            _renumber((task for task in source if task.id != moved.id), source_key, updates)
        _renumber(target, target_key, updates)

        logger.debug(
            "Moved %s from %s to %s at %d, %d updates, %d realized",
            moved.id,
            source_key,
            target_key,
            index,
            len(updates),
            len(realized),
        )
        return ReorderResult(
            snapshot=tuple(_apply(entry, updates) for entry in snapshot),
            batch=tuple(updates.values()),
            moved_id=moved.id,
            realized=realized,
        )

    def remove(self, snapshot: Sequence[Representative], task_ids: Iterable[str]) -> RenumberResult:
        """Drop ``task_ids`` and their subtasks, closing the gaps they leave."""
        snapshot = tuple(snapshot)
        removed: list[str] = []
        for task_id in task_ids:
            find(snapshot, task_id)
            for candidate in [task_id, *descendants(snapshot, task_id)]:
                if candidate not in removed:
                    removed.append(candidate)

        keys = {item.task.group_key for item in snapshot if item.id in removed}
        remaining = tuple(item for item in snapshot if item.id not in removed)
        keys = {key for key in keys if key[0] not in removed}
        remaining, _, realized = self.realize_groups(remaining, keys)

        updates: dict[str, TaskUpdate] = {}
        for key in sorted(keys, key=str):
            _renumber(siblings(remaining, key), key, updates)
        return RenumberResult(
            snapshot=tuple(_apply(entry, updates) for entry in remaining),
            batch=tuple(updates.values()),
            realized=realized,
            removed_ids=tuple(removed),
        )

    def dissolve_section(self, snapshot: Sequence[Representative], section_id: str) -> RenumberResult:
        """Move every task of ``section_id`` to the end of its unsectioned sibling group."""
        moving_keys = {
            item.task.group_key for item in snapshot if item.task.section_id == section_id
        }
        merged_keys = {(parent_id, None) for parent_id, _ in moving_keys}
        snapshot, _, realized = self.realize_groups(snapshot, moving_keys | merged_keys)

        updates: dict[str, TaskUpdate] = {}
        for key in sorted(merged_keys, key=str):
            merged = siblings(snapshot, key) + siblings(snapshot, (key[0], section_id))
            _renumber(merged, key, updates)
        return RenumberResult(
            snapshot=tuple(_apply(entry, updates) for entry in snapshot),
            batch=tuple(updates.values()),
            realized=realized,
        )


def _apply(item: Representative, updates: dict[str, TaskUpdate]) -> Representative:
    update = updates.get(item.id)
    if update is None:
        return item
    task = replace(
        item.task,
        order=update.order,
        parent_id=update.parent_id,
        section_id=update.section_id,
    )
    return replace(item, task=task)
