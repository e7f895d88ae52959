from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from dayplan.domain.batches import SectionReorderResult, SectionUpdate
from dayplan.domain.entities import Section
from dayplan.domain.errors import SectionNotFoundError


def ordered(sections: Sequence[Section]) -> list[Section]:
    return sorted(sections, key=lambda section: (section.order, section.id))


def reorder_sections(
    sections: Sequence[Section], active_id: str, over_id: str
) -> SectionReorderResult:
    """Move ``active_id`` into the slot held by ``over_id`` and renumber every section."""
    current = ordered(sections)
    ids = [section.id for section in current]
    for section_id in (active_id, over_id):
        if section_id not in ids:
            raise SectionNotFoundError(section_id)

    moving = current.pop(ids.index(active_id))
    current.insert(ids.index(over_id), moving)

    renumbered = tuple(replace(section, order=order) for order, section in enumerate(current))
    batch = tuple(SectionUpdate(section.id, section.order) for section in renumbered)
    return SectionReorderResult(sections=renumbered, batch=batch)
