"""Ordered, identity-addressed page sequence.

A :class:`PageSequence` is the output document in progress. Every operation
addresses elements by their stable identity, never by a captured position,
so UI events that race with other mutations degrade to no-ops instead of
touching the wrong page.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .types import PageReference, SourceDocument, normalize_rotation

LOGGER = logging.getLogger("pdfassemblex.sequence")


class PageSequence:
    """Mutable ordered list of :class:`PageReference` records."""

    def __init__(self, references: Iterable[PageReference] = ()) -> None:
        self._items: List[PageReference] = []
        self._generations: Dict[str, int] = {}
        self._selected: Set[str] = set()
        for reference in references:
            self._append(reference)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[PageReference]:
        return iter(list(self._items))

    def __contains__(self, identity: object) -> bool:
        return identity in self._generations

    def __repr__(self) -> str:
        return f"PageSequence({len(self._items)} pages)"

    @property
    def references(self) -> List[PageReference]:
        return list(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def index_of(self, identity: str) -> Optional[int]:
        for position, reference in enumerate(self._items):
            if reference.id == identity:
                return position
        return None

    def get(self, identity: str) -> Optional[PageReference]:
        position = self.index_of(identity)
        return None if position is None else self._items[position]

    def source_ids(self) -> List[str]:
        """Distinct source ids in order of first appearance."""

        return list(dict.fromkeys(reference.source_id for reference in self._items))

    # ------------------------------------------------------------------
    # Liveness
    # ------------------------------------------------------------------
    def generation(self, identity: str) -> Optional[int]:
        """Return the mutation counter of *identity*, or ``None`` once removed."""

        return self._generations.get(identity)

    def is_current(self, identity: str, generation: Optional[int]) -> bool:
        """Whether a result computed at *generation* may still be applied."""

        return generation is not None and self._generations.get(identity) == generation

    def _bump(self, identity: str) -> None:
        self._generations[identity] = self._generations.get(identity, 0) + 1

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def _append(self, reference: PageReference) -> None:
        if reference.id in self._generations:
            raise ValueError(f"Duplicate page identity: {reference.id}")
        self._items.append(reference)
        self._generations[reference.id] = 0

    def extend(self, references: Iterable[PageReference]) -> None:
        """Append existing references, e.g. a layout built elsewhere."""

        for reference in references:
            self._append(reference)

    def expand_source(self, source: SourceDocument) -> List[PageReference]:
        """Append one reference per page of *source*, in page order."""

        added = [PageReference(source_id=source.id, page_index=index) for index in range(source.page_count)]
        for reference in added:
            self._append(reference)
        LOGGER.debug("Expanded %s into %d pages", source.name, len(added))
        return added

    def move(self, identity: str, to_position: int) -> None:
        current = self.index_of(identity)
        if current is None:
            return
        to_position = max(0, min(to_position, len(self._items) - 1))
        if current == to_position:
            return
        self._items.insert(to_position, self._items.pop(current))

    def rotate(self, identity: str, delta: int = 90) -> Optional[PageReference]:
        position = self.index_of(identity)
        if position is None:
            return None
        rotated = self._items[position].rotated(delta)
        self._items[position] = rotated
        self._bump(identity)
        return rotated

    def rotate_many(self, identities: Iterable[str], delta: int = 90) -> None:
        delta = normalize_rotation(delta)
        for identity in set(identities):
            self.rotate(identity, delta)

    def remove(self, identity: str) -> Optional[PageReference]:
        position = self.index_of(identity)
        if position is None:
            return None
        removed = self._items.pop(position)
        del self._generations[identity]
        self._selected.discard(identity)
        return removed

    def remove_many(self, identities: Iterable[str]) -> List[PageReference]:
        doomed = set(identities)
        removed = [reference for reference in self._items if reference.id in doomed]
        if not removed:
            return []
        self._items = [reference for reference in self._items if reference.id not in doomed]
        for reference in removed:
            del self._generations[reference.id]
        self._selected -= doomed
        return removed

    def remove_source(self, source_id: str) -> List[PageReference]:
        """Remove every reference into *source_id*."""

        removed = self.remove_many(
            reference.id for reference in self._items if reference.source_id == source_id
        )
        if removed:
            LOGGER.debug("Removed %d pages of source %s", len(removed), source_id)
        return removed

    def clear(self) -> None:
        self._items.clear()
        self._generations.clear()
        self._selected.clear()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    @property
    def selected(self) -> List[str]:
        """Selected identities in sequence order."""

        return [reference.id for reference in self._items if reference.id in self._selected]

    def is_selected(self, identity: str) -> bool:
        return identity in self._selected

    def select(self, identity: str) -> None:
        if identity in self._generations:
            self._selected.add(identity)

    def deselect(self, identity: str) -> None:
        self._selected.discard(identity)

    def toggle_selection(self, identity: str) -> bool:
        """Flip the selection state of *identity* and return the new state."""

        if identity in self._selected:
            self._selected.discard(identity)
            return False
        self.select(identity)
        return identity in self._selected

    def clear_selection(self) -> None:
        self._selected.clear()

    def rotate_selected(self, delta: int = 90) -> None:
        self.rotate_many(self._selected, delta)

    def remove_selected(self) -> List[PageReference]:
        return self.remove_many(set(self._selected))


__all__ = ["PageSequence"]
