"""Fixed-size population container.

Cells live in a dense slot array plus an identity-keyed index:

    slots[k]        cell in slot k
    index[id(c)]    slot of cell c

select() draws a uniform slot; replace() swaps a cell in place. Both are
O(1), and replacement keeps the slot, so any per-slot data (spatial
location) carries over to the newcomer. Subclasses hook into replacement
through _on_replace().
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Tuple

import numpy as np

from moran_evo.errors import ValidationError
from moran_evo.models import Cell


class Population:
    """Ordered collection of distinct cells with constant size.

    Raises:
        ValidationError: If ``cells`` is empty or holds the same cell
            twice.
    """

    def __init__(self, cells: Iterable[Cell]):
        self._slots: List[Cell] = list(cells)
        if not self._slots:
            raise ValidationError("A population needs at least one cell.")

        self._index: Dict[int, int] = {}
        for slot, cell in enumerate(self._slots):
            if id(cell) in self._index:
                raise ValidationError(f"Duplicate cell in population: {cell!r}.")
            self._index[id(cell)] = slot

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def size(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Cell]:
        return iter(tuple(self._slots))

    def contains(self, cell: Cell) -> bool:
        slot = self._index.get(id(cell))
        return slot is not None and self._slots[slot] is cell

    def __contains__(self, cell: Cell) -> bool:
        return self.contains(cell)

    def list(self) -> Tuple[Cell, ...]:
        """Read-only snapshot of the cells in slot order."""
        return tuple(self._slots)

    def index_of(self, cell: Cell) -> int:
        """Slot of ``cell``.

        Raises:
            ValidationError: If the cell is not a member.
        """
        if not self.contains(cell):
            raise ValidationError(f"Cell is not a population member: {cell!r}.")
        return self._index[id(cell)]

    def cell_at_slot(self, slot: int) -> Cell:
        return self._slots[slot]

    # ── Updates ───────────────────────────────────────────────────────

    def select(self, rng: np.random.Generator) -> Cell:
        """Uniformly random member."""
        return self._slots[rng.integers(len(self._slots))]

    def replace(self, old: Cell, new: Cell) -> int:
        """Put ``new`` into the slot held by ``old``.

        Returns:
            The slot that changed occupant.

        Raises:
            ValidationError: If ``old`` is not a member or ``new``
                already is.
        """
        if not self.contains(old):
            raise ValidationError(f"Cannot replace a cell that is not a member: {old!r}.")
        if self.contains(new):
            raise ValidationError(f"Cell is already a population member: {new!r}.")

        slot = self._index.pop(id(old))
        self._slots[slot] = new
        self._index[id(new)] = slot
        self._on_replace(slot, old, new)
        return slot

    def _on_replace(self, slot: int, old: Cell, new: Cell) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(size={len(self._slots)})"
