"""Spatial topologies over a population.

A Space is a Population that also answers neighborhood questions:

    get_neighbors(cell) -> ordered list of cells
    locate(cell)        -> Coord or None
    cell_at(coord)      -> cell or None

Three topologies:

  - PointSpace:   no geometry; every other cell is a neighbor
  - LinearSpace:  cells on a line (or ring when periodic)
  - LatticeSpace: cells on a fully occupied regular lattice

Spatial variants keep two flat integer tables, slot → site and
site → slot. Replacement keeps the slot, so the tables never change;
the lattice occupant list is updated through the replacement hook.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

import numpy as np

from moran_evo.errors import StateError, ValidationError
from moran_evo.lattice import Coord, Lattice
from moran_evo.models import Cell, CellFactory
from moran_evo.population import Population
from moran_evo.types import LINEAR_MINIMUM_SIZE


class Space(Population):
    """Population with a neighborhood structure (abstract)."""

    def get_neighbors(self, cell: Cell) -> List[Cell]:
        raise NotImplementedError

    def locate(self, cell: Cell) -> Optional[Coord]:
        raise NotImplementedError

    def cell_at(self, coord: Sequence[int]) -> Optional[Cell]:
        raise NotImplementedError

    def _slot(self, cell: Cell) -> int:
        if not self.contains(cell):
            raise StateError(f"Cell is not a member of this space: {cell!r}.")
        return self._index[id(cell)]


# ═══════════════════════════════════════════════════════════════════════
# POINT
# ═══════════════════════════════════════════════════════════════════════

class PointSpace(Space):
    """Well-mixed population: all cells share the origin."""

    def get_neighbors(self, cell: Cell) -> List[Cell]:
        self._slot(cell)
        return [other for other in self._slots if other is not cell]

    def locate(self, cell: Cell) -> Optional[Coord]:
        return Coord.POINT if self.contains(cell) else None

    def cell_at(self, coord: Sequence[int]) -> Optional[Cell]:
        return None


# ═══════════════════════════════════════════════════════════════════════
# LINEAR
# ═══════════════════════════════════════════════════════════════════════

class LinearSpace(Space):
    """Cells at positions 0..N−1 in input order.

    Interior cells have neighbors [i−1, i+1]. End cells have one neighbor
    with hard walls; with periodic boundaries position 0 has [N−1, 1] and
    position N−1 has [N−2, 0].

    Raises:
        ValidationError: If fewer than 3 cells are given.
    """

    def __init__(self, cells: Iterable[Cell], periodic: bool = False):
        super().__init__(cells)
        n = len(self._slots)
        if n < LINEAR_MINIMUM_SIZE:
            raise ValidationError(
                f"A linear space needs at least {LINEAR_MINIMUM_SIZE} cells, got {n}."
            )
        self.periodic = bool(periodic)

        self._slot_to_site = np.arange(n)
        self._site_to_slot = np.arange(n)
        self._neighbor_sites = [self._sites_next_to(pos, n) for pos in range(n)]

    def _sites_next_to(self, pos: int, n: int) -> List[int]:
        if pos == 0:
            return [n - 1, 1] if self.periodic else [1]
        if pos == n - 1:
            return [n - 2, 0] if self.periodic else [n - 2]
        return [pos - 1, pos + 1]

    def get_neighbors(self, cell: Cell) -> List[Cell]:
        site = self._slot_to_site[self._slot(cell)]
        return [self._slots[self._site_to_slot[s]] for s in self._neighbor_sites[site]]

    def locate(self, cell: Cell) -> Optional[Coord]:
        if not self.contains(cell):
            return None
        return Coord((self._slot_to_site[self._index[id(cell)]],))

    def cell_at(self, coord: Sequence[int]) -> Optional[Cell]:
        if len(coord) != 1 or not 0 <= coord[0] < len(self._slots):
            return None
        return self._slots[self._site_to_slot[coord[0]]]


# ═══════════════════════════════════════════════════════════════════════
# LATTICE
# ═══════════════════════════════════════════════════════════════════════

class LatticeSpace(Space):
    """Population occupying every site of a lattice.

    Args:
        lattice: Fully occupied lattice; its occupants, in site order,
            become the population.

    Raises:
        ValidationError: If the lattice has an empty site or holds the
            same cell twice.
    """

    def __init__(self, lattice: Lattice):
        if not lattice.is_full():
            raise ValidationError("Every lattice site must be occupied.")
        super().__init__(lattice.occupants())

        self.lattice = lattice
        self._slot_to_site = np.arange(lattice.n_sites)
        self._site_to_slot = np.arange(lattice.n_sites)

    def get_neighbors(self, cell: Cell) -> List[Cell]:
        site = self._slot_to_site[self._slot(cell)]
        neighbors = []
        for nb in self.lattice.neighbor_sites(site):
            occupant = self.lattice.occupant(nb)
            if occupant is None:
                raise StateError(
                    f"No cell at lattice site {self.lattice.coord(nb)!r}."
                )
            neighbors.append(occupant)
        return neighbors

    def locate(self, cell: Cell) -> Optional[Coord]:
        if not self.contains(cell):
            return None
        return self.lattice.coord(self._slot_to_site[self._index[id(cell)]])

    def cell_at(self, coord: Sequence[int]) -> Optional[Cell]:
        return self.lattice.occupant_at(coord)

    def _on_replace(self, slot: int, old: Cell, new: Cell) -> None:
        self.lattice.replace_occupant(int(self._slot_to_site[slot]), old, new)


# ═══════════════════════════════════════════════════════════════════════
# FACTORIES
# ═══════════════════════════════════════════════════════════════════════

def point_space(cells: Iterable[Cell]) -> PointSpace:
    return PointSpace(cells)


def linear_space(cells: Iterable[Cell], periodic: bool = False) -> LinearSpace:
    return LinearSpace(cells, periodic)


def lattice_space(lattice: Lattice, cells: Optional[Iterable[Cell]] = None) -> LatticeSpace:
    """Lattice space, filling an empty lattice with ``cells`` first if given."""
    if cells is not None:
        lattice.fill(cells)
    return LatticeSpace(lattice)


def build_space(section: Any, factory: CellFactory) -> Space:
    """Build a founder-filled space from a ``SpaceSection``-like object.

    Args:
        section: Object with ``structure``, ``size``, ``periodic``,
            ``lattice_type``, ``lattice_shape`` and ``lattice_periodic``
            attributes.
        factory: Cell factory supplying founder cells.

    Raises:
        ValidationError: For an unknown structure or invalid geometry.
    """
    structure = section.structure.lower()

    if structure == 'point':
        return point_space(factory.founders(section.size))
    if structure == 'linear':
        return linear_space(factory.founders(section.size), section.periodic)
    if structure == 'lattice':
        lattice = Lattice(section.lattice_type, section.lattice_shape,
                          periodic=section.lattice_periodic)
        return lattice_space(lattice, factory.founders(lattice.n_sites))

    raise ValidationError(f"Unknown space structure: '{section.structure}'.")
