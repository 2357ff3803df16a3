"""Regular lattices for spatially structured populations.

A Lattice is a finite box of integer sites with a fixed neighbor offset
list (the coordination number z is the number of offsets):

  - SQUARE     2-D, z = 4:  (±1, 0), (0, ±1)
  - HEXAGONAL  2-D, z = 6:  axial coordinates, (±1, 0), (0, ±1), (1, −1), (−1, 1)
  - CUBIC      3-D, z = 6:  (±1, 0, 0), (0, ±1, 0), (0, 0, ±1)

Sites are numbered in row-major (C) order. The neighbor table is built
once as an (n_sites, z) int array; with periodic boundaries every row is
full, otherwise off-box neighbors are marked −1 and skipped.

The lattice also records the occupant of every site. A lattice space
requires every site to hold exactly one distinct cell.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from moran_evo.errors import StateError, ValidationError
from moran_evo.types import _ParsableEnum


# ═══════════════════════════════════════════════════════════════════════
# COORDINATES
# ═══════════════════════════════════════════════════════════════════════

class Coord(tuple):
    """Immutable integer coordinate; compares by value.

    ``Coord.POINT`` is the zero-dimensional origin shared by every cell of
    a space without geometry.
    """

    __slots__ = ()

    POINT: 'Coord'

    def __new__(cls, components: Iterable[int] = ()):
        return super().__new__(cls, (int(c) for c in components))

    @property
    def dimension(self) -> int:
        return len(self)

    def header(self) -> List[str]:
        if len(self) <= 3:
            return ['x', 'y', 'z'][:len(self)]
        return [f"x{k}" for k in range(len(self))]

    def format(self) -> List[str]:
        return [str(c) for c in self]

    def __repr__(self) -> str:
        return f"Coord{tuple(self)!r}"


Coord.POINT = Coord()


# ═══════════════════════════════════════════════════════════════════════
# LATTICE TYPES
# ═══════════════════════════════════════════════════════════════════════

class LatticeType(_ParsableEnum):
    SQUARE = 0
    HEXAGONAL = 1
    CUBIC = 2


_OFFSETS: Dict[LatticeType, np.ndarray] = {
    LatticeType.SQUARE: np.array(
        [(1, 0), (-1, 0), (0, 1), (0, -1)], dtype=np.int64),
    LatticeType.HEXAGONAL: np.array(
        [(1, 0), (-1, 0), (0, 1), (0, -1), (1, -1), (-1, 1)], dtype=np.int64),
    LatticeType.CUBIC: np.array(
        [(1, 0, 0), (-1, 0, 0), (0, 1, 0), (0, -1, 0), (0, 0, 1), (0, 0, -1)],
        dtype=np.int64),
}

# Periodic boxes narrower than this alias a site's opposite neighbors.
PERIODIC_MINIMUM_EXTENT = 3


class Lattice:
    """Finite box of lattice sites with a precomputed neighbor table.

    Args:
        lattice_type: SQUARE, HEXAGONAL or CUBIC (enum or name).
        shape: Number of sites along each axis (2 or 3 axes, matching
            the lattice type).
        periodic: Wrap neighbors around the box edges.
        spacing: Lattice constant (distance between adjacent sites).

    Raises:
        ValidationError: On a dimension mismatch, a non-positive extent
            or spacing, or a periodic extent below 3.
    """

    def __init__(self, lattice_type, shape: Sequence[int],
                 periodic: bool = True, spacing: float = 1.0):
        if isinstance(lattice_type, str):
            try:
                lattice_type = LatticeType.parse(lattice_type)
            except ValueError as exc:
                raise ValidationError(str(exc)) from None
        lattice_type = LatticeType(lattice_type)

        offsets = _OFFSETS[lattice_type]
        shape = tuple(int(n) for n in shape)
        if len(shape) != offsets.shape[1]:
            raise ValidationError(
                f"A {lattice_type.name} lattice needs {offsets.shape[1]} extents, "
                f"got {len(shape)}."
            )
        if min(shape) < 1:
            raise ValidationError(f"Lattice extents must be positive, got {shape}.")
        if periodic and min(shape) < PERIODIC_MINIMUM_EXTENT:
            raise ValidationError(
                f"Periodic lattice extents must be at least {PERIODIC_MINIMUM_EXTENT}, "
                f"got {shape}."
            )
        if not spacing > 0.0:
            raise ValidationError(f"Lattice spacing must be positive, got {spacing}.")

        self.lattice_type = lattice_type
        self.shape = shape
        self.periodic = bool(periodic)
        self.spacing = float(spacing)

        self._n_sites = int(np.prod(shape))
        self._neighbors = self._build_neighbor_table(offsets)
        self._occupants: List[Any] = [None] * self._n_sites
        self._n_occupied = 0

    @classmethod
    def parse(cls, text: str, periodic: bool = True) -> 'Lattice':
        """Parse ``"TYPE; spacing; n1, n2[, n3]"``, e.g. ``"HEXAGONAL; 1.0; 100, 100"``.

        Raises:
            ValidationError: If the text is malformed.
        """
        fields = [f.strip() for f in text.split(';')]
        if len(fields) != 3:
            raise ValidationError(f"Invalid lattice definition: '{text}'.")
        try:
            spacing = float(fields[1])
            shape = [int(n) for n in fields[2].split(',')]
        except ValueError:
            raise ValidationError(f"Invalid lattice definition: '{text}'.") from None
        return cls(fields[0], shape, periodic=periodic, spacing=spacing)

    def _build_neighbor_table(self, offsets: np.ndarray) -> np.ndarray:
        dims = np.array(self.shape, dtype=np.int64)
        coords = np.stack(np.unravel_index(np.arange(self._n_sites), self.shape), axis=1)

        table = np.empty((self._n_sites, len(offsets)), dtype=np.int64)
        for k, offset in enumerate(offsets):
            target = coords + offset
            if self.periodic:
                target %= dims
                table[:, k] = np.ravel_multi_index(tuple(target.T), self.shape)
            else:
                inside = ((target >= 0) & (target < dims)).all(axis=1)
                clipped = np.clip(target, 0, dims - 1)
                table[:, k] = np.where(
                    inside, np.ravel_multi_index(tuple(clipped.T), self.shape), -1)

        table.flags.writeable = False
        return table

    # ── Geometry ──────────────────────────────────────────────────────

    @property
    def n_sites(self) -> int:
        return self._n_sites

    @property
    def coordination_number(self) -> int:
        return self._neighbors.shape[1]

    @property
    def neighbor_table(self) -> np.ndarray:
        """Read-only (n_sites, z) site table; −1 marks an off-box neighbor."""
        return self._neighbors

    def coord(self, site: int) -> Coord:
        return Coord(np.unravel_index(site, self.shape))

    def site(self, coord: Sequence[int]) -> Optional[int]:
        """Site index of ``coord``, or None if it lies outside the box."""
        if len(coord) != len(self.shape):
            return None
        if any(not 0 <= c < n for c, n in zip(coord, self.shape)):
            return None
        return int(np.ravel_multi_index(tuple(coord), self.shape))

    def neighbor_sites(self, site: int) -> List[int]:
        return [int(s) for s in self._neighbors[site] if s >= 0]

    def neighbor_coords(self, coord: Sequence[int]) -> List[Coord]:
        site = self.site(coord)
        if site is None:
            raise ValidationError(f"{coord!r} lies outside the lattice.")
        return [self.coord(s) for s in self.neighbor_sites(site)]

    # ── Occupancy ─────────────────────────────────────────────────────

    def occupant(self, site: int) -> Any:
        return self._occupants[site]

    def occupant_at(self, coord: Sequence[int]) -> Any:
        site = self.site(coord)
        return None if site is None else self._occupants[site]

    def occupants(self) -> Tuple[Any, ...]:
        return tuple(self._occupants)

    def is_full(self) -> bool:
        return self._n_occupied == self._n_sites

    def place(self, coord: Sequence[int], cell: Any) -> None:
        """Put ``cell`` on an empty site.

        Raises:
            ValidationError: If the site is outside the box or occupied.
        """
        site = self.site(coord)
        if site is None:
            raise ValidationError(f"{coord!r} lies outside the lattice.")
        if self._occupants[site] is not None:
            raise ValidationError(f"Lattice site {Coord(coord)!r} is already occupied.")
        self._occupants[site] = cell
        self._n_occupied += 1

    def fill(self, cells: Iterable[Any]) -> None:
        """Occupy every site, in site order, with the given cells.

        Raises:
            ValidationError: If the lattice is not empty or the cell count
                does not match the site count.
        """
        cells = list(cells)
        if self._n_occupied:
            raise ValidationError("Cannot fill a lattice that is already occupied.")
        if len(cells) != self._n_sites:
            raise ValidationError(
                f"A lattice with {self._n_sites} sites needs {self._n_sites} cells, "
                f"got {len(cells)}."
            )
        if any(cell is None for cell in cells):
            raise ValidationError("Lattice occupants must not be None.")
        self._occupants = cells
        self._n_occupied = len(cells)

    def replace_occupant(self, site: int, old: Any, new: Any) -> None:
        """Swap the occupant of ``site``.

        Raises:
            StateError: If ``old`` is not the current occupant.
        """
        if self._occupants[site] is not old:
            raise StateError(f"Lattice site {self.coord(site)!r} is not held by {old!r}.")
        self._occupants[site] = new

    def __repr__(self) -> str:
        return (f"Lattice({self.lattice_type.name}, shape={self.shape}, "
                f"periodic={self.periodic}, spacing={self.spacing})")
