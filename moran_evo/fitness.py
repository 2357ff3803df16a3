"""Copy-number phenotype: fitness as a function of segment copy numbers.

The fitness matrix has one row per genome segment and one column per
copy number 0..max. A cell's fitness is the sum over segments of the
entry for that segment's current copy number:

    fitness(g) = Σ_seg  F[seg, g.count(seg)]

Chained matrices are built from one selection coefficient per segment
and direction (gain, loss) and a chain operation that maps the distance
from the germline copy number onto a fitness:

    ADD:       1 + |N − 2| · s
    MULTIPLY:  (1 + s) ^ |N − 2|
    NONE:      1 if N == 2 else 1 + s

The germline column (N = 2) is always the unit fitness.
"""

from __future__ import annotations

from typing import Mapping, Union

import numpy as np

from moran_evo.errors import ValidationError
from moran_evo.genotypes import SegmentCNGenotype
from moran_evo.segments import GenomeSegment, SegmentRegistry
from moran_evo.types import GERMLINE_COPY_NUMBER, WILD_TYPE_FITNESS, _ParsableEnum


class FitnessChainOperation(_ParsableEnum):
    """How a per-copy selection coefficient compounds with copy-number distance."""
    ADD = 0
    MULTIPLY = 1
    NONE = 2

    def compute(self, copy_num: int, coeff: float) -> float:
        """Fitness of ``copy_num`` copies given selection coefficient ``coeff``."""
        distance = abs(copy_num - GERMLINE_COPY_NUMBER)

        if self is FitnessChainOperation.ADD:
            return WILD_TYPE_FITNESS + distance * coeff
        if self is FitnessChainOperation.MULTIPLY:
            return (WILD_TYPE_FITNESS + coeff) ** distance
        return WILD_TYPE_FITNESS if distance == 0 else WILD_TYPE_FITNESS + coeff


def chained_fitness_matrix(registry: SegmentRegistry, max_copy_number: int,
                           gain_effects: Mapping[Union[str, GenomeSegment], float],
                           loss_effects: Mapping[Union[str, GenomeSegment], float],
                           operation: FitnessChainOperation) -> np.ndarray:
    """Build a fitness matrix from per-segment selection coefficients.

    Args:
        registry: Genome segments (rows).
        max_copy_number: Highest copy number (columns 0..max).
        gain_effects: Selection coefficient for copy numbers above 2,
            keyed by segment or segment key.
        loss_effects: Selection coefficient for copy numbers below 2.
        operation: Chain operation.

    Returns:
        Validated (n_segments, max_copy_number + 1) float array.

    Raises:
        ValidationError: If a segment lacks a coefficient or the result
            contains a negative fitness.
    """
    gains = _by_index(gain_effects, registry, 'gain')
    losses = _by_index(loss_effects, registry, 'loss')

    matrix = np.empty((registry.count(), max_copy_number + 1), dtype=np.float64)
    for segment in registry:
        for copy_num in range(max_copy_number + 1):
            if copy_num == GERMLINE_COPY_NUMBER:
                matrix[segment.index, copy_num] = WILD_TYPE_FITNESS
            elif copy_num > GERMLINE_COPY_NUMBER:
                matrix[segment.index, copy_num] = operation.compute(copy_num, gains[segment.index])
            else:
                matrix[segment.index, copy_num] = operation.compute(copy_num, losses[segment.index])

    validate_fitness_matrix(matrix, registry, max_copy_number)
    return matrix


def _by_index(effects, registry: SegmentRegistry, label: str) -> np.ndarray:
    values = np.full(registry.count(), np.nan)
    for key, coeff in effects.items():
        segment = key if isinstance(key, GenomeSegment) else registry.require(key)
        values[segment.index] = float(coeff)

    missing = [registry.instance(i).key for i in np.flatnonzero(np.isnan(values))]
    if missing:
        raise ValidationError(f"Missing {label} selection coefficient for: {', '.join(missing)}.")
    return values


def validate_fitness_matrix(matrix: np.ndarray, registry: SegmentRegistry,
                            max_copy_number: int) -> None:
    """Check shape (segments, max + 1) and finite, non-negative entries.

    Raises:
        ValidationError: On any violation.
    """
    matrix = np.asarray(matrix)
    expected = (registry.count(), max_copy_number + 1)
    if matrix.shape != expected:
        raise ValidationError(
            f"Fitness matrix has shape {matrix.shape}; expected {expected}."
        )
    if not np.isfinite(matrix).all():
        raise ValidationError("Fitness matrix contains unassigned or non-finite entries.")
    if (matrix < 0.0).any():
        row, col = np.argwhere(matrix < 0.0)[0]
        raise ValidationError(
            f"Negative fitness for segment '{registry.instance(row).key}' "
            f"at copy number {col}."
        )


class SegmentCNPhenotype:
    """Additive fitness over segment copy numbers.

    Args:
        matrix: (n_segments, max_copy_number + 1) non-negative array.
        registry: Segments the matrix rows refer to.
        max_copy_number: Highest copy-number column.
    """

    def __init__(self, matrix: np.ndarray, registry: SegmentRegistry,
                 max_copy_number: int):
        validate_fitness_matrix(matrix, registry, max_copy_number)
        self._matrix = np.array(matrix, dtype=np.float64)
        self._matrix.flags.writeable = False
        self._rows = np.arange(registry.count())
        self._registry = registry
        self._max_cn = int(max_copy_number)

    @classmethod
    def neutral(cls, registry: SegmentRegistry, max_copy_number: int) -> 'SegmentCNPhenotype':
        """Phenotype where every segment contributes unit fitness at every copy number."""
        return cls(np.ones((registry.count(), max_copy_number + 1)), registry, max_copy_number)

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    @property
    def max_copy_number(self) -> int:
        return self._max_cn

    def fitness(self, genotype: SegmentCNGenotype) -> float:
        return float(self._matrix[self._rows, genotype.copy_numbers].sum())
