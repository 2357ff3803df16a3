"""Genotype variants.

Three immutable genotype kinds are supported; every transformation
returns a new value and never mutates its receiver:

  - ScalarGenotype:    a fixed non-negative fitness, no mutation
  - ABGenotype:        two-type model, A (wild type) or B (mutant)
  - SegmentCNGenotype: integer copy number per genome segment

Fitness is not a property of the genotype itself; it is evaluated by the
model that owns the genotype (see models.py).
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Union

import numpy as np

from moran_evo.errors import StateError, ValidationError
from moran_evo.segments import GenomeSegment, SegmentRegistry
from moran_evo.types import (
    GERMLINE_COPY_NUMBER,
    MAX_COPY_NUMBER_DEFAULT,
    MIN_MAX_COPY_NUMBER,
    ABType,
)


# ═══════════════════════════════════════════════════════════════════════
# SCALAR
# ═══════════════════════════════════════════════════════════════════════

class ScalarGenotype:
    """Genotype carrying a fixed fitness value."""

    __slots__ = ('_fitness',)

    def __init__(self, fitness: float = 1.0):
        fitness = float(fitness)
        if not np.isfinite(fitness) or fitness < 0.0:
            raise ValidationError(f"Scalar fitness must be non-negative, got {fitness}.")
        self._fitness = fitness

    @property
    def fitness(self) -> float:
        return self._fitness

    def header(self) -> List[str]:
        return ['fitness']

    def format(self) -> List[str]:
        return [repr(self._fitness)]

    def as_array(self) -> np.ndarray:
        return np.array([self._fitness])

    def __eq__(self, other) -> bool:
        if isinstance(other, ScalarGenotype):
            return self._fitness == other._fitness
        return NotImplemented

    def __hash__(self) -> int:
        return hash(('scalar', self._fitness))

    def __repr__(self) -> str:
        return f"ScalarGenotype({self._fitness!r})"


# ═══════════════════════════════════════════════════════════════════════
# A/B
# ═══════════════════════════════════════════════════════════════════════

class ABGenotype:
    """Genotype of the two-type A/B model.

    Only two instances exist, ``ABGenotype.A`` and ``ABGenotype.B``;
    ``ABGenotype.of(t)`` returns the matching singleton.
    """

    __slots__ = ('_type',)

    A: 'ABGenotype'
    B: 'ABGenotype'

    def __init__(self, ab_type: ABType):
        self._type = ABType(ab_type)

    @classmethod
    def of(cls, ab_type: Union[ABType, str]) -> 'ABGenotype':
        if isinstance(ab_type, str):
            ab_type = ABType.parse(ab_type)
        return cls.A if ab_type == ABType.A else cls.B

    @property
    def type(self) -> ABType:
        return self._type

    def header(self) -> List[str]:
        return ['ABType']

    def format(self) -> List[str]:
        return [self._type.name]

    def as_array(self) -> np.ndarray:
        return np.array([int(self._type)])

    def __eq__(self, other) -> bool:
        if isinstance(other, ABGenotype):
            return self._type == other._type
        return NotImplemented

    def __hash__(self) -> int:
        return hash(('ab', int(self._type)))

    def __repr__(self) -> str:
        return f"ABGenotype.{self._type.name}"


ABGenotype.A = ABGenotype(ABType.A)
ABGenotype.B = ABGenotype(ABType.B)


# ═══════════════════════════════════════════════════════════════════════
# SEGMENT COPY NUMBER
# ═══════════════════════════════════════════════════════════════════════

class SegmentCNGenotype:
    """Copy number of every genome segment, indexed by segment ordinal.

    The copy-number vector is a read-only int array; gain/lose/double_wg
    return new genotypes.

    Args:
        copy_numbers: One non-negative integer per registered segment.
        max_copy_number: Ceiling on any copy number (≥ 2).

    Raises:
        ValidationError: If the vector is empty or any copy number lies
            outside [0, max_copy_number].
    """

    __slots__ = ('_cn', '_max_cn', '_hash')

    def __init__(self, copy_numbers: Union[Sequence[int], np.ndarray],
                 max_copy_number: int = MAX_COPY_NUMBER_DEFAULT):
        if max_copy_number < MIN_MAX_COPY_NUMBER:
            raise ValidationError(
                f"The maximum copy number must be at least {MIN_MAX_COPY_NUMBER}, "
                f"got {max_copy_number}."
            )
        cn = np.array(copy_numbers, dtype=np.int64)
        if cn.ndim != 1 or cn.size == 0:
            raise ValidationError("Copy numbers must be a non-empty one-dimensional vector.")
        if cn.min() < 0 or cn.max() > max_copy_number:
            raise ValidationError(
                f"Copy numbers must lie in [0, {max_copy_number}], got {cn.tolist()}."
            )
        cn.flags.writeable = False

        self._cn = cn
        self._max_cn = int(max_copy_number)
        self._hash = hash((self._max_cn, cn.tobytes()))

    @classmethod
    def germline(cls, registry: SegmentRegistry,
                 max_copy_number: int = MAX_COPY_NUMBER_DEFAULT) -> 'SegmentCNGenotype':
        """Wild-type genotype: copy number 2 for every segment."""
        return cls(np.full(registry.count(), GERMLINE_COPY_NUMBER, dtype=np.int64),
                   max_copy_number)

    @property
    def copy_numbers(self) -> np.ndarray:
        return self._cn

    @property
    def max_copy_number(self) -> int:
        return self._max_cn

    def count(self, segment: Union[GenomeSegment, int]) -> int:
        return int(self._cn[_ordinal(segment)])

    def is_germline(self) -> bool:
        return bool((self._cn == GERMLINE_COPY_NUMBER).all())

    def _with(self, index: int, copy_num: int) -> 'SegmentCNGenotype':
        cn = self._cn.copy()
        cn[index] = copy_num
        return SegmentCNGenotype(cn, self._max_cn)

    def gain(self, segment: Union[GenomeSegment, int]) -> 'SegmentCNGenotype':
        """Genotype with one more copy of ``segment``.

        A segment already at the maximum copy number is left unchanged and
        the receiver itself is returned.

        Raises:
            StateError: If the segment has been lost (copy number zero).
        """
        index = _ordinal(segment)
        copy_num = int(self._cn[index])
        if copy_num == 0:
            raise StateError(f"Cannot gain segment {_label(segment)}: copy number is zero.")
        if copy_num >= self._max_cn:
            return self
        return self._with(index, copy_num + 1)

    def lose(self, segment: Union[GenomeSegment, int]) -> 'SegmentCNGenotype':
        """Genotype with one fewer copy of ``segment``.

        Raises:
            StateError: If the segment has already been lost.
        """
        index = _ordinal(segment)
        copy_num = int(self._cn[index])
        if copy_num == 0:
            raise StateError(f"Cannot lose segment {_label(segment)}: copy number is zero.")
        return self._with(index, copy_num - 1)

    def double_wg(self) -> 'SegmentCNGenotype':
        """Whole-genome doubling, each copy number clamped at the maximum."""
        return SegmentCNGenotype(np.minimum(self._cn * 2, self._max_cn), self._max_cn)

    def header(self, keys: Iterable[str]) -> List[str]:
        return [f"CN_{key}" for key in keys]

    def format(self) -> List[str]:
        return [str(v) for v in self._cn.tolist()]

    def as_array(self) -> np.ndarray:
        return self._cn

    def __len__(self) -> int:
        return self._cn.size

    def __eq__(self, other) -> bool:
        if isinstance(other, SegmentCNGenotype):
            return (self._max_cn == other._max_cn
                    and np.array_equal(self._cn, other._cn))
        return NotImplemented

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        return f"SegmentCNGenotype({self._cn.tolist()}, max={self._max_cn})"


def _ordinal(segment: Union[GenomeSegment, int]) -> int:
    return segment.index if isinstance(segment, GenomeSegment) else int(segment)


def _label(segment: Union[GenomeSegment, int]) -> str:
    return segment.key if isinstance(segment, GenomeSegment) else str(segment)
