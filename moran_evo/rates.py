"""Copy-number alteration rate matrices.

A RateMatrix holds the probability per cell division of one event kind
(GAIN or LOSS) for every genome segment and copy-number state:

    rates[segment.index, copy_number],  copy_number ∈ [0, max_copy_number]

Absorbing states are fixed at exactly zero and may only be assigned
zero:
  - copy number 0 for both kinds (a lost segment cannot be regained or
    lost again)
  - copy number max_copy_number for GAIN

Every other cell starts unassigned (NaN) and must be set before the
matrix is used; validate() enforces this at build time.
"""

from __future__ import annotations

from typing import Union

import numpy as np

from moran_evo.errors import StateError, ValidationError
from moran_evo.probability import Probability
from moran_evo.segments import GenomeSegment, SegmentRegistry
from moran_evo.types import MIN_MAX_COPY_NUMBER, CNEventType


class RateMatrix:
    """Per-segment, per-copy-number event rates for one event kind."""

    def __init__(self, event_type: CNEventType, n_segments: int, max_copy_number: int):
        if not isinstance(event_type, CNEventType):
            raise ValidationError(f"Invalid event type: {event_type!r}.")
        if n_segments < 1:
            raise ValidationError("A rate matrix needs at least one genome segment.")
        if max_copy_number < MIN_MAX_COPY_NUMBER:
            raise ValidationError(
                f"The maximum copy number must be at least {MIN_MAX_COPY_NUMBER}, "
                f"got {max_copy_number}."
            )

        self._type = event_type
        self._max_cn = int(max_copy_number)
        self._rates = np.full((n_segments, max_copy_number + 1), np.nan, dtype=np.float64)

        for copy_num in range(self._max_cn + 1):
            if self.is_absorbing(copy_num):
                self._rates[:, copy_num] = 0.0

    @classmethod
    def create(cls, event_type: CNEventType, registry: SegmentRegistry,
               max_copy_number: int) -> 'RateMatrix':
        """New matrix with absorbing states zeroed and all else unassigned."""
        return cls(event_type, registry.count(), max_copy_number)

    @classmethod
    def uniform(cls, event_type: CNEventType, registry: SegmentRegistry,
                max_copy_number: int,
                rate: Union[float, Probability]) -> 'RateMatrix':
        """New matrix with one rate for every non-absorbing state."""
        rate = float(Probability(rate))
        matrix = cls.create(event_type, registry, max_copy_number)
        for copy_num in range(matrix.ncol()):
            if not matrix.is_absorbing(copy_num):
                matrix._rates[:, copy_num] = rate
        return matrix

    @property
    def event_type(self) -> CNEventType:
        return self._type

    @property
    def max_copy_number(self) -> int:
        return self._max_cn

    def nrow(self) -> int:
        return self._rates.shape[0]

    def ncol(self) -> int:
        return self._rates.shape[1]

    def is_absorbing(self, copy_num: int) -> bool:
        """Zero copy number for both kinds, maximum copy number for GAIN."""
        return copy_num == 0 or (
            self._type == CNEventType.GAIN and copy_num == self._max_cn
        )

    def _check_index(self, segment: GenomeSegment, copy_num: int) -> None:
        if not 0 <= segment.index < self.nrow():
            raise ValidationError(f"{segment} is not covered by this rate matrix.")
        if not 0 <= copy_num <= self._max_cn:
            raise ValidationError(
                f"Copy number {copy_num} is outside [0, {self._max_cn}]."
            )

    def get_rate(self, segment: GenomeSegment, copy_num: int) -> float:
        """Event rate for a segment at a given copy number.

        Raises:
            ValidationError: If the copy number is outside [0, max].
            StateError: If the element was never assigned.
        """
        self._check_index(segment, copy_num)
        rate = self._rates[segment.index, copy_num]
        if np.isnan(rate):
            raise StateError(
                f"Unassigned {self._type.name} rate for {segment} at copy number {copy_num}."
            )
        return float(rate)

    def set_rate(self, segment: GenomeSegment, copy_num: int,
                 rate: Union[float, Probability]) -> None:
        """Assign the event rate for a segment at a given copy number.

        Raises:
            ValidationError: If the copy number is out of range, the rate
                is not a probability, or a non-zero rate is assigned to
                an absorbing state.
        """
        self._check_index(segment, copy_num)
        rate = float(Probability(rate))
        if self.is_absorbing(copy_num) and rate != 0.0:
            raise ValidationError(
                f"Cannot assign a non-zero {self._type.name} rate to absorbing "
                f"copy number {copy_num}."
            )
        self._rates[segment.index, copy_num] = rate

    def is_complete(self) -> bool:
        return not np.isnan(self._rates).any()

    def validate(self) -> None:
        """Ensure that every rate element has been assigned.

        Raises:
            ValidationError: If any element is unassigned.
        """
        missing = np.argwhere(np.isnan(self._rates))
        if len(missing) > 0:
            row, col = missing[0]
            raise ValidationError(
                f"Unassigned {self._type.name} rate element "
                f"(segment index {row}, copy number {col}); "
                f"{len(missing)} element(s) missing."
            )

    def to_array(self) -> np.ndarray:
        """Copy of the underlying (n_segments, max_copy_number + 1) array."""
        return self._rates.copy()

    def __repr__(self) -> str:
        return (f"RateMatrix({self._type.name}, segments={self.nrow()}, "
                f"max_copy_number={self._max_cn})")
