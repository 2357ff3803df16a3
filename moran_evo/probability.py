"""Probability primitive and discrete sampling helpers.

Probability wraps a float bounded to [0, 1] and supports the handful of
compositions the model needs:

  - not_():  complement, 1 − p
  - and_():  joint probability of independent events, p × q
  - or_():   union of mutually exclusive events, p + q
  - times(): rescaled probability, e.g. p / (1 − p_WGD)

select_pdf() maps one uniform draw onto a discrete distribution by
partitioning [0, 1) in cumulative order; both EventSet and the Moran
replicator choice go through it.
"""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np

from moran_evo.errors import StateError, ValidationError


# Values this close to 0 or 1 are snapped onto the bound (round-off from
# complements and rescaling).
BOUND_TOLERANCE = 1.0e-12


class Probability:
    """Immutable scalar probability in [0, 1]."""

    __slots__ = ('_value',)

    def __init__(self, value: Union[float, 'Probability']):
        if isinstance(value, Probability):
            value = value._value
        value = float(value)

        if math.isnan(value):
            raise ValidationError("Probability must not be NaN.")
        if -BOUND_TOLERANCE < value < 0.0:
            value = 0.0
        elif 1.0 < value < 1.0 + BOUND_TOLERANCE:
            value = 1.0
        if not 0.0 <= value <= 1.0:
            raise ValidationError(f"Probability {value} is outside [0, 1].")

        self._value = value

    @classmethod
    def parse(cls, text: str) -> 'Probability':
        """Parse a probability from text such as ``"1.0E-04"``."""
        try:
            return cls(float(text))
        except ValueError as exc:
            if isinstance(exc, ValidationError):
                raise
            raise ValidationError(f"Invalid probability: '{text}'.") from None

    @property
    def value(self) -> float:
        return self._value

    def not_(self) -> 'Probability':
        """Complement: probability that the event does not occur."""
        return Probability(1.0 - self._value)

    def and_(self, other: Union[float, 'Probability']) -> 'Probability':
        """Joint probability of this and an independent event."""
        return Probability(self._value * float(other))

    def or_(self, other: Union[float, 'Probability']) -> 'Probability':
        """Union with a mutually exclusive event.

        Raises:
            ValidationError: If the sum exceeds one.
        """
        return Probability(self._value + float(other))

    def times(self, scale: float) -> 'Probability':
        """Rescale by a non-negative factor.

        Raises:
            ValidationError: If the rescaled value leaves [0, 1].
        """
        return Probability(self._value * scale)

    def accept(self, rng: np.random.Generator) -> bool:
        """Bernoulli trial: True with probability ``value``."""
        return rng.random() < self._value

    def is_zero(self) -> bool:
        return self._value == 0.0

    def __float__(self) -> float:
        return self._value

    def __eq__(self, other) -> bool:
        if isinstance(other, Probability):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"Probability({self._value!r})"


Probability.ZERO = Probability(0.0)
Probability.ONE = Probability(1.0)


def select_pdf(probs: Union[Sequence[float], np.ndarray], u: float) -> int:
    """Select an index from a probability vector using one uniform draw.

    [0, 1) is partitioned into consecutive bins of width ``probs[k]``;
    the index of the bin containing ``u`` is returned. Zero-width bins
    are never selected. If round-off leaves ``u`` beyond the final
    cumulative sum, the last non-zero bin is returned.

    Args:
        probs: Non-negative probabilities summing to (approximately) 1.
        u: Uniform draw in [0, 1).

    Returns:
        Selected index.

    Raises:
        StateError: If ``probs`` is empty or has no positive entry.
    """
    cumulative = np.cumsum(probs)
    if len(cumulative) == 0 or cumulative[-1] <= 0.0:
        raise StateError("Cannot select from an empty or all-zero distribution.")

    index = int(np.searchsorted(cumulative, u, side='right'))
    if index >= len(cumulative):
        index = int(np.flatnonzero(np.asarray(probs) > 0.0)[-1])
    return index
