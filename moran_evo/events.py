"""Mutually exclusive, exhaustive event sets.

An EventSet maps every member of a small outcome enumeration to a
probability; the probabilities sum to one. One uniform draw selects one
outcome by partitioning [0, 1) in the enumeration's declaration order,
so identical draws always give identical outcomes.

cna_event_set() builds the per-segment {GAIN, LOSS, NONE} set used by
the copy-number rate model, with NONE absorbing the remainder.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Generic, Mapping, Tuple, Type, TypeVar, Union

import numpy as np

from moran_evo.errors import ValidationError
from moran_evo.probability import Probability
from moran_evo.types import CNAType

E = TypeVar('E', bound=Enum)

# Allowed deviation of the probability total from one.
SUM_TOLERANCE = 1.0e-9


class EventSet(Generic[E]):
    """Immutable categorical distribution over an enumerated outcome set.

    Args:
        probabilities: Mapping from outcome to probability. Outcomes of
            the enumeration missing from the mapping get probability 0.

    Raises:
        ValidationError: If the mapping is empty, mixes enumerations,
            holds an invalid probability, or does not sum to one.
    """

    __slots__ = ('_enum', '_outcomes', '_probs', '_cumulative', '_last')

    def __init__(self, probabilities: Mapping[E, Union[float, Probability]]):
        if not probabilities:
            raise ValidationError("An event set needs at least one outcome.")

        enum_types = {type(outcome) for outcome in probabilities}
        if len(enum_types) != 1:
            raise ValidationError("Event set outcomes must share one enumeration.")
        enum_cls: Type[E] = enum_types.pop()
        if not issubclass(enum_cls, Enum):
            raise ValidationError(
                f"Event set outcomes must be enumeration members, got {enum_cls.__name__}."
            )

        outcomes = tuple(enum_cls)
        probs = np.array(
            [float(Probability(probabilities.get(outcome, 0.0))) for outcome in outcomes],
            dtype=np.float64,
        )
        total = probs.sum()
        if abs(total - 1.0) > SUM_TOLERANCE:
            raise ValidationError(
                f"Event probabilities must sum to one, got {float(total)!r}."
            )
        probs.flags.writeable = False

        self._enum = enum_cls
        self._outcomes = outcomes
        self._probs = probs
        self._last = int(np.flatnonzero(probs > 0.0)[-1])
        self._cumulative = np.cumsum(probs)

    @property
    def outcomes(self) -> Tuple[E, ...]:
        """Outcomes in partition order."""
        return self._outcomes

    @property
    def probabilities(self) -> np.ndarray:
        """Read-only probability vector aligned with ``outcomes``."""
        return self._probs

    def probability(self, outcome: E) -> float:
        return float(self._probs[self._outcomes.index(outcome)])

    def as_dict(self) -> Dict[E, float]:
        return {o: float(p) for o, p in zip(self._outcomes, self._probs)}

    def select(self, u: float) -> E:
        """Return the outcome whose cumulative bin contains ``u`` ∈ [0, 1)."""
        index = int(self._cumulative.searchsorted(u, side='right'))
        if index >= len(self._outcomes):
            index = self._last
        return self._outcomes[index]

    def sample(self, rng: np.random.Generator) -> E:
        """Draw one outcome from ``rng``."""
        return self.select(rng.random())

    def __repr__(self) -> str:
        items = ", ".join(f"{o.name}={p:.6g}" for o, p in zip(self._outcomes, self._probs))
        return f"EventSet({items})"


def cna_event_set(gain: Union[float, Probability],
                  loss: Union[float, Probability]) -> EventSet[CNAType]:
    """Create the mutually exclusive gain/loss/no-op event set.

    Args:
        gain: Probability of a copy-number gain.
        loss: Probability of a copy-number loss.

    Returns:
        EventSet over CNAType with P(NONE) = 1 − gain − loss.

    Raises:
        ValidationError: If gain + loss exceeds one.
    """
    gain = Probability(gain)
    loss = Probability(loss)
    try:
        either = gain.or_(loss)
    except ValidationError:
        raise ValidationError(
            f"Gain ({gain.value}) and loss ({loss.value}) probabilities exceed one."
        ) from None

    return EventSet({
        CNAType.GAIN: gain,
        CNAType.LOSS: loss,
        CNAType.NONE: either.not_(),
    })
