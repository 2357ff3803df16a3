"""Copy-number alteration (CNA) rate model.

Mutation at cell division proceeds in two mutually exclusive stages:

  1. Whole-genome doubling (WGD) with probability rate_wgd. If it occurs
     the daughter receives the doubled genotype and no segmental events.
  2. Otherwise every segment, in registry order, independently draws one
     outcome from its {GAIN, LOSS, NONE} event set for its current copy
     number.

Because stage 2 only happens when WGD did not, the segment event
probabilities are conditioned on "no WGD":

    P(GAIN | seg, cn) = gain_rate[seg, cn] / (1 − rate_wgd)
    P(LOSS | seg, cn) = loss_rate[seg, cn] / (1 − rate_wgd)

so that the unconditional rates equal the configured rates. The event
sets for every (segment, copy number) pair are built once at
construction.
"""

from __future__ import annotations

from typing import List, Union

import numpy as np

from moran_evo.errors import ValidationError
from moran_evo.events import EventSet, cna_event_set
from moran_evo.genotypes import SegmentCNGenotype
from moran_evo.probability import Probability
from moran_evo.rates import RateMatrix
from moran_evo.segments import GenomeSegment, SegmentRegistry
from moran_evo.types import CNAType, CNEventType


class CNARateModel:
    """Segment gain/loss rates plus the whole-genome doubling rate.

    Args:
        registry: Genome segments the matrices are indexed by.
        gain_rates: Complete GAIN rate matrix.
        loss_rates: Complete LOSS rate matrix.
        rate_wgd: Whole-genome doubling probability, in [0, 1).

    Raises:
        ValidationError: If a matrix is incomplete, carries the wrong
            event type, or does not match the registry; if the two
            matrices disagree on the maximum copy number; if rate_wgd
            is not below one; or if any rescaled gain + loss exceeds one.
    """

    def __init__(self, registry: SegmentRegistry, gain_rates: RateMatrix,
                 loss_rates: RateMatrix, rate_wgd: Union[float, Probability] = 0.0):
        _check_matrix(gain_rates, CNEventType.GAIN, registry)
        _check_matrix(loss_rates, CNEventType.LOSS, registry)

        if gain_rates.max_copy_number != loss_rates.max_copy_number:
            raise ValidationError(
                f"Gain and loss rate matrices disagree on the maximum copy number "
                f"({gain_rates.max_copy_number} vs {loss_rates.max_copy_number})."
            )

        rate_wgd = Probability(rate_wgd)
        if rate_wgd.value >= 1.0:
            raise ValidationError("The whole-genome doubling rate must be below one.")

        self._registry = registry
        self._gain = gain_rates
        self._loss = loss_rates
        self._wgd = rate_wgd
        self._max_cn = gain_rates.max_copy_number

        scale = 1.0 / (1.0 - rate_wgd.value)
        self._event_sets: List[List[EventSet[CNAType]]] = []

        for segment in registry:
            row = []
            for copy_num in range(self._max_cn + 1):
                gain = gain_rates.get_rate(segment, copy_num) * scale
                loss = loss_rates.get_rate(segment, copy_num) * scale
                try:
                    row.append(cna_event_set(gain, loss))
                except ValidationError as exc:
                    raise ValidationError(
                        f"Invalid event rates for segment '{segment.key}' at copy "
                        f"number {copy_num}: {exc}"
                    ) from None
            self._event_sets.append(row)

    @classmethod
    def uniform(cls, registry: SegmentRegistry, max_copy_number: int,
                gain_rate: Union[float, Probability],
                loss_rate: Union[float, Probability],
                rate_wgd: Union[float, Probability] = 0.0) -> 'CNARateModel':
        """Model with one gain rate and one loss rate for every segment."""
        gain = RateMatrix.uniform(CNEventType.GAIN, registry, max_copy_number, gain_rate)
        loss = RateMatrix.uniform(CNEventType.LOSS, registry, max_copy_number, loss_rate)
        return cls(registry, gain, loss, rate_wgd)

    # ── Accessors ─────────────────────────────────────────────────────

    @property
    def registry(self) -> SegmentRegistry:
        return self._registry

    @property
    def max_copy_number(self) -> int:
        return self._max_cn

    @property
    def rate_wgd(self) -> Probability:
        return self._wgd

    def get_gain_rate(self, segment: GenomeSegment, copy_num: int) -> float:
        return self._gain.get_rate(segment, copy_num)

    def get_loss_rate(self, segment: GenomeSegment, copy_num: int) -> float:
        return self._loss.get_rate(segment, copy_num)

    def get_event_set(self, segment: GenomeSegment, copy_num: int) -> EventSet[CNAType]:
        if not 0 <= copy_num <= self._max_cn:
            raise ValidationError(f"Copy number {copy_num} is outside [0, {self._max_cn}].")
        return self._event_sets[segment.index][copy_num]

    def germline(self) -> SegmentCNGenotype:
        return SegmentCNGenotype.germline(self._registry, self._max_cn)

    # ── Mutation ──────────────────────────────────────────────────────

    def mutate(self, genotype: SegmentCNGenotype,
               rng: np.random.Generator) -> SegmentCNGenotype:
        """Apply one division's worth of CNA events to a parent genotype.

        Args:
            genotype: Parent genotype (unchanged).
            rng: Random stream; one draw for WGD, then one per segment
                when WGD does not occur.

        Returns:
            Daughter genotype; the parent object itself if no event fired.

        Raises:
            StateError: If a LOSS is drawn for a segment at copy number
                zero (impossible with valid rate matrices).
        """
        if self._wgd.accept(rng):
            return genotype.double_wg()

        daughter = genotype
        for segment in self._registry:
            copy_num = daughter.count(segment)
            outcome = self._event_sets[segment.index][copy_num].select(rng.random())

            if outcome == CNAType.GAIN:
                daughter = daughter.gain(segment)
            elif outcome == CNAType.LOSS:
                daughter = daughter.lose(segment)

        return daughter

    def __repr__(self) -> str:
        return (f"CNARateModel(segments={self._registry.count()}, "
                f"max_copy_number={self._max_cn}, rate_wgd={self._wgd.value})")


def _check_matrix(matrix: RateMatrix, expected: CNEventType,
                  registry: SegmentRegistry) -> None:
    if not isinstance(matrix, RateMatrix):
        raise ValidationError(f"Expected a {expected.name} rate matrix, got {matrix!r}.")
    if matrix.event_type != expected:
        raise ValidationError(
            f"Expected a {expected.name} rate matrix, got {matrix.event_type.name}."
        )
    if matrix.nrow() != registry.count():
        raise ValidationError(
            f"The {expected.name} rate matrix covers {matrix.nrow()} segments; "
            f"the registry defines {registry.count()}."
        )
    matrix.validate()
