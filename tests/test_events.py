"""Tests for moran_evo.events — categorical event sets."""

import numpy as np
import pytest

from moran_evo.errors import ValidationError
from moran_evo.events import EventSet, cna_event_set
from moran_evo.probability import Probability
from moran_evo.types import ABType, CNAType


@pytest.fixture
def rng():
    return np.random.default_rng(42)


class TestEventSet:
    def test_probabilities_in_declaration_order(self):
        events = EventSet({CNAType.NONE: 0.5, CNAType.GAIN: 0.2, CNAType.LOSS: 0.3})
        assert events.outcomes == (CNAType.GAIN, CNAType.LOSS, CNAType.NONE)
        np.testing.assert_allclose(events.probabilities, [0.2, 0.3, 0.5])

    def test_missing_outcomes_get_zero(self):
        events = EventSet({ABType.B: 1.0})
        assert events.probability(ABType.A) == 0.0
        assert events.select(0.0) == ABType.B

    def test_sum_must_be_one(self):
        with pytest.raises(ValidationError, match="sum to one"):
            EventSet({CNAType.GAIN: 0.2, CNAType.LOSS: 0.3, CNAType.NONE: 0.4})

    def test_sum_tolerance(self):
        EventSet({CNAType.GAIN: 0.1, CNAType.LOSS: 0.2, CNAType.NONE: 0.7 + 1e-12})

    def test_invalid_probability(self):
        with pytest.raises(ValidationError):
            EventSet({CNAType.GAIN: -0.5, CNAType.NONE: 1.5})

    def test_empty(self):
        with pytest.raises(ValidationError, match="at least one outcome"):
            EventSet({})

    def test_mixed_enumerations(self):
        # LOSS and A have different values, so both keys survive the dict
        with pytest.raises(ValidationError, match="one enumeration"):
            EventSet({CNAType.LOSS: 0.5, ABType.A: 0.5})

    def test_non_enum_outcomes(self):
        with pytest.raises(ValidationError, match="enumeration members"):
            EventSet({0: 1.0})

    def test_sum_message_is_plain_float(self):
        with pytest.raises(ValidationError, match=r"got 0\.5\.$"):
            EventSet({CNAType.GAIN: 0.5})

    def test_select_partitions_unit_interval(self):
        events = EventSet({CNAType.GAIN: 0.25, CNAType.LOSS: 0.25, CNAType.NONE: 0.5})
        assert events.select(0.0) == CNAType.GAIN
        assert events.select(0.2499) == CNAType.GAIN
        assert events.select(0.25) == CNAType.LOSS
        assert events.select(0.4999) == CNAType.LOSS
        assert events.select(0.5) == CNAType.NONE
        assert events.select(0.9999999) == CNAType.NONE

    def test_zero_probability_unreachable(self, rng):
        events = EventSet({CNAType.GAIN: 0.0, CNAType.LOSS: 0.4, CNAType.NONE: 0.6})
        draws = {events.sample(rng) for _ in range(10_000)}
        assert CNAType.GAIN not in draws

    def test_sample_frequencies(self, rng):
        events = EventSet({CNAType.GAIN: 0.1, CNAType.LOSS: 0.3, CNAType.NONE: 0.6})
        n = 100_000
        counts = {outcome: 0 for outcome in CNAType}
        for _ in range(n):
            counts[events.sample(rng)] += 1
        assert counts[CNAType.GAIN] / n == pytest.approx(0.1, abs=0.01)
        assert counts[CNAType.LOSS] / n == pytest.approx(0.3, abs=0.01)
        assert counts[CNAType.NONE] / n == pytest.approx(0.6, abs=0.01)

    def test_probability_vector_read_only(self):
        events = EventSet({CNAType.NONE: 1.0})
        with pytest.raises(ValueError):
            events.probabilities[0] = 0.5


class TestCnaEventSet:
    def test_none_absorbs_remainder(self):
        events = cna_event_set(0.011, Probability(0.11))
        assert events.probability(CNAType.GAIN) == pytest.approx(0.011)
        assert events.probability(CNAType.LOSS) == pytest.approx(0.11)
        assert events.probability(CNAType.NONE) == pytest.approx(1.0 - 0.121)
        assert sum(events.as_dict().values()) == pytest.approx(1.0, abs=1e-9)

    def test_all_zero_is_certain_none(self, rng):
        events = cna_event_set(0.0, 0.0)
        assert all(events.sample(rng) == CNAType.NONE for _ in range(1000))

    def test_gain_plus_loss_exceeds_one(self):
        with pytest.raises(ValidationError, match="exceed one"):
            cna_event_set(0.6, 0.5)
