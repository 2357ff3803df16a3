"""Tests for moran_evo.probability — bounded probabilities and PDF selection."""

import numpy as np
import pytest

from moran_evo.errors import StateError, ValidationError
from moran_evo.probability import Probability, select_pdf


@pytest.fixture
def rng():
    return np.random.default_rng(42)


# ── Probability tests ─────────────────────────────────────────────────

class TestProbability:
    def test_valid_values(self):
        assert Probability(0.0).value == 0.0
        assert Probability(0.25).value == 0.25
        assert Probability(1.0).value == 1.0

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError, match="outside"):
            Probability(-0.1)
        with pytest.raises(ValidationError, match="outside"):
            Probability(1.5)

    def test_nan_rejected(self):
        with pytest.raises(ValidationError, match="NaN"):
            Probability(float('nan'))

    def test_round_off_snapped_to_bounds(self):
        assert Probability(1.0 + 1e-15).value == 1.0
        assert Probability(-1e-15).value == 0.0

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            Probability(2.0)

    def test_constants(self):
        assert Probability.ZERO.is_zero()
        assert float(Probability.ONE) == 1.0

    def test_not(self):
        assert Probability(0.3).not_().value == pytest.approx(0.7)

    def test_and_is_product(self):
        assert Probability(0.5).and_(Probability(0.4)).value == pytest.approx(0.2)

    def test_or_is_sum(self):
        assert Probability(0.5).or_(0.25).value == pytest.approx(0.75)

    def test_or_exceeding_one(self):
        with pytest.raises(ValidationError):
            Probability(0.7).or_(0.4)

    def test_times(self):
        assert Probability(0.011).times(1.0 / (1.0 - 0.0123)).value == pytest.approx(
            0.011 / 0.9877)
        with pytest.raises(ValidationError):
            Probability(0.6).times(2.0)

    def test_parse(self):
        assert Probability.parse("1.0E-04").value == pytest.approx(1e-4)
        with pytest.raises(ValidationError, match="Invalid probability"):
            Probability.parse("often")
        with pytest.raises(ValidationError, match="outside"):
            Probability.parse("3")

    def test_equality_and_hash(self):
        assert Probability(0.5) == Probability(0.5)
        assert hash(Probability(0.5)) == hash(Probability(0.5))
        assert Probability(0.5) != Probability(0.6)

    def test_accept_extremes(self, rng):
        assert not any(Probability.ZERO.accept(rng) for _ in range(1000))
        assert all(Probability.ONE.accept(rng) for _ in range(1000))

    def test_accept_frequency(self, rng):
        p = Probability(0.3)
        hits = sum(p.accept(rng) for _ in range(100_000))
        # sd = sqrt(0.3 * 0.7 / 1e5) ≈ 0.00145
        assert abs(hits / 100_000 - 0.3) < 0.01


# ── select_pdf tests ──────────────────────────────────────────────────

class TestSelectPdf:
    def test_bins(self):
        probs = [0.2, 0.3, 0.5]
        assert select_pdf(probs, 0.0) == 0
        assert select_pdf(probs, 0.19) == 0
        assert select_pdf(probs, 0.2) == 1
        assert select_pdf(probs, 0.49) == 1
        assert select_pdf(probs, 0.5) == 2
        assert select_pdf(probs, 0.999) == 2

    def test_zero_width_bins_skipped(self):
        probs = [0.0, 0.5, 0.0, 0.5, 0.0]
        assert select_pdf(probs, 0.0) == 1
        assert select_pdf(probs, 0.5) == 3
        # Round-off past the last cumulative sum falls back to the last positive bin
        assert select_pdf([0.5, 0.5 - 1e-12, 0.0], 0.9999999999999) == 1

    def test_empty_or_zero(self):
        with pytest.raises(StateError):
            select_pdf([], 0.5)
        with pytest.raises(StateError):
            select_pdf([0.0, 0.0], 0.5)
