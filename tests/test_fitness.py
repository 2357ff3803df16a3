"""Tests for moran_evo.fitness — chain operations and copy-number phenotypes."""

import numpy as np
import pytest

from moran_evo.errors import ValidationError
from moran_evo.fitness import (
    FitnessChainOperation,
    SegmentCNPhenotype,
    chained_fitness_matrix,
    validate_fitness_matrix,
)
from moran_evo.genotypes import SegmentCNGenotype
from moran_evo.segments import SegmentRegistry


@pytest.fixture
def registry():
    return SegmentRegistry.build(["6p", "9q", "12p"])


GAINS = {"6p": 0.05, "9q": -0.05, "12p": 0.03}
LOSSES = {"6p": -0.02, "9q": 0.02, "12p": 0.00}


# ── Chain operation tests ─────────────────────────────────────────────

class TestFitnessChainOperation:
    def test_germline_is_unit(self):
        for op in FitnessChainOperation:
            assert op.compute(2, 0.3) == 1.0

    def test_add(self):
        assert FitnessChainOperation.ADD.compute(5, 0.05) == pytest.approx(1.15)
        assert FitnessChainOperation.ADD.compute(0, -0.02) == pytest.approx(0.96)

    def test_multiply(self):
        assert FitnessChainOperation.MULTIPLY.compute(4, 0.05) == pytest.approx(1.1025)
        assert FitnessChainOperation.MULTIPLY.compute(0, -0.02) == pytest.approx(0.9604)

    def test_none(self):
        assert FitnessChainOperation.NONE.compute(5, 0.05) == pytest.approx(1.05)
        assert FitnessChainOperation.NONE.compute(3, 0.05) == pytest.approx(1.05)
        assert FitnessChainOperation.NONE.compute(0, -0.02) == pytest.approx(0.98)

    def test_parse(self):
        assert FitnessChainOperation.parse("multiply") is FitnessChainOperation.MULTIPLY
        with pytest.raises(ValueError, match="FitnessChainOperation"):
            FitnessChainOperation.parse("divide")


# ── Chained matrix tests ──────────────────────────────────────────────

class TestChainedMatrix:
    def test_add_matrix(self, registry):
        matrix = chained_fitness_matrix(registry, 5, GAINS, LOSSES, FitnessChainOperation.ADD)
        np.testing.assert_allclose(matrix, [
            [0.96, 0.98, 1.00, 1.05, 1.10, 1.15],
            [1.04, 1.02, 1.00, 0.95, 0.90, 0.85],
            [1.00, 1.00, 1.00, 1.03, 1.06, 1.09],
        ])

    def test_segment_keys(self, registry):
        gains = {registry.require(k): v for k, v in GAINS.items()}
        matrix = chained_fitness_matrix(registry, 3, gains, LOSSES, FitnessChainOperation.NONE)
        assert matrix.shape == (3, 4)
        assert matrix[0, 3] == pytest.approx(1.05)

    def test_missing_coefficient(self, registry):
        gains = {"6p": 0.05, "9q": 0.01}
        with pytest.raises(ValidationError, match="12p"):
            chained_fitness_matrix(registry, 5, gains, LOSSES, FitnessChainOperation.ADD)

    def test_negative_result(self, registry):
        losses = dict(LOSSES, **{"9q": -0.6})
        with pytest.raises(ValidationError, match="Negative fitness"):
            chained_fitness_matrix(registry, 5, GAINS, losses, FitnessChainOperation.ADD)


# ── Phenotype tests ───────────────────────────────────────────────────

class TestSegmentCNPhenotype:
    def test_additive_fitness(self, registry):
        matrix = chained_fitness_matrix(registry, 5, GAINS, LOSSES, FitnessChainOperation.ADD)
        phenotype = SegmentCNPhenotype(matrix, registry, 5)

        assert phenotype.fitness(SegmentCNGenotype([2, 2, 2], 5)) == pytest.approx(3.0)
        assert phenotype.fitness(SegmentCNGenotype([5, 0, 3], 5)) == pytest.approx(
            1.15 + 1.04 + 1.03)

    def test_neutral(self, registry):
        phenotype = SegmentCNPhenotype.neutral(registry, 4)
        assert phenotype.fitness(SegmentCNGenotype([0, 4, 1], 4)) == 3.0

    def test_matrix_read_only(self, registry):
        phenotype = SegmentCNPhenotype.neutral(registry, 4)
        with pytest.raises(ValueError):
            phenotype.matrix[0, 0] = 2.0

    def test_validation(self, registry):
        with pytest.raises(ValidationError, match="shape"):
            validate_fitness_matrix(np.ones((2, 5)), registry, 4)
        bad = np.ones((3, 5))
        bad[1, 2] = np.nan
        with pytest.raises(ValidationError, match="non-finite"):
            validate_fitness_matrix(bad, registry, 4)
        bad[1, 2] = -1.0
        with pytest.raises(ValidationError, match="9q"):
            SegmentCNPhenotype(bad, registry, 4)
