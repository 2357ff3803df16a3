"""Genotype models and cells.

A genotype model is an explicit context object with the capability
interface

    fitness(genotype) -> float       (non-negative)
    divide(genotype, rng) -> genotype
    founder() -> genotype

Three models are provided:

  - ScalarModel:    fixed fitness, division copies the genotype
  - ABModel:        A (fitness 1) mutates to B (fitness ratio) with
                    probability mu per division; B never reverts
  - SegmentCNModel: fitness from a copy-number phenotype, division
                    mutates through a CNA rate model

Cells pair a genotype with a creation ordinal and a non-owning lineage
reference. The ordinal counter is owned by a CellFactory (one per
trial), never by a process-wide global.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

import numpy as np

from moran_evo.cna import CNARateModel
from moran_evo.errors import ValidationError
from moran_evo.fitness import SegmentCNPhenotype
from moran_evo.genotypes import ABGenotype, ScalarGenotype, SegmentCNGenotype
from moran_evo.probability import Probability
from moran_evo.types import TYPE_A_FITNESS, ABType


# ═══════════════════════════════════════════════════════════════════════
# GENOTYPE MODELS
# ═══════════════════════════════════════════════════════════════════════

class ScalarModel:
    """Neutral model with one fixed fitness and no mutation."""

    name = 'scalar'

    def __init__(self, fitness: float = 1.0):
        self._founder = ScalarGenotype(fitness)

    def fitness(self, genotype: ScalarGenotype) -> float:
        return genotype.fitness

    def divide(self, genotype: ScalarGenotype, rng: np.random.Generator) -> ScalarGenotype:
        return genotype

    def founder(self) -> ScalarGenotype:
        return self._founder

    def header(self) -> List[str]:
        return self._founder.header()


class ABModel:
    """Two-type model with one-way A → B mutation.

    Args:
        fitness_ratio: Fitness of B relative to A (> 0).
        mutation_rate: Probability that an A parent yields a B daughter.

    Raises:
        ValidationError: If the ratio is not positive or the rate is not
            a probability.
    """

    name = 'ab'

    def __init__(self, fitness_ratio: float, mutation_rate: Union[float, Probability]):
        fitness_ratio = float(fitness_ratio)
        if not np.isfinite(fitness_ratio) or fitness_ratio <= 0.0:
            raise ValidationError(f"The fitness ratio must be positive, got {fitness_ratio}.")

        self._fitness = {
            ABType.A: TYPE_A_FITNESS,
            ABType.B: fitness_ratio * TYPE_A_FITNESS,
        }
        self._mutation_rate = Probability(mutation_rate)

    @property
    def fitness_ratio(self) -> float:
        return self._fitness[ABType.B] / TYPE_A_FITNESS

    @property
    def mutation_rate(self) -> Probability:
        return self._mutation_rate

    def fitness(self, genotype: ABGenotype) -> float:
        return self._fitness[genotype.type]

    def divide(self, genotype: ABGenotype, rng: np.random.Generator) -> ABGenotype:
        if genotype.type == ABType.B:
            return genotype
        return ABGenotype.B if self._mutation_rate.accept(rng) else genotype

    def founder(self) -> ABGenotype:
        return ABGenotype.A

    def header(self) -> List[str]:
        return ABGenotype.A.header()


class SegmentCNModel:
    """Copy-number model: CNA mutation plus an additive fitness matrix."""

    name = 'segment'

    def __init__(self, rate_model: CNARateModel, phenotype: SegmentCNPhenotype):
        if rate_model.max_copy_number != phenotype.max_copy_number:
            raise ValidationError(
                f"Rate model and fitness matrix disagree on the maximum copy number "
                f"({rate_model.max_copy_number} vs {phenotype.max_copy_number})."
            )
        self._rate_model = rate_model
        self._phenotype = phenotype
        self._founder = rate_model.germline()

    @property
    def rate_model(self) -> CNARateModel:
        return self._rate_model

    @property
    def phenotype(self) -> SegmentCNPhenotype:
        return self._phenotype

    @property
    def registry(self):
        return self._rate_model.registry

    def fitness(self, genotype: SegmentCNGenotype) -> float:
        return self._phenotype.fitness(genotype)

    def divide(self, genotype: SegmentCNGenotype,
               rng: np.random.Generator) -> SegmentCNGenotype:
        return self._rate_model.mutate(genotype, rng)

    def founder(self) -> SegmentCNGenotype:
        return self._founder

    def header(self) -> List[str]:
        return self._founder.header(self.registry.keys())


# ═══════════════════════════════════════════════════════════════════════
# CELLS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(eq=False)
class Cell:
    """One cell of the population.

    Cells compare and hash by identity: two cells with the same genotype
    are still different individuals.
    """
    index: int                          # Creation ordinal, unique per factory
    genotype: Any
    parent_index: Optional[int] = None  # None for founders
    fitness: float = field(default=0.0, repr=False)

    def is_founder(self) -> bool:
        return self.parent_index is None


class CellFactory:
    """Creates cells for one trial and owns their creation ordinals.

    Args:
        model: Genotype model providing fitness/divide/founder.
    """

    def __init__(self, model):
        self.model = model
        self._ordinal = itertools.count()

    def _create(self, genotype, parent_index: Optional[int]) -> Cell:
        fitness = self.model.fitness(genotype)
        if fitness < 0.0:
            raise ValidationError(f"Negative fitness {fitness} for genotype {genotype!r}.")
        return Cell(next(self._ordinal), genotype, parent_index, fitness)

    def founder(self, genotype=None) -> Cell:
        """New founder cell (model founder genotype unless given)."""
        return self._create(self.model.founder() if genotype is None else genotype, None)

    def founders(self, n: int) -> List[Cell]:
        if n < 1:
            raise ValidationError(f"The founder count must be positive, got {n}.")
        return [self.founder() for _ in range(n)]

    def divide(self, parent: Cell, rng: np.random.Generator) -> Cell:
        """Daughter of ``parent``; its genotype may carry new mutations."""
        return self._create(self.model.divide(parent.genotype, rng), parent.index)

    def fitness(self, cell: Cell) -> float:
        return cell.fitness
