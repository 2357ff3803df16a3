"""Continuous-time spatial Moran process.

One cell cycle:

  1. Choose a victim V uniformly from the population.
  2. Collect V's neighbors and their fitness values f_1..f_k.
  3. Advance the clock by Exp(rate = Σf / k) / N, the waiting time of a
     death event scaled to one population-wide event per 1/N time units.
  4. Choose the replicator R among the neighbors with probability
     f_i / Σf (one uniform draw).
  5. R divides; the daughter (possibly mutated) replaces V in V's slot.
  6. Update the mean fitness incrementally:
         mean += (f(daughter) − f(V)) / N

A time step is N cell cycles. Step boundaries are the only points where
a driver inspects or stops the process.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from moran_evo.errors import StateError
from moran_evo.lattice import Coord
from moran_evo.models import Cell, CellFactory
from moran_evo.probability import select_pdf
from moran_evo.space import Space


class MoranProcess:
    """Moran death/division dynamics on a fixed-size space.

    Args:
        space: Founder-filled population with a neighborhood structure.
        factory: Cell factory that divides replicators.
        rng: Random stream for victim choice, waiting times, replicator
            choice, and mutation.
    """

    def __init__(self, space: Space, factory: CellFactory, rng: np.random.Generator):
        self._space = space
        self._factory = factory
        self._rng = rng

        self._time_clock = 0.0
        self._step_index = 0
        self._mean_fitness = self.recompute_mean_fitness()

    # ── Accessors ─────────────────────────────────────────────────────

    @property
    def space(self) -> Space:
        return self._space

    @property
    def factory(self) -> CellFactory:
        return self._factory

    @property
    def size(self) -> int:
        return self._space.size

    @property
    def time_clock(self) -> float:
        return self._time_clock

    @property
    def mean_fitness(self) -> float:
        return self._mean_fitness

    @property
    def step_index(self) -> int:
        return self._step_index

    def list_cells(self) -> Tuple[Cell, ...]:
        return self._space.list()

    def locate(self, cell: Cell) -> Optional[Coord]:
        return self._space.locate(cell)

    def recompute_mean_fitness(self) -> float:
        """Mean fitness by full scan (does not alter the running value)."""
        total = sum(self._factory.fitness(cell) for cell in self._space.list())
        return total / self._space.size

    # ── Dynamics ──────────────────────────────────────────────────────

    def execute_cell_cycle(self) -> Cell:
        """Run one death/division event.

        Returns:
            The daughter cell that replaced the victim.

        Raises:
            StateError: If the victim has no neighbors or its neighbors
                have zero total fitness.
        """
        rng = self._rng
        victim = self._space.select(rng)

        neighbors: List[Cell] = self._space.get_neighbors(victim)
        if not neighbors:
            raise StateError(f"Cell {victim.index} has no neighbors.")

        fitness = np.array([self._factory.fitness(cell) for cell in neighbors])
        total = fitness.sum()
        if not total > 0.0:
            raise StateError(
                f"Neighbors of cell {victim.index} have zero total fitness."
            )

        rate = total / len(neighbors)
        self._time_clock += rng.exponential(1.0 / rate) / self._space.size

        replicator = neighbors[select_pdf(fitness / total, rng.random())]
        daughter = self._factory.divide(replicator, rng)
        self._space.replace(victim, daughter)

        self._mean_fitness += (
            (self._factory.fitness(daughter) - self._factory.fitness(victim))
            / self._space.size
        )
        return daughter

    def execute_time_step(self) -> None:
        """Run N cell cycles and advance the step index."""
        for _ in range(self._space.size):
            self.execute_cell_cycle()
        self._step_index += 1

    def __repr__(self) -> str:
        return (f"MoranProcess(size={self.size}, step={self._step_index}, "
                f"time={self._time_clock:.4f}, mean_fitness={self._mean_fitness:.4f})")
