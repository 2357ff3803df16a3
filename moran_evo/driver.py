"""Multi-trial simulation driver.

Builds the genotype model, spaces, and processes described by a
MoranConfig, runs the requested number of independent trials, and feeds
every completed time step to the registered reports.

Each trial:
  1. Fresh CellFactory and founder-filled space (all founders carry the
     model's founder genotype).
  2. Fresh MoranProcess driven by that trial's RNG stream.
  3. Time steps while continue_trial() holds: the step index is below
     max_step_count and the mean fitness lies inside the fitness range.

Trials share no mutable state; the model objects are immutable and are
built once per simulation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import numpy as np

from moran_evo.cna import CNARateModel
from moran_evo.config import MoranConfig, dump_config
from moran_evo.engine import MoranProcess
from moran_evo.fitness import SegmentCNPhenotype
from moran_evo.loaders import load_cna_rates, load_fitness_matrix, load_segment_definitions
from moran_evo.models import ABModel, CellFactory, ScalarModel, SegmentCNModel
from moran_evo.reports import (
    RUNTIME_CONFIG_FILE,
    GenotypeCoordReport,
    MeanCopyNumberReport,
    MeanFitnessReport,
    Report,
    SnapshotReport,
)
from moran_evo.rng import create_rng_hierarchy, get_trial_rng
from moran_evo.space import Space
from moran_evo.space import build_space as _build_space

ProgressCallback = Callable[[int, int, MoranProcess], None]


# ═══════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class TrialResult:
    """Per-step trajectory of one trial."""
    trial_index: int = 0
    time_clock: np.ndarray = field(default_factory=lambda: np.zeros(0))
    mean_fitness: np.ndarray = field(default_factory=lambda: np.zeros(0))
    initial_mean_fitness: float = 0.0
    stop_reason: str = ''   # 'max_steps' or 'fitness_range'

    @property
    def n_steps(self) -> int:
        return len(self.time_clock)

    @property
    def final_time_clock(self) -> float:
        return float(self.time_clock[-1]) if self.n_steps else 0.0

    @property
    def final_mean_fitness(self) -> float:
        return float(self.mean_fitness[-1]) if self.n_steps else self.initial_mean_fitness


@dataclass
class SimulationResult:
    """Results from a multi-trial simulation."""
    seed: int = 0
    model: str = ''
    population_size: int = 0
    trials: List[TrialResult] = field(default_factory=list)

    @property
    def n_trials(self) -> int:
        return len(self.trials)


# ═══════════════════════════════════════════════════════════════════════
# BUILDERS
# ═══════════════════════════════════════════════════════════════════════

def build_model(config: MoranConfig):
    """Genotype model selected by ``simulation.model``.

    The segment model reads its definition, rate, and fitness files here.

    Raises:
        ValidationError: On invalid parameters or malformed input files.
    """
    name = config.simulation.model

    if name == 'ab':
        return ABModel(config.ab.fitness_ratio, config.ab.mutation_rate)
    if name == 'scalar':
        return ScalarModel(config.scalar.fitness)

    seg = config.segment
    registry = load_segment_definitions(seg.definition_file)
    max_cn = seg.max_copy_number

    if seg.cna_rate_file:
        gain, loss = load_cna_rates(seg.cna_rate_file, registry, max_cn)
        rate_model = CNARateModel(registry, gain, loss, seg.rate_wgd)
    else:
        rate_model = CNARateModel.uniform(registry, max_cn, seg.gain_rate,
                                          seg.loss_rate, seg.rate_wgd)

    if seg.fitness_matrix_file:
        matrix = load_fitness_matrix(seg.fitness_matrix_file, registry, max_cn,
                                     seg.fitness_chain_operation)
        phenotype = SegmentCNPhenotype(matrix, registry, max_cn)
    else:
        phenotype = SegmentCNPhenotype.neutral(registry, max_cn)

    return SegmentCNModel(rate_model, phenotype)


def build_factory(config: MoranConfig, model=None) -> CellFactory:
    """Fresh cell factory (ordinals start at zero) for one trial."""
    return CellFactory(build_model(config) if model is None else model)


def build_space(config: MoranConfig, factory: CellFactory) -> Space:
    """Founder-filled space described by the ``space`` section."""
    return _build_space(config.space, factory)


class RuntimeConfigReport(Report):
    """Writes the resolved configuration to runtime.yaml at simulation start."""

    def initialize_simulation(self, config) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        dump_config(config, self.directory / RUNTIME_CONFIG_FILE)


def build_reports(config: MoranConfig, model=None) -> List[Report]:
    """Reports enabled in the ``report`` section."""
    rep = config.report
    directory = Path(rep.directory)
    reports: List[Report] = [RuntimeConfigReport(directory)]

    if rep.mean_fitness:
        reports.append(MeanFitnessReport(directory))
    if rep.mean_copy_number and isinstance(model, SegmentCNModel):
        reports.append(MeanCopyNumberReport(directory, model.registry.keys()))
    if rep.genotype_coord:
        reports.append(GenotypeCoordReport(directory, rep.genotype_coord_interval))
    if rep.snapshot_interval > 0:
        reports.append(SnapshotReport(directory, rep.snapshot_interval))

    return reports


# ═══════════════════════════════════════════════════════════════════════
# TRIAL LOOP
# ═══════════════════════════════════════════════════════════════════════

def fitness_in_range(mean_fitness: float,
                     fitness_range: Optional[Sequence[float]] = None) -> bool:
    """Inclusive [lo, hi] test; with no range the mean fitness must be positive."""
    if fitness_range is None:
        return mean_fitness > 0.0
    lo, hi = fitness_range
    return lo <= mean_fitness <= hi


def continue_trial(process: MoranProcess, max_step_count: int,
                   fitness_range: Optional[Sequence[float]] = None) -> bool:
    """Stopping predicate evaluated between time steps."""
    return (process.step_index < max_step_count
            and fitness_in_range(process.mean_fitness, fitness_range))


def run_trial(
    process: MoranProcess,
    max_step_count: int,
    fitness_range: Optional[Sequence[float]] = None,
    on_step: Optional[Callable[[MoranProcess], None]] = None,
    trial_index: int = 0,
) -> TrialResult:
    """Advance a process one time step at a time until it should stop.

    Args:
        process: Process to run (continued from its current step).
        max_step_count: Stop once the step index reaches this value.
        fitness_range: Stop once the mean fitness leaves [lo, hi].
        on_step: Optional callable(process) after every time step.
        trial_index: Recorded in the result.

    Returns:
        TrialResult with the clock and mean fitness after every step.
    """
    times: List[float] = []
    fitness: List[float] = []
    initial = process.mean_fitness

    while continue_trial(process, max_step_count, fitness_range):
        process.execute_time_step()
        times.append(process.time_clock)
        fitness.append(process.mean_fitness)
        if on_step is not None:
            on_step(process)

    stop_reason = 'max_steps' if process.step_index >= max_step_count else 'fitness_range'
    return TrialResult(
        trial_index=trial_index,
        time_clock=np.array(times),
        mean_fitness=np.array(fitness),
        initial_mean_fitness=initial,
        stop_reason=stop_reason,
    )


def console_progress(trial_index: int, step_index: int, process: MoranProcess) -> str:
    """One-line progress message for console output."""
    return "TRIAL: %4d; STEP: %5d; FITNESS: %.4f" % (
        trial_index, step_index, process.mean_fitness)


# ═══════════════════════════════════════════════════════════════════════
# DRIVER
# ═══════════════════════════════════════════════════════════════════════

class MoranDriver:
    """Runs every trial of a configured simulation.

    Args:
        config: Validated configuration.
        reports: Reports receiving the simulation hooks (none by default).
        progress_callback: Optional callable(trial_index, step_index,
            process) after every time step.
    """

    def __init__(
        self,
        config: MoranConfig,
        reports: Optional[Sequence[Report]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.config = config
        self.reports: List[Report] = list(reports or ())
        self.progress_callback = progress_callback
        self.model = None

    def create_process(self, trial_index: int, rngs) -> MoranProcess:
        factory = build_factory(self.config, self.model)
        space = build_space(self.config, factory)
        return MoranProcess(space, factory, get_trial_rng(rngs, trial_index))

    def run(self) -> SimulationResult:
        """Run all trials.

        Errors raised inside a trial propagate and abort the simulation;
        reports are finalized either way.
        """
        sim = self.config.simulation
        if self.model is None:
            self.model = build_model(self.config)
        rngs = create_rng_hierarchy(sim.seed, sim.trial_target)
        result = SimulationResult(seed=sim.seed, model=sim.model)

        for report in self.reports:
            report.initialize_simulation(self.config)
        try:
            for trial_index in range(sim.trial_target):
                trial = self._run_trial(trial_index, rngs, result)
                result.trials.append(trial)
        finally:
            for report in self.reports:
                report.finalize_simulation()

        return result

    def _run_trial(self, trial_index: int, rngs, result: SimulationResult) -> TrialResult:
        process = self.create_process(trial_index, rngs)
        result.population_size = process.size

        for report in self.reports:
            report.initialize_trial(trial_index, process)

        def on_step(proc: MoranProcess) -> None:
            for report in self.reports:
                report.process_step(trial_index, proc)
            if self.progress_callback is not None:
                self.progress_callback(trial_index, proc.step_index, proc)

        trial = run_trial(process, self.config.simulation.max_step_count,
                          self.config.simulation.fitness_range, on_step, trial_index)

        for report in self.reports:
            report.finalize_trial(trial_index, process)
        return trial


def run_simulation(
    config: MoranConfig,
    write_reports: bool = True,
    progress_callback: Optional[ProgressCallback] = None,
) -> SimulationResult:
    """Build the configured reports (optionally) and run every trial."""
    driver = MoranDriver(config, progress_callback=progress_callback)
    driver.model = build_model(config)
    if write_reports:
        driver.reports = build_reports(config, driver.model)
    return driver.run()
