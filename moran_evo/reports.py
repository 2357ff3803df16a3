"""Simulation reports.

Reports observe a running simulation through five hooks, called by the
driver in this order:

    initialize_simulation(config)
      initialize_trial(trial_index, process)
        process_step(trial_index, process)      after every time step
      finalize_trial(trial_index, process)
    finalize_simulation()

CSV reports (written with the csv module into the report directory):

  - MeanFitnessReport     mean-fitness.csv
  - MeanCopyNumberReport  mean-copy-number.csv, one column per segment
  - GenotypeCoordReport   genotype-coord.csv, one row per cell on sample steps

SnapshotReport stores the full cell state as compressed npz archives,
one per trial on every snapshot step (subdirectory T00010/ for step 10)
and once more at the end of each trial.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import IO, List, Optional, Sequence, Union

import numpy as np

from moran_evo.engine import MoranProcess

MEAN_FITNESS_FILE = "mean-fitness.csv"
MEAN_COPY_NUMBER_FILE = "mean-copy-number.csv"
GENOTYPE_COORD_FILE = "genotype-coord.csv"
RUNTIME_CONFIG_FILE = "runtime.yaml"
SNAPSHOT_SUBDIR_PREFIX = "T"


def format_snapshot_subdir(step_index: int) -> str:
    """Subdirectory name for snapshots taken after ``step_index``."""
    return f"{SNAPSHOT_SUBDIR_PREFIX}{step_index:05d}"


class Report:
    """Base report: no-op hooks plus CSV file handling."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def initialize_simulation(self, config) -> None:
        pass

    def initialize_trial(self, trial_index: int, process: MoranProcess) -> None:
        pass

    def process_step(self, trial_index: int, process: MoranProcess) -> None:
        pass

    def finalize_trial(self, trial_index: int, process: MoranProcess) -> None:
        pass

    def finalize_simulation(self) -> None:
        pass


class CsvReport(Report):
    """Report that streams rows into one CSV file for the whole simulation."""

    file_name: str = ""

    def __init__(self, directory: Union[str, Path]):
        super().__init__(directory)
        self._file: Optional[IO[str]] = None
        self._writer = None

    @property
    def path(self) -> Path:
        return self.directory / self.file_name

    def initialize_simulation(self, config) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, 'w', newline='')
        self._writer = csv.writer(self._file)

    def write_row(self, row: Sequence) -> None:
        self._writer.writerow(row)

    def finalize_simulation(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None


# ═══════════════════════════════════════════════════════════════════════
# MEAN FITNESS
# ═══════════════════════════════════════════════════════════════════════

class MeanFitnessReport(CsvReport):
    """Population mean fitness after every time step."""

    file_name = MEAN_FITNESS_FILE

    def initialize_simulation(self, config) -> None:
        super().initialize_simulation(config)
        self.write_row(['trialIndex', 'stepIndex', 'timeClock', 'meanFitness'])

    def process_step(self, trial_index: int, process: MoranProcess) -> None:
        self.write_row([
            trial_index,
            process.step_index,
            f"{process.time_clock:.6f}",
            f"{process.mean_fitness:.6f}",
        ])


# ═══════════════════════════════════════════════════════════════════════
# MEAN COPY NUMBER
# ═══════════════════════════════════════════════════════════════════════

class MeanCopyNumberReport(CsvReport):
    """Mean copy number of every genome segment after every time step.

    Args:
        directory: Report directory.
        segment_keys: Segment keys in registry order (column names).
    """

    file_name = MEAN_COPY_NUMBER_FILE

    def __init__(self, directory: Union[str, Path], segment_keys: Sequence[str]):
        super().__init__(directory)
        self.segment_keys = list(segment_keys)

    def initialize_simulation(self, config) -> None:
        super().initialize_simulation(config)
        self.write_row(['trialIndex', 'stepIndex', 'timeClock'] + self.segment_keys)

    def process_step(self, trial_index: int, process: MoranProcess) -> None:
        copy_numbers = np.stack([cell.genotype.copy_numbers for cell in process.list_cells()])
        means = copy_numbers.mean(axis=0)
        self.write_row(
            [trial_index, process.step_index, f"{process.time_clock:.6f}"]
            + [f"{m:.4f}" for m in means]
        )


# ═══════════════════════════════════════════════════════════════════════
# GENOTYPE / COORDINATE
# ═══════════════════════════════════════════════════════════════════════

class GenotypeCoordReport(CsvReport):
    """Location and genotype of every cell, on sample steps only.

    A step is a sample step when ``step > 0 and step % interval == 0``.

    Args:
        directory: Report directory.
        interval: Steps between samples (≥ 1).
    """

    file_name = GENOTYPE_COORD_FILE

    def __init__(self, directory: Union[str, Path], interval: int):
        super().__init__(directory)
        if interval < 1:
            raise ValueError(f"Sample interval must be positive, got {interval}")
        self.interval = interval
        self._header_written = False

    def is_sample_step(self, step_index: int) -> bool:
        return step_index > 0 and step_index % self.interval == 0

    def initialize_simulation(self, config) -> None:
        super().initialize_simulation(config)
        self._header_written = False

    def process_step(self, trial_index: int, process: MoranProcess) -> None:
        if not self.is_sample_step(process.step_index):
            return

        cells = process.list_cells()
        if not self._header_written:
            coord = process.locate(cells[0])
            self.write_row(
                ['trialIndex', 'stepIndex', 'timeClock']
                + coord.header()
                + process.factory.model.header()
            )
            self._header_written = True

        prefix = [trial_index, process.step_index, f"{process.time_clock:.6f}"]
        for cell in cells:
            self.write_row(prefix + process.locate(cell).format() + cell.genotype.format())


# ═══════════════════════════════════════════════════════════════════════
# SNAPSHOTS
# ═══════════════════════════════════════════════════════════════════════

def capture_cells(process: MoranProcess) -> dict:
    """Parallel arrays describing every cell, in population order."""
    cells = process.list_cells()
    coords = [process.locate(cell) for cell in cells]
    dimension = coords[0].dimension
    return {
        'cell_index': np.array([cell.index for cell in cells], dtype=np.int64),
        'parent_index': np.array(
            [-1 if cell.parent_index is None else cell.parent_index for cell in cells],
            dtype=np.int64),
        'fitness': np.array([process.factory.fitness(cell) for cell in cells]),
        'coord': np.array([tuple(c) for c in coords],
                          dtype=np.int64).reshape(len(cells), dimension),
        'genotype': np.stack([cell.genotype.as_array() for cell in cells]),
        'step_index': np.array(process.step_index),
        'time_clock': np.array(process.time_clock),
    }


class SnapshotReport(Report):
    """Compressed per-cell snapshots.

    Args:
        directory: Report directory.
        interval: Steps between snapshots; 0 records only the final state
            of each trial.
    """

    def __init__(self, directory: Union[str, Path], interval: int = 0):
        super().__init__(directory)
        if interval < 0:
            raise ValueError(f"Snapshot interval must be non-negative, got {interval}")
        self.interval = interval
        self.written: List[Path] = []

    def is_snapshot_step(self, step_index: int) -> bool:
        return self.interval > 0 and step_index % self.interval == 0

    def _save(self, directory: Path, trial_index: int, process: MoranProcess) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"cells-trial{trial_index:04d}.npz"
        np.savez_compressed(path, **capture_cells(process))
        self.written.append(path)

    def process_step(self, trial_index: int, process: MoranProcess) -> None:
        if self.is_snapshot_step(process.step_index):
            subdir = self.directory / format_snapshot_subdir(process.step_index)
            self._save(subdir, trial_index, process)

    def finalize_trial(self, trial_index: int, process: MoranProcess) -> None:
        self._save(self.directory, trial_index, process)


def load_snapshot(path: Union[str, Path]) -> dict:
    """Load a snapshot archive written by SnapshotReport."""
    with np.load(path) as data:
        return {key: data[key] for key in data.files}
