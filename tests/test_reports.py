"""Tests for moran_evo.reports — CSV reports and npz snapshots."""

import csv

import numpy as np
import pytest

from moran_evo.cna import CNARateModel
from moran_evo.engine import MoranProcess
from moran_evo.fitness import SegmentCNPhenotype
from moran_evo.models import ABModel, CellFactory, SegmentCNModel
from moran_evo.reports import (
    GenotypeCoordReport,
    MeanCopyNumberReport,
    MeanFitnessReport,
    SnapshotReport,
    capture_cells,
    format_snapshot_subdir,
    load_snapshot,
)
from moran_evo.segments import SegmentRegistry
from moran_evo.space import linear_space, point_space


@pytest.fixture
def ab_process():
    factory = CellFactory(ABModel(1.25, 0.2))
    space = linear_space(factory.founders(6), periodic=True)
    return MoranProcess(space, factory, np.random.default_rng(42))


@pytest.fixture
def segment_process():
    registry = SegmentRegistry.build(["6p", "9q"])
    model = SegmentCNModel(CNARateModel.uniform(registry, 4, 0.1, 0.1),
                           SegmentCNPhenotype.neutral(registry, 4))
    factory = CellFactory(model)
    return MoranProcess(point_space(factory.founders(5)), factory, np.random.default_rng(42))


def _read_rows(path):
    with open(path, newline='') as f:
        return list(csv.reader(f))


def _run(report, process, n_steps, trial_index=0):
    report.initialize_simulation(None)
    report.initialize_trial(trial_index, process)
    for _ in range(n_steps):
        process.execute_time_step()
        report.process_step(trial_index, process)
    report.finalize_trial(trial_index, process)
    report.finalize_simulation()


# ── CSV reports ───────────────────────────────────────────────────────

class TestMeanFitnessReport:
    def test_rows(self, tmp_path, ab_process):
        report = MeanFitnessReport(tmp_path / "out")
        _run(report, ab_process, 3)

        rows = _read_rows(report.path)
        assert rows[0] == ['trialIndex', 'stepIndex', 'timeClock', 'meanFitness']
        assert [r[1] for r in rows[1:]] == ['1', '2', '3']
        assert float(rows[-1][2]) == pytest.approx(ab_process.time_clock, abs=1e-6)
        assert float(rows[-1][3]) == pytest.approx(ab_process.mean_fitness, abs=1e-6)


class TestMeanCopyNumberReport:
    def test_columns_per_segment(self, tmp_path, segment_process):
        report = MeanCopyNumberReport(tmp_path, ["6p", "9q"])
        _run(report, segment_process, 2)

        rows = _read_rows(report.path)
        assert rows[0] == ['trialIndex', 'stepIndex', 'timeClock', '6p', '9q']
        assert len(rows) == 3
        expected = np.mean([c.genotype.copy_numbers for c in segment_process.list_cells()],
                           axis=0)
        np.testing.assert_allclose([float(v) for v in rows[-1][3:]], expected, atol=1e-4)


class TestGenotypeCoordReport:
    def test_sample_steps(self):
        report = GenotypeCoordReport("unused", 5)
        assert not report.is_sample_step(0)
        assert not report.is_sample_step(4)
        assert report.is_sample_step(5)
        assert report.is_sample_step(10)

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            GenotypeCoordReport("unused", 0)

    def test_rows(self, tmp_path, ab_process):
        report = GenotypeCoordReport(tmp_path, 2)
        _run(report, ab_process, 4)

        rows = _read_rows(report.path)
        assert rows[0] == ['trialIndex', 'stepIndex', 'timeClock', 'x', 'ABType']
        # Steps 2 and 4, six cells each
        assert len(rows) == 1 + 12
        assert {r[1] for r in rows[1:]} == {'2', '4'}
        assert [r[3] for r in rows[7:]] == ['0', '1', '2', '3', '4', '5']
        assert all(r[4] in ('A', 'B') for r in rows[1:])

    def test_point_space_has_no_coord_columns(self, tmp_path, segment_process):
        report = GenotypeCoordReport(tmp_path, 1)
        _run(report, segment_process, 1)
        rows = _read_rows(report.path)
        assert rows[0] == ['trialIndex', 'stepIndex', 'timeClock', 'CN_6p', 'CN_9q']
        assert len(rows) == 1 + 5


# ── Snapshots ─────────────────────────────────────────────────────────

class TestSnapshotReport:
    def test_subdir_name(self):
        assert format_snapshot_subdir(10) == "T00010"

    def test_capture_cells(self, ab_process):
        data = capture_cells(ab_process)
        assert data['cell_index'].tolist() == [0, 1, 2, 3, 4, 5]
        assert (data['parent_index'] == -1).all()
        assert data['coord'].shape == (6, 1)
        assert data['genotype'].shape == (6, 1)
        np.testing.assert_allclose(data['fitness'], 1.0)

    def test_capture_point_space(self, segment_process):
        data = capture_cells(segment_process)
        assert data['coord'].shape == (5, 0)
        assert data['genotype'].shape == (5, 2)

    def test_snapshot_files(self, tmp_path, ab_process):
        report = SnapshotReport(tmp_path, interval=2)
        _run(report, ab_process, 4, trial_index=1)

        assert report.written == [
            tmp_path / "T00002" / "cells-trial0001.npz",
            tmp_path / "T00004" / "cells-trial0001.npz",
            tmp_path / "cells-trial0001.npz",
        ]
        final = load_snapshot(report.written[-1])
        assert int(final['step_index']) == 4
        assert float(final['time_clock']) == pytest.approx(ab_process.time_clock)
        np.testing.assert_array_equal(
            final['cell_index'], [c.index for c in ab_process.list_cells()])

    def test_final_only(self, tmp_path, ab_process):
        report = SnapshotReport(tmp_path, interval=0)
        _run(report, ab_process, 3)
        assert report.written == [tmp_path / "cells-trial0000.npz"]
