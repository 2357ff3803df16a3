"""Tests for moran_evo.config — configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

from moran_evo.config import (
    ABSection,
    MoranConfig,
    ReportSection,
    ScalarSection,
    SegmentSection,
    SimulationSection,
    SpaceSection,
    config_to_dict,
    deep_merge,
    default_config,
    dump_config,
    load_config,
    validate_config,
)
from moran_evo.errors import ValidationError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = Path(__file__).parent / "data"


def _config(tmp_path, **sections):
    """Valid config writing into tmp_path, with selected sections replaced."""
    config = MoranConfig(report=ReportSection(directory=str(tmp_path)))
    for name, section in sections.items():
        setattr(config, name, section)
    return config


def _segment(**kwargs):
    values = dict(definition_file=str(DATA_DIR / "test_segment.txt"),
                  gain_rate=0.01, loss_rate=0.02,
                  fitness_matrix_file=str(DATA_DIR / "explicit_phenotype.csv"),
                  max_copy_number=5)
    values.update(kwargs)
    return SegmentSection(**values)


# ── deep_merge tests ──────────────────────────────────────────────────

class TestDeepMerge:
    def test_simple_override(self):
        assert deep_merge({'a': 1, 'b': 2}, {'b': 3}) == {'a': 1, 'b': 3}

    def test_nested_merge(self):
        base = {'x': {'a': 1, 'b': 2}, 'y': 10}
        result = deep_merge(base, {'x': {'b': 3, 'c': 4}})
        assert result == {'x': {'a': 1, 'b': 3, 'c': 4}, 'y': 10}

    def test_override_dict_with_scalar(self):
        assert deep_merge({'a': {'nested': 1}}, {'a': 'replaced'}) == {'a': 'replaced'}

    def test_empty_override(self):
        assert deep_merge({'a': 1}, {}) == {'a': 1}


# ── default_config tests ──────────────────────────────────────────────

@pytest.mark.filterwarnings("ignore::UserWarning")
class TestDefaultConfig:
    def test_creates_valid_config(self):
        config = default_config()
        assert isinstance(config, MoranConfig)

    def test_default_values(self):
        config = default_config()
        assert config.simulation.model == 'ab'
        assert config.simulation.fitness_range is None
        assert config.space.structure == 'lattice'
        assert config.space.lattice_type == 'hexagonal'
        assert config.space.lattice_shape == [100, 100]
        assert config.ab.fitness_ratio == 1.25
        assert config.ab.mutation_rate == 0.01
        assert config.segment.max_copy_number == 8


# ── load_config tests ─────────────────────────────────────────────────

class TestLoadConfig:
    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "base.yaml"
        path.write_text(yaml.dump({
            'simulation': {'seed': 7, 'max_step_count': 3, 'model': 'scalar'},
            'space': {'structure': 'point', 'size': 10},
            'report': {'directory': str(tmp_path)},
            'unknown_section': {'ignored': True},
        }))
        config = load_config(path)
        assert config.simulation.seed == 7
        assert config.simulation.model == 'scalar'
        assert config.space.size == 10
        assert config.simulation.trial_target == 1

    def test_scenario_and_overrides(self, tmp_path):
        base = tmp_path / "base.yaml"
        base.write_text(yaml.dump({
            'simulation': {'seed': 7},
            'space': {'structure': 'point', 'size': 10},
            'report': {'directory': str(tmp_path)},
        }))
        scenario = tmp_path / "scenario.yaml"
        scenario.write_text(yaml.dump({'space': {'structure': 'linear', 'periodic': True}}))

        config = load_config(base, scenario, {'simulation': {'trial_target': 4}})
        assert config.space.structure == 'linear'
        assert config.space.size == 10
        assert config.space.periodic
        assert config.simulation.seed == 7
        assert config.simulation.trial_target == 4

    def test_overrides_not_mutated(self, tmp_path):
        base = tmp_path / "base.yaml"
        base.write_text(yaml.dump({'report': {'directory': str(tmp_path)}}))
        overrides = {'ab': {'fitness_ratio': 2.0}}
        load_config(base, overrides=overrides)
        assert overrides == {'ab': {'fitness_ratio': 2.0}}

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")
        base = tmp_path / "base.yaml"
        base.write_text("")
        with pytest.raises(FileNotFoundError):
            load_config(base, tmp_path / "missing.yaml")

    def test_invalid_value_raises(self, tmp_path):
        path = tmp_path / "base.yaml"
        path.write_text(yaml.dump({'simulation': {'model': 'quantum'}}))
        with pytest.raises(ValidationError, match="simulation.model"):
            load_config(path)

    @pytest.mark.filterwarnings("ignore::UserWarning")
    @pytest.mark.parametrize("name", ["ab_lattice.yaml", "segment_point.yaml"])
    def test_load_shipped_configs(self, name):
        config = load_config(PROJECT_ROOT / "configs" / name)
        assert config.simulation.model in ('ab', 'segment')

    @pytest.mark.filterwarnings("ignore::UserWarning")
    def test_shipped_scenario(self):
        config = load_config(PROJECT_ROOT / "configs" / "ab_lattice.yaml",
                             PROJECT_ROOT / "configs" / "scenario_linear_ring.yaml")
        assert config.space.structure == 'linear'
        assert config.space.size == 500


# ── Validation tests ──────────────────────────────────────────────────

class TestValidation:
    def test_valid(self, tmp_path):
        validate_config(_config(tmp_path))

    @pytest.mark.parametrize("section", [
        SimulationSection(seed=-1),
        SimulationSection(trial_target=0),
        SimulationSection(max_step_count=0),
        SimulationSection(fitness_range=[2.0, 1.0]),
        SimulationSection(fitness_range=[1.0]),
    ])
    def test_bad_simulation(self, tmp_path, section):
        with pytest.raises(ValidationError, match="simulation"):
            validate_config(_config(tmp_path, simulation=section))

    @pytest.mark.parametrize("section", [
        SpaceSection(structure='torus'),
        SpaceSection(structure='point', size=1),
        SpaceSection(structure='linear', size=2),
        SpaceSection(lattice_type='triangle'),
        SpaceSection(lattice_type='cubic', lattice_shape=[10, 10]),
        SpaceSection(lattice_shape=[2, 10], lattice_periodic=True),
    ])
    def test_bad_space(self, tmp_path, section):
        with pytest.raises(ValidationError, match="space"):
            validate_config(_config(tmp_path, space=section))

    def test_hard_wall_lattice_allows_narrow_box(self, tmp_path):
        space = SpaceSection(lattice_shape=[2, 10], lattice_periodic=False)
        validate_config(_config(tmp_path, space=space))

    def test_bad_ab(self, tmp_path):
        with pytest.raises(ValidationError, match="fitness_ratio"):
            validate_config(_config(tmp_path, ab=ABSection(fitness_ratio=0.0)))
        with pytest.raises(ValidationError, match="mutation_rate"):
            validate_config(_config(tmp_path, ab=ABSection(mutation_rate=1.5)))

    def test_zero_mutation_warns(self, tmp_path):
        with pytest.warns(UserWarning, match="mutation_rate"):
            validate_config(_config(tmp_path, ab=ABSection(mutation_rate=0.0)))

    def test_zero_scalar_fitness_warns(self, tmp_path):
        config = _config(tmp_path, simulation=SimulationSection(model='scalar'),
                         scalar=ScalarSection(0.0))
        with pytest.warns(UserWarning, match="end before their first step"):
            validate_config(config)

    def test_missing_directory_warns(self, tmp_path):
        config = _config(tmp_path)
        config.report.directory = str(tmp_path / "not-yet")
        with pytest.warns(UserWarning, match="does not exist"):
            validate_config(config)

    def test_segment_valid(self, tmp_path):
        sim = SimulationSection(model='segment')
        validate_config(_config(tmp_path, simulation=sim, segment=_segment()))

    def test_segment_without_fitness_warns(self, tmp_path):
        sim = SimulationSection(model='segment')
        segment = _segment(fitness_matrix_file=None)
        with pytest.warns(UserWarning, match="fitness_matrix_file"):
            validate_config(_config(tmp_path, simulation=sim, segment=segment))

    @pytest.mark.parametrize("kwargs,match", [
        ({'definition_file': None}, "definition_file"),
        ({'max_copy_number': 1}, "max_copy_number"),
        ({'rate_wgd': 1.0}, "rate_wgd"),
        ({'cna_rate_file': 'rates.csv'}, "mutually exclusive"),
        ({'gain_rate': None, 'loss_rate': None}, "either"),
        ({'loss_rate': None}, "both"),
        ({'gain_rate': 0.6, 'loss_rate': 0.5}, "exceeds one"),
        ({'gain_rate': 0.45, 'loss_rate': 0.45, 'rate_wgd': 0.2}, "exceeds one"),
        ({'fitness_chain_operation': 'divide'}, "fitness_chain_operation"),
    ])
    def test_bad_segment(self, tmp_path, kwargs, match):
        sim = SimulationSection(model='segment')
        with pytest.raises(ValidationError, match=match):
            validate_config(_config(tmp_path, simulation=sim, segment=_segment(**kwargs)))

    def test_segment_ignored_for_other_models(self, tmp_path):
        validate_config(_config(tmp_path, segment=SegmentSection()))

    def test_bad_report(self, tmp_path):
        config = _config(tmp_path)
        config.report.genotype_coord_interval = 0
        with pytest.raises(ValidationError, match="genotype_coord_interval"):
            validate_config(config)
        config.report.genotype_coord_interval = 5
        config.report.snapshot_interval = -1
        with pytest.raises(ValidationError, match="snapshot_interval"):
            validate_config(config)


# ── Serialization tests ───────────────────────────────────────────────

class TestDumpConfig:
    def test_round_trip(self, tmp_path):
        config = _config(tmp_path, simulation=SimulationSection(seed=99, fitness_range=[0.5, 2.0]))
        path = tmp_path / "runtime.yaml"
        dump_config(config, path)

        loaded = load_config(path)
        assert config_to_dict(loaded) == config_to_dict(config)
