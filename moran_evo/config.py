"""Configuration system for moran_evo.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → command-line overrides

Sections map 1:1 to YAML top-level keys; unknown keys are ignored. Every
loaded configuration is validated: invalid values raise ValidationError,
suspicious but legal values emit a UserWarning.
"""

from __future__ import annotations

import copy
import dataclasses
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from moran_evo.errors import ValidationError
from moran_evo.types import MAX_COPY_NUMBER_DEFAULT, MIN_MAX_COPY_NUMBER, LINEAR_MINIMUM_SIZE


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Trial control."""
    seed: int = 42
    trial_target: int = 1          # Number of independent trials
    max_step_count: int = 100      # Time steps (N cell cycles each) per trial
    fitness_range: Optional[List[float]] = None  # [lo, hi]; None = positive mean fitness
    model: str = 'ab'              # 'ab', 'scalar', or 'segment'


@dataclass
class SpaceSection:
    """Population size and spatial structure."""
    structure: str = 'lattice'     # 'point', 'linear', or 'lattice'
    size: int = 100                # Population size for point/linear spaces
    periodic: bool = False         # Ring instead of line (linear only)
    lattice_type: str = 'hexagonal'  # 'square', 'hexagonal', or 'cubic'
    lattice_shape: List[int] = field(default_factory=lambda: [100, 100])
    lattice_periodic: bool = True


@dataclass
class ABSection:
    """Two-type A/B model."""
    fitness_ratio: float = 1.25    # Fitness of B relative to A
    mutation_rate: float = 0.01    # P(A → B) per division


@dataclass
class ScalarSection:
    """Neutral fixed-fitness model."""
    fitness: float = 1.0


@dataclass
class SegmentSection:
    """Segment copy-number model."""
    definition_file: Optional[str] = None
    max_copy_number: int = MAX_COPY_NUMBER_DEFAULT
    rate_wgd: float = 0.0          # Whole-genome doubling probability per division
    gain_rate: Optional[float] = None   # Uniform gain rate (exclusive with cna_rate_file)
    loss_rate: Optional[float] = None   # Uniform loss rate (exclusive with cna_rate_file)
    cna_rate_file: Optional[str] = None
    fitness_matrix_file: Optional[str] = None  # None = neutral phenotype
    fitness_chain_operation: Optional[str] = None  # 'add', 'multiply', 'none' (chained files)


@dataclass
class ReportSection:
    """Report output control."""
    directory: str = "results/"
    mean_fitness: bool = True
    mean_copy_number: bool = True   # Segment model only
    genotype_coord: bool = False
    genotype_coord_interval: int = 10
    snapshot_interval: int = 0      # 0 = no per-step snapshots


@dataclass
class MoranConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    space: SpaceSection = field(default_factory=SpaceSection)
    ab: ABSection = field(default_factory=ABSection)
    scalar: ScalarSection = field(default_factory=ScalarSection)
    segment: SegmentSection = field(default_factory=SegmentSection)
    report: ReportSection = field(default_factory=ReportSection)


_SECTION_MAP = {
    'simulation': SimulationSection,
    'space': SpaceSection,
    'ab': ABSection,
    'scalar': ScalarSection,
    'segment': SegmentSection,
    'report': ReportSection,
}

VALID_MODELS = {'ab', 'scalar', 'segment'}
VALID_STRUCTURES = {'point', 'linear', 'lattice'}
VALID_LATTICE_TYPES = {'square', 'hexagonal', 'cubic'}
VALID_CHAIN_OPERATIONS = {'add', 'multiply', 'none'}


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Args:
        base: Base dictionary (modified in place).
        override: Override dictionary.

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> MoranConfig:
    """Convert a merged YAML dict to a MoranConfig."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return MoranConfig(**sections)


def config_to_dict(config: MoranConfig) -> Dict[str, Any]:
    """Plain nested dict of a configuration (YAML-serializable)."""
    return dataclasses.asdict(config)


def dump_config(config: MoranConfig, path: Union[str, Path]) -> None:
    """Write the resolved configuration as YAML."""
    with open(path, 'w') as f:
        yaml.safe_dump(config_to_dict(config), f, default_flow_style=False, sort_keys=False)


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_probability(value: Any, name: str) -> None:
    if not _is_number(value) or not 0.0 <= value <= 1.0:
        raise ValidationError(f"{name} must be a probability in [0, 1], got {value!r}")


def validate_config(config: MoranConfig) -> None:
    """Validate configuration constraints. Raises ValidationError on failure.

    Checks:
      - Trial control values are in range
      - Space structure and geometry are consistent
      - The selected model's parameters are valid
      - Report intervals are in range
    """
    sim = config.simulation
    if not _is_int(sim.seed) or sim.seed < 0:
        raise ValidationError("simulation.seed must be a non-negative integer")
    if not _is_int(sim.trial_target) or sim.trial_target < 1:
        raise ValidationError("simulation.trial_target must be a positive integer")
    if not _is_int(sim.max_step_count) or sim.max_step_count < 1:
        raise ValidationError("simulation.max_step_count must be a positive integer")
    if sim.model not in VALID_MODELS:
        raise ValidationError(
            f"simulation.model must be one of {sorted(VALID_MODELS)}, got '{sim.model}'"
        )
    if sim.fitness_range is not None:
        if (not isinstance(sim.fitness_range, (list, tuple))
                or len(sim.fitness_range) != 2
                or not all(_is_number(v) for v in sim.fitness_range)):
            raise ValidationError(
                f"simulation.fitness_range must be [lo, hi], got {sim.fitness_range!r}"
            )
        lo, hi = sim.fitness_range
        if not lo < hi:
            raise ValidationError(
                f"simulation.fitness_range requires lo < hi, got {sim.fitness_range!r}"
            )

    _validate_space(config.space)

    if sim.model == 'ab':
        _validate_ab(config.ab)
    elif sim.model == 'scalar':
        _validate_scalar(config.scalar)
    else:
        _validate_segment(config.segment)

    _validate_report(config.report)


def _validate_space(space: SpaceSection) -> None:
    if space.structure not in VALID_STRUCTURES:
        raise ValidationError(
            f"space.structure must be one of {sorted(VALID_STRUCTURES)}, "
            f"got '{space.structure}'"
        )
    if space.structure == 'point':
        if not _is_int(space.size) or space.size < 2:
            raise ValidationError("space.size must be at least 2 for a point space")
    elif space.structure == 'linear':
        if not _is_int(space.size) or space.size < LINEAR_MINIMUM_SIZE:
            raise ValidationError(
                f"space.size must be at least {LINEAR_MINIMUM_SIZE} for a linear space"
            )
    else:
        if space.lattice_type not in VALID_LATTICE_TYPES:
            raise ValidationError(
                f"space.lattice_type must be one of {sorted(VALID_LATTICE_TYPES)}, "
                f"got '{space.lattice_type}'"
            )
        expected_dims = 3 if space.lattice_type == 'cubic' else 2
        shape = space.lattice_shape
        if (not isinstance(shape, (list, tuple)) or len(shape) != expected_dims
                or not all(_is_int(n) and n >= 1 for n in shape)):
            raise ValidationError(
                f"space.lattice_shape must list {expected_dims} positive integers "
                f"for a {space.lattice_type} lattice, got {shape!r}"
            )
        if space.lattice_periodic and min(shape) < 3:
            raise ValidationError(
                "space.lattice_shape extents must be at least 3 with periodic boundaries"
            )


def _validate_ab(ab: ABSection) -> None:
    if not _is_number(ab.fitness_ratio) or ab.fitness_ratio <= 0:
        raise ValidationError(f"ab.fitness_ratio must be positive, got {ab.fitness_ratio!r}")
    _require_probability(ab.mutation_rate, "ab.mutation_rate")
    if ab.mutation_rate == 0:
        warnings.warn(
            "ab.mutation_rate is zero: type B cells will never arise.",
            UserWarning,
            stacklevel=3,
        )


def _validate_scalar(scalar: ScalarSection) -> None:
    if not _is_number(scalar.fitness) or scalar.fitness < 0:
        raise ValidationError(f"scalar.fitness must be non-negative, got {scalar.fitness!r}")
    if scalar.fitness == 0:
        warnings.warn(
            "scalar.fitness is zero: trials end before their first step "
            "unless simulation.fitness_range admits zero mean fitness.",
            UserWarning,
            stacklevel=3,
        )


def _validate_segment(seg: SegmentSection) -> None:
    if not seg.definition_file:
        raise ValidationError("segment.definition_file is required for the segment model")
    if not _is_int(seg.max_copy_number) or seg.max_copy_number < MIN_MAX_COPY_NUMBER:
        raise ValidationError(
            f"segment.max_copy_number must be an integer >= {MIN_MAX_COPY_NUMBER}, "
            f"got {seg.max_copy_number!r}"
        )
    _require_probability(seg.rate_wgd, "segment.rate_wgd")
    if seg.rate_wgd >= 1:
        raise ValidationError("segment.rate_wgd must be below one")

    uniform = seg.gain_rate is not None or seg.loss_rate is not None
    if uniform and seg.cna_rate_file:
        raise ValidationError(
            "segment.gain_rate/loss_rate and segment.cna_rate_file are mutually exclusive"
        )
    if not uniform and not seg.cna_rate_file:
        raise ValidationError(
            "segment model needs either gain_rate and loss_rate or cna_rate_file"
        )
    if uniform:
        if seg.gain_rate is None or seg.loss_rate is None:
            raise ValidationError("segment.gain_rate and segment.loss_rate must both be set")
        _require_probability(seg.gain_rate, "segment.gain_rate")
        _require_probability(seg.loss_rate, "segment.loss_rate")
        if (seg.gain_rate + seg.loss_rate) / (1.0 - seg.rate_wgd) > 1.0:
            raise ValidationError(
                "segment.gain_rate + loss_rate, rescaled by 1 / (1 - rate_wgd), exceeds one"
            )

    if (seg.fitness_chain_operation is not None
            and str(seg.fitness_chain_operation).lower() not in VALID_CHAIN_OPERATIONS):
        raise ValidationError(
            f"segment.fitness_chain_operation must be one of "
            f"{sorted(VALID_CHAIN_OPERATIONS)}, got '{seg.fitness_chain_operation}'"
        )
    if seg.fitness_matrix_file is None:
        warnings.warn(
            "segment.fitness_matrix_file is not set: every genotype has equal fitness.",
            UserWarning,
            stacklevel=3,
        )


def _validate_report(report: ReportSection) -> None:
    if not _is_int(report.genotype_coord_interval) or report.genotype_coord_interval < 1:
        raise ValidationError("report.genotype_coord_interval must be a positive integer")
    if not _is_int(report.snapshot_interval) or report.snapshot_interval < 0:
        raise ValidationError("report.snapshot_interval must be a non-negative integer")
    if not os.path.isdir(report.directory):
        warnings.warn(
            f"report.directory '{report.directory}' does not exist and will be created.",
            UserWarning,
            stacklevel=3,
        )


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> MoranConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        overrides: Optional nested dict of overrides (e.g. from the CLI).

    Returns:
        Validated MoranConfig.

    Raises:
        FileNotFoundError: If base_path or scenario_path doesn't exist.
        ValidationError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")
        with open(scenario_path) as f:
            scenario = yaml.safe_load(f) or {}
        deep_merge(config_dict, scenario)

    if overrides is not None:
        deep_merge(config_dict, copy.deepcopy(overrides))

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> MoranConfig:
    """Return a MoranConfig with all default values."""
    config = MoranConfig()
    validate_config(config)
    return config
