#!/usr/bin/env python3
"""Run Moran process simulations from YAML configuration files.

Loads a base configuration (plus an optional scenario override), applies
command-line overrides, runs every trial, and writes the enabled reports
(mean fitness, mean copy number, genotype/coordinate samples, snapshots,
runtime.yaml) into the report directory.

Usage:
    python scripts/run_moran.py configs/ab_lattice.yaml
    python scripts/run_moran.py configs/ab_lattice.yaml --trials 5 --steps 50
    python scripts/run_moran.py configs/segment_point.yaml --seed 7 --quiet
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

# ── Project imports ──────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from moran_evo.config import load_config
from moran_evo.driver import console_progress, run_simulation
from moran_evo.errors import MoranError


def build_overrides(args: argparse.Namespace) -> Dict:
    """Nested config overrides from command-line flags."""
    overrides: Dict = {}
    simulation = {}
    if args.seed is not None:
        simulation['seed'] = args.seed
    if args.trials is not None:
        simulation['trial_target'] = args.trials
    if args.steps is not None:
        simulation['max_step_count'] = args.steps
    if simulation:
        overrides['simulation'] = simulation
    if args.output_dir is not None:
        overrides['report'] = {'directory': args.output_dir}
    return overrides


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run spatial Moran process simulations.",
        epilog="Example: python scripts/run_moran.py configs/ab_lattice.yaml --trials 3",
    )
    parser.add_argument(
        "config",
        help="Base configuration YAML",
    )
    parser.add_argument(
        "--scenario", type=str, default=None,
        help="Scenario YAML merged over the base configuration",
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Override simulation.seed",
    )
    parser.add_argument(
        "--trials", type=int, default=None,
        help="Override simulation.trial_target",
    )
    parser.add_argument(
        "--steps", type=int, default=None,
        help="Override simulation.max_step_count",
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Override report.directory",
    )
    parser.add_argument(
        "--quiet", action="store_true",
        help="Suppress per-step progress output",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config, args.scenario, build_overrides(args))
    except (FileNotFoundError, MoranError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    def progress(trial_index, step_index, process):
        print(console_progress(trial_index, step_index, process))

    t0 = time.time()
    try:
        result = run_simulation(
            config,
            progress_callback=None if args.quiet else progress,
        )
    except MoranError as exc:
        print(f"Simulation aborted: {exc}", file=sys.stderr)
        return 1

    if not args.quiet:
        elapsed = time.time() - t0
        print(f"\nCompleted {result.n_trials} trial(s) of {result.population_size} cells "
              f"in {elapsed:.1f}s; reports in {config.report.directory}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
