"""Text-file loaders for segment definitions, CNA rates, and fitness matrices.

All files are comma-separated; blank lines and ``#`` comments (whole-line
or trailing) are ignored. Malformed content raises ValidationError naming
the file and line.

Segment definitions, one segment per line:

    6p, Important segment
    9q

CNA rates, either per segment (applied to every non-absorbing copy
number) or per segment and copy number:

    6p, gain, 1.0E-04            6p, 1, gain, 1.0E-04
    6p, loss, 2.0E-04            6p, 1, loss, 2.0E-04

Fitness matrices, explicit (header row of copy numbers, one row per
segment) or chained (gain and loss selection coefficients per segment,
expanded with a FitnessChainOperation):

    Segment, 0, 1, 2, 3          6p, gain, 0.05
    6p, 0.9, 0.95, 1.0, 1.1      6p, loss, -0.02
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from moran_evo.errors import ValidationError
from moran_evo.fitness import (
    FitnessChainOperation,
    chained_fitness_matrix,
    validate_fitness_matrix,
)
from moran_evo.rates import RateMatrix
from moran_evo.segments import SegmentRegistry
from moran_evo.types import CNEventType

PathLike = Union[str, Path]

_Line = Tuple[int, List[str]]


def read_data_lines(path: PathLike) -> List[_Line]:
    """Read (line number, fields) pairs, skipping comments and blank lines.

    Raises:
        ValidationError: If the file cannot be read.
    """
    path = Path(path)
    try:
        with open(path, 'r') as fh:
            raw = fh.readlines()
    except OSError as exc:
        raise ValidationError(f"Cannot read {path}: {exc}") from None

    lines: List[_Line] = []
    for lineno, text in enumerate(raw, start=1):
        text = text.split('#', 1)[0].strip()
        if text:
            lines.append((lineno, [field.strip() for field in text.split(',')]))
    return lines


class _LineError(ValidationError):
    """ValidationError already tagged with file name and line number."""


def _fail(path: PathLike, lineno: int, message: str) -> _LineError:
    return _LineError(f"{path}, line {lineno}: {message}")


def _event_type(text: str) -> CNEventType:
    try:
        return CNEventType.parse(text)
    except ValueError:
        raise ValidationError(f"expected 'gain' or 'loss', got '{text}'.") from None


def _float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise ValidationError(f"invalid number '{text}'.") from None


# ═══════════════════════════════════════════════════════════════════════
# SEGMENT DEFINITIONS
# ═══════════════════════════════════════════════════════════════════════

def load_segment_definitions(path: PathLike) -> SegmentRegistry:
    """Build a segment registry from a definition file.

    Raises:
        ValidationError: If the file is empty, a line has more than two
            fields, or a key is repeated.
    """
    lines = read_data_lines(path)
    if not lines:
        raise ValidationError(f"{path}: no genome segments defined.")

    pairs = []
    for lineno, fields in lines:
        if len(fields) > 2:
            raise _fail(path, lineno, "expected 'key[, description]'.")
        pairs.append(tuple(fields))

    try:
        return SegmentRegistry.build(pairs)
    except ValidationError as exc:
        raise ValidationError(f"{path}: {exc}") from None


# ═══════════════════════════════════════════════════════════════════════
# CNA RATES
# ═══════════════════════════════════════════════════════════════════════

def _apply_rate_line(fields: List[str], registry: SegmentRegistry,
                     matrices: Dict[CNEventType, RateMatrix]) -> None:
    if len(fields) == 3:
        segment = registry.require(fields[0])
        matrix = matrices[_event_type(fields[1])]
        rate = _float(fields[2])
        for copy_num in range(1, matrix.max_copy_number + 1):
            if not matrix.is_absorbing(copy_num):
                matrix.set_rate(segment, copy_num, rate)
    elif len(fields) == 4:
        segment = registry.require(fields[0])
        try:
            copy_num = int(fields[1])
        except ValueError:
            raise ValidationError(f"invalid copy number '{fields[1]}'.") from None
        matrix = matrices[_event_type(fields[2])]
        matrix.set_rate(segment, copy_num, _float(fields[3]))
    else:
        raise ValidationError("expected 3 or 4 comma-separated fields.")


def load_cna_rates(path: PathLike, registry: SegmentRegistry,
                   max_copy_number: int) -> Tuple[RateMatrix, RateMatrix]:
    """Load gain and loss rate matrices.

    Three-field lines ``segment, gain|loss, rate`` assign the rate to all
    non-absorbing copy numbers of the segment; four-field lines
    ``segment, cn, gain|loss, rate`` assign a single element. Later lines
    override earlier ones.

    Returns:
        ``(gain_rates, loss_rates)``, both validated complete.

    Raises:
        ValidationError: On malformed lines, unknown segments, non-zero
            rates for absorbing states, or unassigned elements.
    """
    matrices: Dict[CNEventType, RateMatrix] = {
        kind: RateMatrix.create(kind, registry, max_copy_number) for kind in CNEventType
    }

    for lineno, fields in read_data_lines(path):
        try:
            _apply_rate_line(fields, registry, matrices)
        except ValidationError as exc:
            raise _fail(path, lineno, str(exc)) from None

    for matrix in matrices.values():
        try:
            matrix.validate()
        except ValidationError as exc:
            raise ValidationError(f"{path}: {exc}") from None

    return matrices[CNEventType.GAIN], matrices[CNEventType.LOSS]


# ═══════════════════════════════════════════════════════════════════════
# FITNESS MATRICES
# ═══════════════════════════════════════════════════════════════════════

def _is_chained(lines: List[_Line]) -> bool:
    return all(
        len(fields) == 3 and fields[1].lower() in ('gain', 'loss')
        for _, fields in lines
    )


def load_fitness_matrix(path: PathLike, registry: SegmentRegistry,
                        max_copy_number: int,
                        operation: Optional[Union[FitnessChainOperation, str]] = None,
                        ) -> np.ndarray:
    """Load a fitness matrix in explicit or chained format.

    Args:
        path: Fitness file.
        registry: Genome segments (matrix rows).
        max_copy_number: Highest copy number (matrix columns 0..max).
        operation: Chain operation; required for chained files.

    Returns:
        Validated (n_segments, max_copy_number + 1) array.

    Raises:
        ValidationError: On malformed content, unknown segments, missing
            entries, or negative fitness.
    """
    lines = read_data_lines(path)
    if not lines:
        raise ValidationError(f"{path}: empty fitness matrix file.")

    try:
        if _is_chained(lines):
            if operation is None:
                raise ValidationError(
                    "a fitness chain operation is required for chained fitness files."
                )
            if isinstance(operation, str):
                try:
                    operation = FitnessChainOperation.parse(operation)
                except ValueError as exc:
                    raise ValidationError(str(exc)) from None
            gains, losses = _read_chained(path, lines, registry)
            matrix = chained_fitness_matrix(registry, max_copy_number, gains, losses, operation)
        else:
            matrix = _read_explicit(path, lines, registry, max_copy_number)
            validate_fitness_matrix(matrix, registry, max_copy_number)
    except _LineError:
        raise
    except ValidationError as exc:
        raise ValidationError(f"{path}: {exc}") from None

    return matrix


def _read_chained(path: PathLike, lines: List[_Line],
                  registry: SegmentRegistry) -> Tuple[Dict[str, float], Dict[str, float]]:
    effects: Dict[CNEventType, Dict[str, float]] = {kind: {} for kind in CNEventType}

    for lineno, (key, flag, value) in lines:
        try:
            segment = registry.require(key)
            kind = _event_type(flag)
            if segment.key in effects[kind]:
                raise ValidationError(
                    f"duplicate {kind.name.lower()} entry for '{segment.key}'.")
            effects[kind][segment.key] = _float(value)
        except ValidationError as exc:
            raise _fail(path, lineno, str(exc)) from None

    return effects[CNEventType.GAIN], effects[CNEventType.LOSS]


def _read_explicit(path: PathLike, lines: List[_Line], registry: SegmentRegistry,
                   max_copy_number: int) -> np.ndarray:
    n_cols = max_copy_number + 1
    header_lineno, header = lines[0]
    expected = [str(cn) for cn in range(n_cols)]
    if len(header) != n_cols + 1 or header[1:] != expected:
        raise _fail(path, header_lineno,
                    f"expected header 'Segment, {', '.join(expected)}'.")

    # Negative entries mark unassigned elements until every row is read.
    matrix = np.full((registry.count(), n_cols), -1.0)
    seen = set()

    for lineno, fields in lines[1:]:
        try:
            if len(fields) != n_cols + 1:
                raise ValidationError(f"expected {n_cols + 1} comma-separated fields.")
            segment = registry.require(fields[0])
            if segment.key in seen:
                raise ValidationError(f"duplicate row for '{segment.key}'.")
            seen.add(segment.key)
            matrix[segment.index] = [_float(f) for f in fields[1:]]
        except ValidationError as exc:
            raise _fail(path, lineno, str(exc)) from None

    missing = [s.key for s in registry if s.key not in seen]
    if missing:
        raise ValidationError(f"no fitness row for {', '.join(missing)}.")

    return matrix
