"""Exception hierarchy for moran_evo.

Two failure categories, both fatal to the trial that raises them:

  - ValidationError: malformed or inconsistent input, raised while
    building rate matrices, event sets, populations, spaces or the
    configuration (before any cell cycle runs).
  - StateError: an invariant violated while the simulation runs
    (loss from a zero copy number, zero total neighbor fitness, a cell
    with no neighbors, an unoccupied neighbor site).

ValidationError is a ValueError and StateError a RuntimeError so that
code catching the builtin exceptions keeps working.
"""


class MoranError(Exception):
    """Base class for all moran_evo errors."""


class ValidationError(MoranError, ValueError):
    """Invalid configuration or construction input."""


class StateError(MoranError, RuntimeError):
    """Invariant violation detected during a simulation cycle."""
