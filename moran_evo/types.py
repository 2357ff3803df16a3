"""Core enumerations and constants for moran_evo.

This module is the single source of truth for:
  - CNAType, CNEventType, ABType enumerations
  - Copy-number constants (germline copy number, maximum copy number)
  - Fixed reference fitness values

Enumeration order matters: EventSet partitions [0, 1) by cumulative
probability in declaration order, so reordering members changes which
outcome a given uniform draw selects.
"""

from enum import IntEnum


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class _ParsableEnum(IntEnum):
    """IntEnum with case-insensitive name parsing."""

    @classmethod
    def parse(cls, text: str):
        """Return the member named by ``text`` (case-insensitive).

        Raises:
            ValueError: If no member has that name.
        """
        try:
            return cls[text.strip().upper()]
        except KeyError:
            names = ", ".join(m.name.lower() for m in cls)
            raise ValueError(
                f"Unknown {cls.__name__} '{text}'; expected one of: {names}"
            ) from None


class CNAType(_ParsableEnum):
    """Outcomes of one copy-number alteration trial on a genome segment.

    GAIN and LOSS are mutually exclusive within a segment; NONE absorbs
    the remaining probability.
    """
    GAIN = 0
    LOSS = 1
    NONE = 2


class CNEventType(_ParsableEnum):
    """Event kinds that carry a rate matrix."""
    GAIN = 0
    LOSS = 1


class ABType(_ParsableEnum):
    """Cell types of the A/B model.

    A  → B  (one-way mutation at division, probability mu)
    B  → B  (never reverts)
    """
    A = 0
    B = 1


# ═══════════════════════════════════════════════════════════════════════
# COPY-NUMBER CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

GERMLINE_COPY_NUMBER = 2       # Wild-type (diploid) copy number of every segment
MAX_COPY_NUMBER_DEFAULT = 8    # Default ceiling on segment copy number
MIN_MAX_COPY_NUMBER = 2        # Ceiling must at least admit the germline state


# ═══════════════════════════════════════════════════════════════════════
# FITNESS CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

TYPE_A_FITNESS = 1.0           # Reference unit fitness of A/B type A cells
WILD_TYPE_FITNESS = 1.0        # Fitness of the germline state in chained matrices


# ═══════════════════════════════════════════════════════════════════════
# SPACE CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

LINEAR_MINIMUM_SIZE = 3        # Smaller lines (and rings) are degenerate
