"""Genome segment registry.

A genome segment is any tracked unit of the genome (whole chromosome,
chromosome arm, smaller region). Each segment has a unique key, a
free-text description, and a dense zero-based ordinal index that rows of
rate and fitness matrices and entries of copy-number vectors are
indexed by.

The registry is built once from ordered (key, description) pairs and is
read-only afterwards. There is no process-wide registry: the registry is
passed explicitly to every component that needs it, so several
independent registries may coexist in one process.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from moran_evo.errors import ValidationError


@dataclass(frozen=True)
class GenomeSegment:
    """One registered genome segment."""
    key: str
    desc: str
    index: int

    def __str__(self) -> str:
        return f"GenomeSegment({self.key})"


SegmentSpec = Union[str, Tuple[str], Tuple[str, str]]


class SegmentRegistry:
    """Ordered, immutable collection of genome segments.

    Build with ``SegmentRegistry.build(pairs)``; the position of each pair
    becomes the segment's ordinal index.
    """

    def __init__(self, segments: Sequence[GenomeSegment]):
        self._segments: Tuple[GenomeSegment, ...] = tuple(segments)
        self._by_key: Dict[str, GenomeSegment] = {}

        for position, segment in enumerate(self._segments):
            if segment.index != position:
                raise ValidationError(
                    f"Segment '{segment.key}' has index {segment.index}, "
                    f"expected dense index {position}."
                )
            if segment.key in self._by_key:
                raise ValidationError(f"Duplicate genome segment key: '{segment.key}'.")
            self._by_key[segment.key] = segment

    @classmethod
    def build(cls, pairs: Iterable[SegmentSpec]) -> 'SegmentRegistry':
        """Build a registry from ordered segment definitions.

        Args:
            pairs: Iterable of ``(key, desc)`` tuples, ``(key,)`` tuples,
                or bare key strings. A missing description defaults to
                the key.

        Returns:
            New registry with indices 0..M−1 in input order.

        Raises:
            ValidationError: If a key is empty or duplicated, or a
                definition has more than two fields.
        """
        segments: List[GenomeSegment] = []
        for spec in pairs:
            if isinstance(spec, str):
                spec = (spec,)
            if len(spec) == 1:
                key, desc = spec[0], spec[0]
            elif len(spec) == 2:
                key, desc = spec
            else:
                raise ValidationError(f"Invalid genome segment definition: {spec!r}.")

            key = key.strip()
            desc = desc.strip()
            if not key:
                raise ValidationError("Genome segment keys must be non-empty.")
            segments.append(GenomeSegment(key=key, desc=desc or key, index=len(segments)))

        return cls(segments)

    def count(self) -> int:
        return len(self._segments)

    def list(self) -> Tuple[GenomeSegment, ...]:
        return self._segments

    def keys(self) -> List[str]:
        return [segment.key for segment in self._segments]

    def instance(self, index: int) -> GenomeSegment:
        """Segment with a given ordinal index (IndexError if invalid)."""
        if index < 0:
            raise IndexError(f"Invalid segment index {index}.")
        return self._segments[index]

    def get(self, key: str) -> Optional[GenomeSegment]:
        """Segment with a given key, or None."""
        return self._by_key.get(key)

    def require(self, key: str) -> GenomeSegment:
        """Segment with a given key.

        Raises:
            ValidationError: If no such segment is registered.
        """
        segment = self._by_key.get(key)
        if segment is None:
            raise ValidationError(f"Undefined genome segment: '{key}'.")
        return segment

    def contains(self, segment: GenomeSegment) -> bool:
        return (0 <= segment.index < len(self._segments)
                and self._segments[segment.index] == segment)

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[GenomeSegment]:
        return iter(self._segments)

    def __repr__(self) -> str:
        return f"SegmentRegistry({', '.join(self.keys())})"
