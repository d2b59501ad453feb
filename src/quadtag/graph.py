"""Segment adjacency graph stored as an index arena."""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Sequence

from .geom import distance2d, mod2pi
from .types import Segment


log = logging.getLogger(__name__)


class SegmentGraph:
    """Arena of segments addressed by stable integer indices.

    Children are index lists into the arena.  The search only reads the
    graph, so one instance can be shared between worker threads.
    """

    def __init__(self) -> None:
        self._segments: List[Segment] = []

    def __len__(self) -> int:
        return len(self._segments)

    def __getitem__(self, index: int) -> Segment:
        return self._segments[index]

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    def add(self, x0: float, y0: float, x1: float, y1: float) -> int:
        index = len(self._segments)
        self._segments.append(
            Segment(float(x0), float(y0), float(x1), float(y1), id=index)
        )
        return index

    def link(self, parent: int, child: int) -> None:
        if not (0 <= parent < len(self._segments)) or not (0 <= child < len(self._segments)):
            raise IndexError(f"segment index out of range: {parent} -> {child}")
        children = self._segments[parent].children
        if child not in children:
            children.append(child)

    def children(self, index: int) -> Sequence[int]:
        return self._segments[index].children

    def link_children(self, max_gap: float, min_length: float = 0.0) -> int:
        """Link every segment to the segments that continue it.

        ``child`` becomes a child of ``parent`` when its start lies within
        ``max_gap`` of the parent's end and the turn from parent to child is
        clockwise in y-up terms (``mod2pi(child.theta - parent.theta) <= 0``).
        Returns the number of links created.
        """

        if max_gap < 0:
            raise ValueError("max_gap must be >= 0")
        usable = [seg for seg in self._segments if seg.length >= min_length]
        links = 0
        for parent in usable:
            for child in usable:
                if child.id == parent.id:
                    continue
                if mod2pi(child.theta - parent.theta) > 0:
                    continue
                if distance2d(parent.end, child.start) > max_gap:
                    continue
                if child.id not in parent.children:
                    parent.children.append(child.id)
                    links += 1
        log.debug(
            "[graph] %d segments (%d usable), %d links", len(self._segments), len(usable), links
        )
        return links

    @classmethod
    def from_segments(cls, rows: Iterable[Sequence[float]]) -> "SegmentGraph":
        graph = cls()
        for row in rows:
            if len(row) != 4:
                raise ValueError(f"segment row needs 4 values (x0, y0, x1, y1), got {len(row)}")
            graph.add(*row)
        return graph
