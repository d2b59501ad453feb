"""Depth-bounded backtracking search for quads in a segment graph."""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, MutableSequence, Optional, Sequence, Tuple

from .geom import distance2d, line_intersection, mod2pi
from .graph import SegmentGraph
from .metrics import REJECT_PREFIX, MetricsTracker, Timer, get_tracker
from .quad import Quad
from .types import Point2D, RejectReason, SearchParams, Segment


log = logging.getLogger(__name__)

QUAD_SIDES = 4


def check_quad(
    segments: Sequence[Segment], params: SearchParams
) -> Tuple[Optional[List[Point2D]], Optional[RejectReason], float]:
    """Run the closed-loop tests on four segments in walk order.

    Corner ``i`` is the intersection of the lines through ``segments[i]``
    and ``segments[i + 1]``.  Returns ``(corners, None, perimeter)`` for an
    accepted loop and ``(None, reason, perimeter)`` otherwise.
    """

    if len(segments) != QUAD_SIDES:
        raise ValueError(f"check_quad needs {QUAD_SIDES} segments, got {len(segments)}")

    corners: List[Point2D] = []
    perimeter = 0.0
    bad = False
    for i in range(QUAD_SIDES):
        seg_a = segments[i]
        seg_b = segments[(i + 1) % QUAD_SIDES]
        perimeter += seg_a.length
        p = line_intersection(seg_a.start, seg_a.end, seg_b.start, seg_b.end, params.parallel_eps)
        if p is None:
            bad = True
            continue
        corners.append(p)
    if bad:
        return None, "parallel", perimeter

    # hourglass loops and loops wound the wrong way miss -2*pi by a lot
    thetas = [
        math.atan2(corners[(i + 1) % 4][1] - corners[i][1], corners[(i + 1) % 4][0] - corners[i][0])
        for i in range(QUAD_SIDES)
    ]
    ttheta = sum(mod2pi(thetas[(i + 1) % 4] - thetas[i]) for i in range(QUAD_SIDES))
    if ttheta < params.winding_min or ttheta > params.winding_max:
        return None, "winding", perimeter

    edges = [distance2d(corners[i], corners[(i + 1) % 4]) for i in range(QUAD_SIDES)]
    diagonals = [distance2d(corners[0], corners[2]), distance2d(corners[1], corners[3])]
    if min(edges + diagonals) < params.min_edge_length:
        return None, "too_small", perimeter

    if max(edges) > min(edges) * params.max_aspect_ratio:
        return None, "aspect", perimeter

    return corners, None, perimeter


def _count(stats: Optional[MetricsTracker], key: str) -> None:
    if stats is not None:
        stats.increment(key)


def search(
    graph: SegmentGraph,
    path: MutableSequence[int],
    parent: int,
    depth: int,
    quads: List[Quad],
    params: SearchParams,
    stats: Optional[MetricsTracker] = None,
) -> None:
    """Extend ``path[0..depth]`` through the children of *parent*.

    *path* is a 5-slot buffer of segment indices owned by the caller.  At
    depth 4 the walk is tested for closure and accepted quads are appended
    to *quads*.
    """

    if depth == QUAD_SIDES:
        if path[QUAD_SIDES] != path[0]:
            _count(stats, REJECT_PREFIX + "no_loop")
            return

        segments = [graph[i] for i in path[:QUAD_SIDES]]
        corners, reason, perimeter = check_quad(segments, params)
        if reason is not None:
            _count(stats, REJECT_PREFIX + reason)
            return

        quads.append(Quad(corners, segments=segments, obs_perimeter=perimeter, start=path[0]))
        _count(stats, "search.accepted")
        return

    # Each loop is reachable from all four of its segments.  Only the walk
    # that starts at the segment with the largest theta may continue.
    start_theta = graph[path[0]].theta
    for child in graph.children(parent):
        if graph[child].theta > start_theta:
            continue
        path[depth + 1] = child
        search(graph, path, child, depth + 1, quads, params, stats)


def search_from(
    graph: SegmentGraph,
    start: int,
    params: SearchParams,
    stats: Optional[MetricsTracker] = None,
) -> List[Quad]:
    path = [start] + [-1] * QUAD_SIDES
    quads: List[Quad] = []
    search(graph, path, start, 0, quads, params, stats)
    return quads


def _search_task(
    graph: SegmentGraph, start: int, params: SearchParams
) -> Tuple[List[Quad], MetricsTracker]:
    tracker = MetricsTracker()
    return search_from(graph, start, params, tracker), tracker


def search_all(
    graph: SegmentGraph,
    params: SearchParams,
    *,
    workers: int = 1,
    starts: Optional[Iterable[int]] = None,
    stats: Optional[MetricsTracker] = None,
) -> List[Quad]:
    """Search from every start segment and merge the results in start order."""

    start_list = list(range(len(graph))) if starts is None else list(starts)
    tracker = stats if stats is not None else get_tracker()
    quads: List[Quad] = []

    with Timer("search", tracker=tracker, logger=log):
        if workers <= 1 or len(start_list) < 2:
            for start in start_list:
                quads.extend(search_from(graph, start, params, tracker))
        else:
            with ThreadPoolExecutor(max_workers=workers) as ex:
                results = list(ex.map(lambda s: _search_task(graph, s, params), start_list))
            for found, local in results:
                quads.extend(found)
                if tracker is not None:
                    tracker.merge(local)

    log.info(
        "[search] %d start segments, %d quads (workers=%d)",
        len(start_list),
        len(quads),
        max(workers, 1),
    )
    return quads
