import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from quadtag.graph import SegmentGraph

from synthetic_tags import loop_corners, loop_segments


def test_from_segments_assigns_stable_ids() -> None:
    graph = SegmentGraph.from_segments([(0, 0, 10, 0), (10, 1, 10, 20)])
    assert len(graph) == 2
    assert [seg.id for seg in graph] == [0, 1]
    assert graph[1].y1 == 20.0


def test_from_segments_rejects_bad_rows() -> None:
    with pytest.raises(ValueError):
        SegmentGraph.from_segments([(0, 0, 10)])


def test_link_is_idempotent_and_checks_range() -> None:
    graph = SegmentGraph.from_segments([(0, 0, 10, 0), (10, 1, 10, 20)])
    graph.link(0, 1)
    graph.link(0, 1)
    assert list(graph.children(0)) == [1]
    with pytest.raises(IndexError):
        graph.link(0, 5)


def test_link_children_connects_loop_with_consistent_handedness() -> None:
    graph = SegmentGraph.from_segments(loop_segments(loop_corners(0.0, 0.0, 50.0, 50.0), gap=1.0))

    links = graph.link_children(max_gap=3.0)

    assert links == 4
    assert [list(graph.children(i)) for i in range(4)] == [[1], [2], [3], [0]]


def test_link_children_respects_gap_and_length() -> None:
    rows = loop_segments(loop_corners(0.0, 0.0, 50.0, 50.0), gap=4.0)
    graph = SegmentGraph.from_segments(rows)
    # endpoints are 4*sqrt(2) apart
    assert graph.link_children(max_gap=3.0) == 0

    graph = SegmentGraph.from_segments(rows + [(60.0, 60.0, 61.0, 60.0)])
    assert graph.link_children(max_gap=10.0, min_length=5.0) == 4
    assert list(graph.children(4)) == []


def test_link_children_skips_counter_clockwise_turns() -> None:
    # reversed directions turn the other way round the loop
    rows = [(x1, y1, x0, y0) for x0, y0, x1, y1 in loop_segments(loop_corners(0.0, 0.0, 50.0, 50.0))]
    graph = SegmentGraph.from_segments(rows)
    graph.link_children(max_gap=3.0)
    # reversed segment i now ends where reversed segment i-1 starts, but turns left
    assert all(not graph.children(i) for i in range(4))


def test_link_children_negative_gap() -> None:
    with pytest.raises(ValueError):
        SegmentGraph().link_children(max_gap=-1.0)
