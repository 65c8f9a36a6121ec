import numpy as np
import pytest

from edgejoin.algo import compact_segments
from edgejoin.core.backend import HOST_BACKEND
from edgejoin.errors import SegmentOrderError

from tests.utils.graphs import tagged_candidates


def test_compact_segments_builds_offsets_and_strips_tags():
    candidates = tagged_candidates([[0], [1], [2, 3]], 4)
    assert candidates.tolist() == [0, 5, 10, 11]

    table = compact_segments(
        candidates, data_edge_count=4, query_edge_count=3, backend=HOST_BACKEND
    )

    assert table.pos.tolist() == [1, 2, 4]
    assert table.offsets.tolist() == [0, 1, 2]
    assert table.lengths.tolist() == [1, 1, 2]
    assert table.candidates.tolist() == [0, 1, 2, 3]
    assert table.segment(2).tolist() == [2, 3]
    assert table.query_edge_count == 3


def test_every_candidate_lands_in_its_own_segment():
    segments = [[1, 4, 6], [0, 2], [3], [5, 6, 7]]
    candidates = tagged_candidates(segments, 8)

    table = compact_segments(
        candidates, data_edge_count=8, query_edge_count=4, backend=HOST_BACKEND
    )

    for index, expected in enumerate(segments):
        assert table.segment(index).tolist() == expected


def test_empty_segments_inherit_previous_bound():
    candidates = tagged_candidates([[1, 3], [], [0, 2], []], 4)

    table = compact_segments(
        candidates, data_edge_count=4, query_edge_count=4, backend=HOST_BACKEND
    )

    assert table.pos.tolist() == [2, 2, 4, 4]
    assert table.lengths.tolist() == [2, 0, 2, 0]
    assert table.segment(1).tolist() == []


def test_leading_empty_segment():
    candidates = tagged_candidates([[], [2]], 4)

    table = compact_segments(
        candidates, data_edge_count=4, query_edge_count=2, backend=HOST_BACKEND
    )

    assert table.pos.tolist() == [0, 1]
    assert table.candidates.tolist() == [2]


def test_no_candidates_gives_all_empty_segments():
    table = compact_segments(
        np.zeros(0, dtype=np.int64), data_edge_count=4, query_edge_count=3, backend=HOST_BACKEND
    )

    assert table.pos.tolist() == [0, 0, 0]
    assert table.lengths.tolist() == [0, 0, 0]


def test_unsorted_candidates_raise():
    candidates = np.array([8, 1], dtype=np.int64)

    with pytest.raises(SegmentOrderError) as excinfo:
        compact_segments(candidates, data_edge_count=4, query_edge_count=3, backend=HOST_BACKEND)

    assert excinfo.value.position == 0
    assert "not sorted" in str(excinfo.value)


def test_out_of_range_tag_raises():
    candidates = np.array([1, 13], dtype=np.int64)

    with pytest.raises(SegmentOrderError) as excinfo:
        compact_segments(candidates, data_edge_count=4, query_edge_count=3, backend=HOST_BACKEND)

    assert excinfo.value.position == 1
    assert "outside" in str(excinfo.value)
