import numpy as np
import pytest

from edgejoin.core.graph import CSRGraph
from edgejoin.errors import InvalidGraphError

from tests.utils.graphs import triangle_data


def test_from_edges_orders_by_source():
    graph = CSRGraph.from_edges(4, [(3, 0), (1, 2), (0, 1), (1, 3)])

    assert graph.node_count == 4
    assert graph.edge_count == 4
    assert graph.row_offsets.tolist() == [0, 1, 3, 3, 4]
    assert graph.froms.tolist() == [0, 1, 1, 3]
    # ties keep their input order
    assert graph.tos.tolist() == [1, 2, 3, 0]
    assert graph.edge(2) == (1, 3)


def test_triangle_data_edge_ids():
    graph = triangle_data()

    assert graph.edges() == [(0, 1), (1, 2), (2, 0), (3, 0)]


def test_graph_arrays_are_read_only():
    graph = triangle_data()

    assert graph.froms.dtype == np.int64
    with pytest.raises(ValueError):
        graph.froms[0] = 3


def test_from_edges_without_edges():
    graph = CSRGraph.from_edges(3, [])

    assert graph.edge_count == 0
    assert graph.row_offsets.tolist() == [0, 0, 0, 0]
    assert graph.edges() == []


def test_from_edges_rejects_out_of_range_endpoint():
    with pytest.raises(InvalidGraphError):
        CSRGraph.from_edges(2, [(0, 2)])


def test_validate_rejects_inconsistent_offsets():
    with pytest.raises(InvalidGraphError):
        CSRGraph(
            node_count=2,
            edge_count=1,
            row_offsets=np.array([0, 2, 1]),
            froms=np.array([0]),
            tos=np.array([1]),
        )
    with pytest.raises(InvalidGraphError):
        CSRGraph(
            node_count=2,
            edge_count=2,
            row_offsets=np.array([0, 1, 2]),
            froms=np.array([0]),
            tos=np.array([1]),
        )
