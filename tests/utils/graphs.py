from __future__ import annotations

import itertools
from typing import List, Sequence, Tuple

import numpy as np
from numpy.random import Generator, default_rng

from edgejoin.core.graph import CSRGraph
from edgejoin.core.rules import DISJOINT, MATCH_DEST, MATCH_SOURCE, AdjacencyRuleTable

A, B, C, D = 0, 1, 2, 3


def _ensure_rng(rng: Generator | None) -> Generator:
    return rng or default_rng()


def triangle_query() -> CSRGraph:
    """Directed 3-cycle 0 -> 1 -> 2 -> 0."""

    return CSRGraph.from_edges(3, [(0, 1), (1, 2), (2, 0)])


def triangle_data() -> CSRGraph:
    """One directed triangle A -> B -> C -> A plus an unrelated edge D -> A.

    Edge ids follow source order: 0 = A->B, 1 = B->C, 2 = C->A, 3 = D->A.
    """

    return CSRGraph.from_edges(4, [(A, B), (B, C), (C, A), (D, A)])


def full_bitmask(node_count: int, query_nodes: int) -> np.ndarray:
    return np.full(node_count, (1 << query_nodes) - 1, dtype=np.int64)


def random_graph(
    rng: Generator | None,
    node_count: int,
    edge_count: int,
) -> CSRGraph:
    """Random simple directed graph without self-loops."""

    generator = _ensure_rng(rng)
    pairs = [(u, v) for u in range(node_count) for v in range(node_count) if u != v]
    chosen = generator.choice(len(pairs), size=min(edge_count, len(pairs)), replace=False)
    return CSRGraph.from_edges(node_count, [pairs[i] for i in sorted(chosen)])


def random_bitmask(
    rng: Generator | None,
    node_count: int,
    query_nodes: int,
    density: float = 0.6,
) -> np.ndarray:
    generator = _ensure_rng(rng)
    bits = generator.random((node_count, query_nodes)) < density
    weights = 1 << np.arange(query_nodes, dtype=np.int64)
    return (bits.astype(np.int64) * weights).sum(axis=1).astype(np.int64)


def _endpoint_ok(vertex: int, rule: int, other_src: int, other_dst: int) -> bool:
    if rule == MATCH_SOURCE:
        return vertex == other_src
    if rule == MATCH_DEST:
        return vertex == other_dst
    assert rule == DISJOINT
    return vertex != other_src and vertex != other_dst


def brute_force_matches(
    segments: Sequence[Sequence[int]],
    data: CSRGraph,
    rules: AdjacencyRuleTable,
) -> List[Tuple[int, ...]]:
    """Reference enumeration over the full Cartesian product, in index order."""

    found = []
    for combo in itertools.product(*segments):
        ok = True
        for j in range(1, len(combo)):
            ej = combo[j]
            for i in range(j):
                ei = combo[i]
                src_rule, dst_rule = rules.rule(i, j)
                if (
                    ei == ej
                    or not _endpoint_ok(int(data.froms[ej]), src_rule, int(data.froms[ei]), int(data.tos[ei]))
                    or not _endpoint_ok(int(data.tos[ej]), dst_rule, int(data.froms[ei]), int(data.tos[ei]))
                ):
                    ok = False
                    break
            if not ok:
                break
        if ok:
            found.append(tuple(int(e) for e in combo))
    return found


def tagged_candidates(segments: Sequence[Sequence[int]], data_edge_count: int) -> np.ndarray:
    """Sorted tagged candidate array for explicit per-query-edge segments."""

    entries = [
        q * data_edge_count + int(e)
        for q, segment in enumerate(segments)
        for e in segment
    ]
    return np.asarray(entries, dtype=np.int64)
