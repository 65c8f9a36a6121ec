"""Adjacency rule table derived from query-graph topology.

For every ordered pair of query edges ``i < j`` the table holds two entries:
the first says where edge ``j``'s source must land relative to edge ``i``,
the second says the same for edge ``j``'s destination. Each entry is one of

* ``MATCH_SOURCE``: the endpoint must equal edge ``i``'s source,
* ``MATCH_DEST``: the endpoint must equal edge ``i``'s destination,
* ``DISJOINT``: the endpoint must differ from both endpoints of ``i``.

Pairs are laid out triangularly: pair ``(i, j)`` starts at
``2 * (j * (j - 1) // 2 + i)``.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from edgejoin.core.graph import CSRGraph
from edgejoin.errors import InvalidGraphError

MATCH_SOURCE = 0
MATCH_DEST = 1
DISJOINT = -1

_VALID_RULES = (MATCH_SOURCE, MATCH_DEST, DISJOINT)


def pair_count(query_edge_count: int) -> int:
    return query_edge_count * (query_edge_count - 1) // 2


def pair_offset(earlier: int, later: int) -> int:
    """Offset of the first entry for the pair ``(earlier, later)``."""

    if not 0 <= earlier < later:
        raise ValueError(f"expected 0 <= earlier < later, got ({earlier}, {later})")
    return 2 * (later * (later - 1) // 2 + earlier)


@dataclass(frozen=True)
class AdjacencyRuleTable:
    query_edge_count: int
    entries: np.ndarray

    def __post_init__(self) -> None:
        entries = np.ascontiguousarray(self.entries, dtype=np.int64)
        expected = 2 * pair_count(self.query_edge_count)
        if entries.shape != (expected,):
            raise InvalidGraphError(
                f"rule table for {self.query_edge_count} query edges needs "
                f"{expected} entries, got {entries.shape[0]}"
            )
        if entries.size and not np.isin(entries, _VALID_RULES).all():
            raise InvalidGraphError("rule table entries must be MATCH_SOURCE, MATCH_DEST or DISJOINT")
        entries.setflags(write=False)
        object.__setattr__(self, "entries", entries)

    def rule(self, earlier: int, later: int) -> tuple[int, int]:
        offset = pair_offset(earlier, later)
        return int(self.entries[offset]), int(self.entries[offset + 1])

    @classmethod
    def from_pairs(
        cls, query_edge_count: int, rules: dict[tuple[int, int], tuple[int, int]]
    ) -> "AdjacencyRuleTable":
        """Build a table from explicit ``{(i, j): (src_rule, dst_rule)}``; others are DISJOINT."""

        entries = np.full(2 * pair_count(query_edge_count), DISJOINT, dtype=np.int64)
        for (earlier, later), (src_rule, dst_rule) in rules.items():
            if later >= query_edge_count:
                raise InvalidGraphError(f"pair ({earlier}, {later}) is out of range")
            offset = pair_offset(earlier, later)
            entries[offset] = src_rule
            entries[offset + 1] = dst_rule
        return cls(query_edge_count=query_edge_count, entries=entries)


def _endpoint_rule(vertex: int, other_src: int, other_dst: int) -> int:
    if vertex == other_src:
        return MATCH_SOURCE
    if vertex == other_dst:
        return MATCH_DEST
    return DISJOINT


def derive_rule_table(query: CSRGraph) -> AdjacencyRuleTable:
    """Derive the rule table for ``query`` using its edge order as processing order."""

    q = query.edge_count
    entries = np.empty(2 * pair_count(q), dtype=np.int64)
    froms = query.froms
    tos = query.tos
    for later in range(1, q):
        src = int(froms[later])
        dst = int(tos[later])
        for earlier in range(later):
            offset = pair_offset(earlier, later)
            entries[offset] = _endpoint_rule(src, int(froms[earlier]), int(tos[earlier]))
            entries[offset + 1] = _endpoint_rule(dst, int(froms[earlier]), int(tos[earlier]))
    return AdjacencyRuleTable(query_edge_count=q, entries=entries)


__all__ = [
    "AdjacencyRuleTable",
    "DISJOINT",
    "MATCH_DEST",
    "MATCH_SOURCE",
    "derive_rule_table",
    "pair_count",
    "pair_offset",
]
