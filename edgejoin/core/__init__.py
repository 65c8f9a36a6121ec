"""Core data model: graphs, rule tables, array backends and run workspaces."""

from .backend import DEFAULT_INT, HOST_BACKEND, ArrayBackend, cuda_available
from .graph import CSRGraph
from .rules import (
    DISJOINT,
    MATCH_DEST,
    MATCH_SOURCE,
    AdjacencyRuleTable,
    derive_rule_table,
    pair_count,
    pair_offset,
)
from .workspace import MAX_QUERY_NODES, DeviceGraph, MatchWorkspace

__all__ = [
    "DEFAULT_INT",
    "HOST_BACKEND",
    "ArrayBackend",
    "cuda_available",
    "CSRGraph",
    "AdjacencyRuleTable",
    "DISJOINT",
    "MATCH_DEST",
    "MATCH_SOURCE",
    "derive_rule_table",
    "pair_count",
    "pair_offset",
    "DeviceGraph",
    "MatchWorkspace",
    "MAX_QUERY_NODES",
]
