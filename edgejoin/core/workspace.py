from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from edgejoin.core.backend import ArrayBackend
from edgejoin.core.graph import CSRGraph
from edgejoin.core.rules import AdjacencyRuleTable
from edgejoin.errors import InvalidGraphError, QueryTooLargeError

LOGGER = logging.getLogger("edgejoin.core.workspace")

MAX_QUERY_NODES = 64


@dataclass
class DeviceGraph:
    """Endpoint arrays of a CSR graph resident on the active backend."""

    node_count: int
    edge_count: int
    froms: Any
    tos: Any


@dataclass
class MatchWorkspace:
    """Buffers for one matching run, released when the ``with`` block exits.

    The workspace owns every array the kernels touch: the staged graphs,
    bitmask and rule table, the label array, the candidate array, the output
    match buffer and the single-cell match counter.
    """

    query: CSRGraph
    data: CSRGraph
    bitmask: np.ndarray
    rules: AdjacencyRuleTable
    capacity: int
    backend: ArrayBackend
    d_query: DeviceGraph | None = field(default=None, init=False)
    d_data: DeviceGraph | None = field(default=None, init=False)
    d_bitmask: Any = field(default=None, init=False)
    d_rules: Any = field(default=None, init=False)
    labels: Any = field(default=None, init=False)
    candidates: Any = field(default=None, init=False)
    matches: Any = field(default=None, init=False)
    counter: Any = field(default=None, init=False)
    _allocated: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        bitmask = np.ascontiguousarray(self.bitmask, dtype=np.int64)
        if bitmask.shape != (self.data.node_count,):
            raise InvalidGraphError(
                f"bitmask needs one entry per data node ({self.data.node_count}), "
                f"got shape {bitmask.shape}"
            )
        if self.query.node_count > MAX_QUERY_NODES:
            raise QueryTooLargeError("nodes", self.query.node_count, MAX_QUERY_NODES)
        if self.query.edge_count == 0:
            raise InvalidGraphError("query graph must have at least one edge")
        if self.rules.query_edge_count != self.query.edge_count:
            raise InvalidGraphError(
                f"rule table covers {self.rules.query_edge_count} query edges, "
                f"query has {self.query.edge_count}"
            )
        if self.capacity < 0:
            raise ValueError("capacity must be non-negative")
        self.bitmask = bitmask

    @property
    def query_edge_count(self) -> int:
        return self.query.edge_count

    @property
    def data_edge_count(self) -> int:
        return self.data.edge_count

    def _stage_graph(self, graph: CSRGraph, name: str) -> DeviceGraph:
        return DeviceGraph(
            node_count=graph.node_count,
            edge_count=graph.edge_count,
            froms=self.backend.device_put(graph.froms, label=f"{name}.froms"),
            tos=self.backend.device_put(graph.tos, label=f"{name}.tos"),
        )

    def allocate(self) -> "MatchWorkspace":
        if self._allocated:
            return self
        backend = self.backend
        q = self.query_edge_count
        self.d_query = self._stage_graph(self.query, "query")
        self.d_data = self._stage_graph(self.data, "data")
        self.d_bitmask = backend.device_put(self.bitmask, label="bitmask")
        self.d_rules = backend.device_put(self.rules.entries, label="rules")
        self.labels = backend.zeros(q * self.data_edge_count, label="labels")
        self.matches = backend.empty((self.capacity, q), label="matches")
        self.counter = backend.zeros(1, label="counter")
        self._allocated = True
        LOGGER.debug(
            "allocated workspace backend=%s query_edges=%d data_edges=%d capacity=%d",
            backend.name,
            q,
            self.data_edge_count,
            self.capacity,
        )
        return self

    def stage_candidates(self, candidates: Any) -> Any:
        """Install the tagged candidate array produced by the packing stage."""

        if isinstance(candidates, np.ndarray):
            candidates = self.backend.device_put(
                np.ascontiguousarray(candidates, dtype=np.int64), label="candidates"
            )
        self.candidates = candidates
        return candidates

    def copy_bitmask_to_host(self) -> np.ndarray:
        """Blocking copy of the node-candidacy bitmask back to the host."""

        if self.d_bitmask is None:
            return self.bitmask.copy()
        self.backend.synchronize()
        return np.array(self.backend.to_numpy(self.d_bitmask, label="bitmask"), copy=True)

    def release(self) -> None:
        for name in (
            "d_query",
            "d_data",
            "d_bitmask",
            "d_rules",
            "labels",
            "candidates",
            "matches",
            "counter",
        ):
            setattr(self, name, None)
        self._allocated = False

    def __enter__(self) -> "MatchWorkspace":
        return self.allocate()

    def __exit__(self, *exc_info: object) -> None:
        self.release()


__all__ = ["DeviceGraph", "MatchWorkspace", "MAX_QUERY_NODES"]
