from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from edgejoin import config as ej_config
from edgejoin.algo.compaction import SegmentTable, compact_segments
from edgejoin.algo.join import JoinResult, enumerate_matches
from edgejoin.algo.labeling import LabelingResult, label_candidates
from edgejoin.algo.packing import pack_candidates
from edgejoin.core.backend import ArrayBackend
from edgejoin.core.graph import CSRGraph
from edgejoin.core.rules import AdjacencyRuleTable, derive_rule_table
from edgejoin.core.workspace import MatchWorkspace
from edgejoin.diagnostics import log_operation

LOGGER = logging.getLogger("edgejoin.pipeline")


@dataclass(frozen=True)
class MatchReport:
    labeling: LabelingResult
    segments: SegmentTable
    join: JoinResult
    match_count: int

    @property
    def matches(self) -> np.ndarray:
        return self.join.matches

    @property
    def truncated(self) -> bool:
        return self.join.truncated


def report_match_count(workspace: MatchWorkspace) -> int:
    """Read the workspace's match counter and log it."""

    counter = workspace.backend.to_numpy(workspace.counter, label="counter")
    count = int(counter[0])
    LOGGER.info("matches=%d", count)
    return count


@dataclass
class MatchPipeline:
    """Label → pack → compact → join for one query/data pair.

    The rule table defaults to the one derived from the query's own edge
    order. ``capacity`` defaults to the runtime's ``match_capacity``.
    """

    query: CSRGraph
    data: CSRGraph
    rules: AdjacencyRuleTable | None = None
    capacity: int | None = None
    backend: ArrayBackend | None = None
    _context: ej_config.RuntimeContext = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._context = ej_config.runtime_context()
        if self.rules is None:
            self.rules = derive_rule_table(self.query)
        if self.capacity is None:
            self.capacity = self._context.config.match_capacity
        if self.backend is None:
            self.backend = self._context.get_backend()

    def workspace(self, bitmask: Any) -> MatchWorkspace:
        return MatchWorkspace(
            query=self.query,
            data=self.data,
            bitmask=bitmask,
            rules=self.rules,
            capacity=int(self.capacity),
            backend=self.backend,
        )

    def run(self, bitmask: Any, *, strict_capacity: bool | None = None) -> MatchReport:
        with log_operation(
            LOGGER,
            "match",
            backend=self.backend.name,
            query_edges=self.query.edge_count,
            data_edges=self.data.edge_count,
        ) as metrics, self.workspace(bitmask) as ws:
            return self._run_stages(ws, metrics, strict_capacity)

    def _run_stages(self, ws: MatchWorkspace, metrics: Any, strict_capacity: bool | None) -> MatchReport:
        labeling = label_candidates(
            ws.d_query, ws.d_data, ws.d_bitmask, backend=ws.backend, out=ws.labels
        )
        ws.stage_candidates(
            pack_candidates(
                ws.labels,
                query_edge_count=ws.query_edge_count,
                data_edge_count=ws.data_edge_count,
                backend=ws.backend,
            )
        )
        segments = compact_segments(
            ws.candidates,
            data_edge_count=ws.data_edge_count,
            query_edge_count=ws.query_edge_count,
            backend=ws.backend,
        )
        join = enumerate_matches(
            segments,
            ws.d_data,
            ws.d_rules,
            out=ws.matches,
            counter=ws.counter,
            backend=ws.backend,
            strict_capacity=strict_capacity,
        )
        count = report_match_count(ws)
        metrics.add(matches=count, truncated=join.truncated)
        return MatchReport(labeling=labeling, segments=segments, join=join, match_count=count)


def match(
    query: CSRGraph,
    data: CSRGraph,
    bitmask: Any,
    *,
    rules: AdjacencyRuleTable | None = None,
    capacity: int | None = None,
    backend: ArrayBackend | None = None,
    strict_capacity: bool | None = None,
) -> MatchReport:
    """Run the full pipeline once and return its report."""

    pipeline = MatchPipeline(
        query=query, data=data, rules=rules, capacity=capacity, backend=backend
    )
    return pipeline.run(bitmask, strict_capacity=strict_capacity)


__all__ = ["MatchPipeline", "MatchReport", "match", "report_match_count"]
