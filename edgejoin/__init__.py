"""edgejoin: parallel candidate-list join for subgraph matching.

Quick Start
-----------
>>> import numpy as np
>>> from edgejoin import CSRGraph, match
>>>
>>> query = CSRGraph.from_edges(3, [(0, 1), (1, 2), (2, 0)])
>>> data = CSRGraph.from_edges(4, [(0, 1), (1, 2), (2, 0), (3, 0)])
>>> bitmask = np.array([0b001, 0b010, 0b100, 0b100], dtype=np.int64)
>>> report = match(query, data, bitmask)
>>> report.match_count
1

Stages
------
label_candidates : flag data edges whose endpoints fit a query edge.
pack_candidates : turn the flags into the sorted, tagged candidate array.
compact_segments : per-query-edge segment table plus de-tagged candidates.
enumerate_matches : decode, validate and emit every structurally valid tuple.
"""

from importlib.metadata import version as _pkg_version

try:
    __version__ = _pkg_version("edgejoin")
except Exception:  # pragma: no cover - best effort during local development
    __version__ = "0.1.0"

from .algo import (
    JoinResult,
    LabelingResult,
    SegmentTable,
    combination_space,
    compact_segments,
    decode_tuple_index,
    encode_tuple_digits,
    enumerate_matches,
    label_candidates,
    pack_candidates,
)
from .core import (
    AdjacencyRuleTable,
    ArrayBackend,
    CSRGraph,
    MatchWorkspace,
    cuda_available,
    derive_rule_table,
)
from .errors import (
    BackendUnavailableError,
    CombinationSpaceOverflowError,
    DeviceAllocationError,
    DeviceTransferError,
    EdgeJoinError,
    InvalidGraphError,
    MatchCapacityError,
    QueryTooLargeError,
    SegmentOrderError,
)
from .pipeline import MatchPipeline, MatchReport, match, report_match_count

__all__ = [
    "__version__",
    "match",
    "MatchPipeline",
    "MatchReport",
    "report_match_count",
    "CSRGraph",
    "AdjacencyRuleTable",
    "derive_rule_table",
    "ArrayBackend",
    "MatchWorkspace",
    "cuda_available",
    "label_candidates",
    "LabelingResult",
    "pack_candidates",
    "compact_segments",
    "SegmentTable",
    "enumerate_matches",
    "JoinResult",
    "combination_space",
    "decode_tuple_index",
    "encode_tuple_digits",
    "EdgeJoinError",
    "BackendUnavailableError",
    "CombinationSpaceOverflowError",
    "DeviceAllocationError",
    "DeviceTransferError",
    "InvalidGraphError",
    "MatchCapacityError",
    "QueryTooLargeError",
    "SegmentOrderError",
]
