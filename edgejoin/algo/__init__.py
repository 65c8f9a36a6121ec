"""Parallel kernels for candidate labeling, segment compaction and join enumeration."""

from .compaction import SegmentTable, compact_segments
from .join import (
    COMBINATION_SPACE_LIMIT,
    JoinResult,
    combination_space,
    decode_tuple_index,
    encode_tuple_digits,
    enumerate_matches,
    segment_strides,
)
from .labeling import LabelingResult, label_candidates
from .packing import pack_candidates

__all__ = [
    "LabelingResult",
    "label_candidates",
    "pack_candidates",
    "SegmentTable",
    "compact_segments",
    "COMBINATION_SPACE_LIMIT",
    "JoinResult",
    "combination_space",
    "decode_tuple_index",
    "encode_tuple_digits",
    "enumerate_matches",
    "segment_strides",
]
