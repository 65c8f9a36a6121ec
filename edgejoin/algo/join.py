"""Join enumeration over per-query-edge candidate segments.

Every tuple (one candidate per query edge) has a flat index in
``[0, combination_space)``. The last query edge is the least significant
digit, so query edge ``j``'s digit is ``(x // stride_j) % length_j`` where
``stride_j`` is the product of the lengths of the edges after ``j``.

A tuple is a match when, for every query edge ``j >= 1`` and every earlier
edge ``i``, the two data edges differ and the endpoints satisfy the adjacency
rule for ``(i, j)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence, Tuple

import numba as nb
import numpy as np

from edgejoin import config as ej_config
from edgejoin.algo import _kernels_cuda, _kernels_numba
from edgejoin.algo.compaction import SegmentTable
from edgejoin.core.backend import ArrayBackend
from edgejoin.core.rules import AdjacencyRuleTable, pair_count
from edgejoin.diagnostics import log_operation
from edgejoin.errors import (
    CombinationSpaceOverflowError,
    InvalidGraphError,
    MatchCapacityError,
    QueryTooLargeError,
)

LOGGER = logging.getLogger("edgejoin.algo.join")

# Half of int64 so block and skip-ahead arithmetic in the kernels cannot wrap.
COMBINATION_SPACE_LIMIT = (1 << 62) - 1
_WORKERS_PER_THREAD = 4


def combination_space(lengths: Sequence[int]) -> int:
    """Number of candidate tuples; raises instead of wrapping past the limit."""

    total = 1
    for length in lengths:
        total *= int(length)
        if total == 0:
            return 0
    if total > COMBINATION_SPACE_LIMIT:
        raise CombinationSpaceOverflowError(
            tuple(int(v) for v in lengths), COMBINATION_SPACE_LIMIT
        )
    return total


def segment_strides(lengths: Sequence[int]) -> np.ndarray:
    lengths_arr = np.asarray(lengths, dtype=np.int64)
    strides = np.ones(lengths_arr.shape[0], dtype=np.int64)
    for j in range(lengths_arr.shape[0] - 2, -1, -1):
        strides[j] = strides[j + 1] * lengths_arr[j + 1]
    return strides


def decode_tuple_index(index: int, lengths: Sequence[int]) -> Tuple[int, ...]:
    """Mixed-radix decode of ``index`` into one segment position per query edge."""

    digits = [0] * len(lengths)
    remaining = int(index)
    for j in range(len(lengths) - 1, -1, -1):
        length = int(lengths[j])
        digits[j] = remaining % length
        remaining //= length
    return tuple(digits)


def encode_tuple_digits(digits: Sequence[int], lengths: Sequence[int]) -> int:
    index = 0
    for digit, length in zip(digits, lengths):
        index = index * int(length) + int(digit)
    return index


@dataclass(frozen=True)
class JoinResult:
    """Accepted matches and counters for one enumeration pass.

    ``count`` is the number of accepted tuples even when the output buffer was
    too small; ``matches`` holds the ``min(count, capacity)`` rows actually
    written, one data-edge id per query edge.
    """

    matches: np.ndarray
    count: int
    capacity: int
    combination_space: int
    tuples_visited: int
    seconds: float

    @property
    def truncated(self) -> bool:
        return self.count > self.capacity

    @property
    def tuples_pruned(self) -> int:
        return max(0, self.combination_space - self.tuples_visited)


def _default_workers(total: int) -> int:
    workers = nb.get_num_threads() * _WORKERS_PER_THREAD
    return max(1, min(workers, total))


def enumerate_matches(
    segments: SegmentTable,
    data: Any,
    rules: AdjacencyRuleTable | Any,
    *,
    capacity: int | None = None,
    out: Any = None,
    counter: Any = None,
    backend: ArrayBackend | None = None,
    num_workers: int | None = None,
    strict_capacity: bool | None = None,
) -> JoinResult:
    """Enumerate every structurally valid tuple over ``segments``.

    Parameters
    ----------
    segments:
        Output of :func:`compact_segments`; its candidates are data-edge ids.
    data:
        Data graph endpoints (``CSRGraph`` or a staged ``DeviceGraph``).
    rules:
        Adjacency rule table, or its raw entry array already on ``backend``.
    capacity, out:
        Output rows. A given ``out`` must be ``(capacity, query_edge_count)``; otherwise a buffer of ``capacity`` rows is allocated.
    counter:
        Optional single-cell int64 array that receives the match count. On
        the CUDA backend it is the atomic slot allocator and must start at 0.
    num_workers:
        CPU backend only: number of contiguous tuple blocks scanned in
        parallel. Defaults to the runtime setting; 0 derives it from the
        numba thread count.
    strict_capacity:
        Raise :class:`MatchCapacityError` instead of reporting truncation.
    """

    context = ej_config.runtime_context()
    backend = backend or context.get_backend()
    config = context.config
    strict = config.strict_capacity if strict_capacity is None else strict_capacity
    num_workers = config.num_workers if num_workers is None else num_workers

    q = segments.query_edge_count
    if q == 0:
        raise InvalidGraphError("query graph must have at least one edge")
    rule_entries = _checked_rule_entries(rules, q)
    lengths = segments.lengths
    offsets = segments.offsets
    total = combination_space(lengths.tolist())
    if out is None:
        capacity = config.match_capacity if capacity is None else int(capacity)
        out = backend.empty((capacity, q), label="matches")
    else:
        if len(out.shape) != 2 or int(out.shape[1]) != q:
            raise InvalidGraphError(
                f"output buffer must have shape (capacity, {q}), got {tuple(out.shape)}"
            )
        capacity = int(out.shape[0])
    if counter is None:
        counter = backend.zeros(1, label="counter")

    with log_operation(
        LOGGER,
        "enumerate_matches",
        backend=backend.name,
        query_edges=q,
        combinations=total,
        capacity=capacity,
    ) as metrics:
        if total == 0:
            count, visited = 0, 0
            _store_counter(backend, counter, 0)
        elif backend.is_device:
            count, visited = _enumerate_device(
                backend, config, lengths, offsets, segments.candidates, data, rule_entries, total, out, counter
            )
        else:
            workers = _default_workers(total) if not num_workers else max(1, min(int(num_workers), total))
            count, visited = _enumerate_host(
                lengths, offsets, segments.candidates, data, rule_entries, total, workers, out
            )
            _store_counter(backend, counter, count)
            metrics.add(workers=workers)
        metrics.add(matches=count, visited=visited)

    written = min(count, capacity)
    host_out = backend.to_numpy(out, label="matches")
    result = JoinResult(
        matches=np.array(host_out[:written], copy=True),
        count=count,
        capacity=capacity,
        combination_space=total,
        tuples_visited=visited,
        seconds=metrics.wall_seconds,
    )
    if result.truncated:
        if strict:
            raise MatchCapacityError(count, capacity)
        LOGGER.warning(
            "result truncated: %d matches accepted, output buffer holds %d", count, capacity
        )
    return result


def _checked_rule_entries(rules: AdjacencyRuleTable | Any, q: int) -> Any:
    if isinstance(rules, AdjacencyRuleTable):
        if rules.query_edge_count != q:
            raise InvalidGraphError(
                f"rule table covers {rules.query_edge_count} query edges, segments cover {q}"
            )
        return rules.entries
    expected = 2 * pair_count(q)
    if len(rules.shape) != 1 or int(rules.shape[0]) != expected:
        raise InvalidGraphError(
            f"rule entries for {q} query edges need {expected} values, got shape {tuple(rules.shape)}"
        )
    return rules


def _store_counter(backend: ArrayBackend, counter: Any, value: int) -> None:
    if backend.is_device:
        counter.copy_to_device(np.array([value], dtype=np.int64))
    else:
        counter[0] = value


def _enumerate_host(
    lengths: np.ndarray,
    offsets: np.ndarray,
    candidates: np.ndarray,
    data: Any,
    rules: np.ndarray,
    total: int,
    workers: int,
    out: np.ndarray,
) -> Tuple[int, int]:
    strides = segment_strides(lengths)
    counts, visited = _kernels_numba.count_matches_kernel(
        lengths, offsets, strides, candidates, data.froms, data.tos, rules, total, workers
    )
    # exclusive prefix sum: worker w writes rows [slot_base[w], slot_base[w] + counts[w])
    slot_base = np.zeros(workers, dtype=np.int64)
    np.cumsum(counts[:-1], out=slot_base[1:])
    if out.shape[0] > 0:
        _kernels_numba.emit_matches_kernel(
            lengths,
            offsets,
            strides,
            candidates,
            data.froms,
            data.tos,
            rules,
            total,
            workers,
            slot_base,
            out,
        )
    return int(counts.sum()), int(visited.sum())


def _enumerate_device(
    backend: ArrayBackend,
    config: ej_config.RuntimeConfig,
    lengths: np.ndarray,
    offsets: np.ndarray,
    candidates: Any,
    data: Any,
    rules: Any,
    total: int,
    out: Any,
    counter: Any,
) -> Tuple[int, int]:
    q = int(lengths.shape[0])
    if q > _kernels_cuda.MAX_QUERY_EDGES:
        raise QueryTooLargeError("edges", q, _kernels_cuda.MAX_QUERY_EDGES)
    d_lengths = backend.device_put(lengths, label="join.lengths")
    d_offsets = backend.device_put(offsets, label="join.offsets")
    d_strides = backend.device_put(segment_strides(lengths), label="join.strides")
    froms, tos = data.froms, data.tos
    if isinstance(froms, np.ndarray):
        froms = backend.device_put(froms, label="data.froms")
        tos = backend.device_put(tos, label="data.tos")
    if isinstance(rules, np.ndarray):
        rules = backend.device_put(rules, label="rules")
    if isinstance(candidates, np.ndarray):
        candidates = backend.device_put(candidates, label="candidates")
    _store_counter(backend, counter, 0)
    blocks, threads = _kernels_cuda.launch_geometry(total, config.threads_per_block, config.blocks)
    _kernels_cuda.join_cuda[blocks, threads](
        d_lengths, d_offsets, d_strides, candidates, froms, tos, rules, total, out, counter
    )
    backend.synchronize()
    count = int(backend.to_numpy(counter, label="counter")[0])
    return count, total


__all__ = [
    "COMBINATION_SPACE_LIMIT",
    "JoinResult",
    "combination_space",
    "decode_tuple_index",
    "encode_tuple_digits",
    "enumerate_matches",
    "segment_strides",
]
