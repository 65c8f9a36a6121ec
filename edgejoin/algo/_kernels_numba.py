from __future__ import annotations

import numba as nb
import numpy as np

from edgejoin.algo._consistency import edge_consistent

I64 = np.int64

_edge_consistent = nb.njit(cache=True)(edge_consistent)


@nb.njit(cache=True, parallel=True)
def label_candidates_kernel(bitmask, data_froms, data_tos, query_froms, query_tos, labels):
    edge_count = data_froms.shape[0]
    query_edges = query_froms.shape[0]
    for idx in nb.prange(edge_count):
        e = I64(idx)
        src_mask = bitmask[data_froms[e]]
        dst_mask = bitmask[data_tos[e]]
        for k in range(query_edges):
            if ((src_mask >> query_froms[k]) & 1) != 0 and ((dst_mask >> query_tos[k]) & 1) != 0:
                labels[k * edge_count + e] = 1


@nb.njit(cache=True, parallel=True)
def segment_boundaries_kernel(candidates, data_edge_count, query_edge_count, pos, bad):
    """Record each segment's exclusive upper bound without writing ``candidates``.

    ``bad[x]`` is set when position ``x`` carries an out-of-range tag or a tag
    larger than the one that follows it.
    """

    n = candidates.shape[0]
    for idx in nb.prange(n):
        x = I64(idx)
        tag = candidates[x] // data_edge_count
        if tag < 0 or tag >= query_edge_count:
            bad[x] = 1
        elif x + 1 == n:
            pos[tag] = x + 1
        else:
            nxt = candidates[x + 1] // data_edge_count
            if nxt < tag:
                bad[x] = 1
            elif nxt != tag:
                pos[tag] = x + 1


@nb.njit(cache=True, parallel=True)
def strip_tags_kernel(candidates, data_edge_count):
    for x in nb.prange(candidates.shape[0]):
        candidates[x] = candidates[x] % data_edge_count


@nb.njit(cache=True)
def _scan_tuple(x, lengths, offsets, strides, candidates, froms, tos, rules, chosen):
    """Decode tuple ``x`` edge by edge; return the first rejected depth or ``q``."""

    q = lengths.shape[0]
    for j in range(q):
        digit = (x // strides[j]) % lengths[j]
        chosen[j] = candidates[offsets[j] + digit]
        if j > 0 and not _edge_consistent(j, chosen, froms, tos, rules):
            return j
    return q


@nb.njit(cache=True)
def _block_bounds(worker, num_workers, total):
    block = (total + num_workers - 1) // num_workers
    start = min(worker * block, total)
    end = min(start + block, total)
    return start, end


@nb.njit(cache=True, parallel=True)
def count_matches_kernel(
    lengths, offsets, strides, candidates, froms, tos, rules, total, num_workers
):
    q = lengths.shape[0]
    counts = np.zeros(num_workers, dtype=I64)
    visited = np.zeros(num_workers, dtype=I64)
    for idx in nb.prange(num_workers):
        w = I64(idx)
        start, end = _block_bounds(w, num_workers, total)
        chosen = np.empty(q, dtype=I64)
        found = 0
        seen = 0
        x = start
        while x < end:
            depth = _scan_tuple(x, lengths, offsets, strides, candidates, froms, tos, rules, chosen)
            seen += 1
            if depth == q:
                found += 1
                x += 1
            else:
                # every tuple sharing the rejected prefix fails the same check
                x = (x // strides[depth] + 1) * strides[depth]
        counts[w] = found
        visited[w] = seen
    return counts, visited


@nb.njit(cache=True, parallel=True)
def emit_matches_kernel(
    lengths,
    offsets,
    strides,
    candidates,
    froms,
    tos,
    rules,
    total,
    num_workers,
    slot_base,
    out,
):
    q = lengths.shape[0]
    capacity = out.shape[0]
    for idx in nb.prange(num_workers):
        w = I64(idx)
        slot = slot_base[w]
        if slot < capacity:
            start, end = _block_bounds(w, num_workers, total)
            chosen = np.empty(q, dtype=I64)
            x = start
            while x < end and slot < capacity:
                depth = _scan_tuple(x, lengths, offsets, strides, candidates, froms, tos, rules, chosen)
                if depth == q:
                    for j in range(q):
                        out[slot, j] = chosen[j]
                    slot += 1
                    x += 1
                else:
                    x = (x // strides[depth] + 1) * strides[depth]


__all__ = [
    "count_matches_kernel",
    "emit_matches_kernel",
    "label_candidates_kernel",
    "segment_boundaries_kernel",
    "strip_tags_kernel",
]
