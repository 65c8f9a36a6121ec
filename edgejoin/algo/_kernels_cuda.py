"""
CUDA kernels for the candidate-join pipeline (numba.cuda).

Every kernel walks its index domain with a grid-stride loop
(``cuda.grid(1)`` / ``cuda.gridsize(1)``), so any launch geometry covers any
domain size. Stage ordering is enforced by the host: each kernel launch is
followed by ``cuda.synchronize()`` before the next stage reads its output.

Notes
-----
- The join kernel keeps the chosen candidates in a local array of
  ``MAX_QUERY_EDGES`` entries; the host rejects larger queries.
- Output slots come from ``cuda.atomic.add`` on the counter cell. The returned
  old value is the reserved slot, and writes past the buffer are dropped while
  the counter keeps counting, so the host can detect truncation.
"""

from __future__ import annotations

import numpy as np
from numba import cuda

from edgejoin.algo._consistency import edge_consistent

MAX_QUERY_EDGES = 16

_edge_consistent_device = cuda.jit(device=True)(edge_consistent)


@cuda.jit
def label_candidates_cuda(bitmask, data_froms, data_tos, query_froms, query_tos, labels):
    start = cuda.grid(1)
    step = cuda.gridsize(1)
    edge_count = data_froms.shape[0]
    query_edges = query_froms.shape[0]
    for e in range(start, edge_count, step):
        src_mask = bitmask[data_froms[e]]
        dst_mask = bitmask[data_tos[e]]
        for k in range(query_edges):
            if ((src_mask >> query_froms[k]) & 1) != 0 and ((dst_mask >> query_tos[k]) & 1) != 0:
                labels[k * edge_count + e] = 1


@cuda.jit
def segment_boundaries_cuda(candidates, data_edge_count, query_edge_count, pos, bad):
    start = cuda.grid(1)
    step = cuda.gridsize(1)
    n = candidates.shape[0]
    for x in range(start, n, step):
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


@cuda.jit
def strip_tags_cuda(candidates, data_edge_count):
    start = cuda.grid(1)
    step = cuda.gridsize(1)
    for x in range(start, candidates.shape[0], step):
        candidates[x] = candidates[x] % data_edge_count


@cuda.jit
def join_cuda(lengths, offsets, strides, candidates, froms, tos, rules, total, out, counter):
    start = cuda.grid(1)
    step = cuda.gridsize(1)
    q = lengths.shape[0]
    capacity = out.shape[0]
    chosen = cuda.local.array(MAX_QUERY_EDGES, np.int64)
    for x in range(start, total, step):
        accepted = True
        for j in range(q):
            digit = (x // strides[j]) % lengths[j]
            chosen[j] = candidates[offsets[j] + digit]
            if j > 0 and not _edge_consistent_device(j, chosen, froms, tos, rules):
                accepted = False
                break
        if accepted:
            slot = cuda.atomic.add(counter, 0, 1)
            if slot < capacity:
                for j in range(q):
                    out[slot, j] = chosen[j]


def launch_geometry(domain: int, threads_per_block: int, blocks: int) -> tuple[int, int]:
    """Return ``(blocks, threads_per_block)`` for a grid-stride launch over ``domain``."""

    threads = max(1, int(threads_per_block))
    if blocks > 0:
        return int(blocks), threads
    device = cuda.get_current_device()
    resident = int(device.MULTIPROCESSOR_COUNT) * 32
    needed = max(1, (int(domain) + threads - 1) // threads)
    return min(needed, resident), threads


__all__ = [
    "MAX_QUERY_EDGES",
    "join_cuda",
    "label_candidates_cuda",
    "launch_geometry",
    "segment_boundaries_cuda",
    "strip_tags_cuda",
]
