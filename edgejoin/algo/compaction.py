from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np

from edgejoin import config as ej_config
from edgejoin.algo import _kernels_cuda, _kernels_numba
from edgejoin.core.backend import ArrayBackend
from edgejoin.diagnostics import log_operation
from edgejoin.errors import SegmentOrderError

LOGGER = logging.getLogger("edgejoin.algo.compaction")


@dataclass(frozen=True)
class SegmentTable:
    """Per-query-edge candidate segments inside the de-tagged candidate array.

    Query edge ``i`` owns ``candidates[pos[i - 1]:pos[i]]`` with ``pos[-1]``
    taken as 0. ``pos`` is a host array; ``candidates`` stays wherever the
    backend keeps it.
    """

    pos: np.ndarray
    candidates: Any
    seconds: float = 0.0

    @property
    def query_edge_count(self) -> int:
        return int(self.pos.shape[0])

    @property
    def offsets(self) -> np.ndarray:
        starts = np.zeros_like(self.pos)
        starts[1:] = self.pos[:-1]
        return starts

    @property
    def lengths(self) -> np.ndarray:
        return self.pos - self.offsets

    def segment(self, index: int) -> np.ndarray:
        """Host copy of the candidates owned by query edge ``index``."""

        start = int(self.offsets[index])
        end = int(self.pos[index])
        host = self.candidates
        if not isinstance(host, np.ndarray):
            host = host.copy_to_host()
        return np.array(host[start:end], copy=True)


def compact_segments(
    candidates: Any,
    *,
    data_edge_count: int,
    query_edge_count: int,
    backend: ArrayBackend | None = None,
    verify: bool | None = None,
) -> SegmentTable:
    """Turn the sorted, tagged candidate array into a segment table.

    Runs as two passes with a full barrier between them: the boundary pass
    only reads the tagged entries, and the de-tag pass rewrites each entry to
    ``entry % data_edge_count`` in place. Query edges without candidates get an
    empty segment so ``pos`` is non-decreasing.
    """

    context = ej_config.runtime_context()
    backend = backend or context.get_backend()
    config = context.config
    verify = config.verify_segments if verify is None else verify
    if not backend.is_device:
        candidates = np.ascontiguousarray(candidates, dtype=np.int64)
    n = int(candidates.shape[0])

    with log_operation(
        LOGGER,
        "compact_segments",
        backend=backend.name,
        candidates=n,
        query_edges=query_edge_count,
    ) as metrics:
        if n and data_edge_count <= 0:
            raise SegmentOrderError("candidates present but the data graph has no edges")
        pos = np.zeros(query_edge_count, dtype=np.int64)
        if n:
            if backend.is_device:
                pos = _compact_device(backend, candidates, data_edge_count, query_edge_count, config)
            else:
                bad = np.zeros(n, dtype=np.uint8)
                _kernels_numba.segment_boundaries_kernel(
                    candidates, data_edge_count, query_edge_count, pos, bad
                )
                _raise_on_bad(bad, candidates, data_edge_count, query_edge_count)
                _kernels_numba.strip_tags_kernel(candidates, data_edge_count)
        # segments absent from the array inherit the previous bound
        pos = np.maximum.accumulate(pos) if query_edge_count else pos
        if verify:
            _verify_table(pos, n)
        metrics.add(nonempty=int(np.count_nonzero(np.diff(pos, prepend=0))))

    return SegmentTable(pos=pos, candidates=candidates, seconds=metrics.wall_seconds)


def _compact_device(
    backend: ArrayBackend,
    candidates: Any,
    data_edge_count: int,
    query_edge_count: int,
    config: ej_config.RuntimeConfig,
) -> np.ndarray:
    n = int(candidates.shape[0])
    d_pos = backend.zeros(query_edge_count, label="pos")
    d_bad = backend.zeros(n, label="compaction.bad", dtype=np.uint8)
    blocks, threads = _kernels_cuda.launch_geometry(n, config.threads_per_block, config.blocks)
    _kernels_cuda.segment_boundaries_cuda[blocks, threads](
        candidates, data_edge_count, query_edge_count, d_pos, d_bad
    )
    backend.synchronize()
    bad = backend.to_numpy(d_bad, label="compaction.bad")
    if bad.any():
        _raise_on_bad(
            bad,
            backend.to_numpy(candidates, label="candidates"),
            data_edge_count,
            query_edge_count,
        )
    _kernels_cuda.strip_tags_cuda[blocks, threads](candidates, data_edge_count)
    backend.synchronize()
    return backend.to_numpy(d_pos, label="pos").astype(np.int64, copy=False)


def _raise_on_bad(
    bad: np.ndarray,
    candidates: np.ndarray,
    data_edge_count: int,
    query_edge_count: int,
) -> None:
    flagged = np.flatnonzero(bad)
    if flagged.size == 0:
        return
    position = int(flagged[0])
    tag = int(candidates[position]) // data_edge_count
    if tag < 0 or tag >= query_edge_count:
        raise SegmentOrderError(f"candidate tag {tag} is outside the query edge range", position)
    following = int(candidates[position + 1]) // data_edge_count
    raise SegmentOrderError(
        f"candidate array is not sorted by query edge: tag {tag} precedes tag {following}",
        position,
    )


def _verify_table(pos: np.ndarray, total: int) -> None:
    if pos.size == 0:
        if total:
            raise SegmentOrderError("candidates present for a query without edges")
        return
    if np.any(np.diff(pos) < 0):
        raise SegmentOrderError("segment offset table is not monotonically non-decreasing")
    if int(pos[-1]) != total:
        raise SegmentOrderError(
            f"segment offset table ends at {int(pos[-1])} but {total} candidates were compacted"
        )


__all__ = ["SegmentTable", "compact_segments"]
