from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np

from edgejoin import config as ej_config
from edgejoin.algo import _kernels_cuda, _kernels_numba
from edgejoin.core.backend import ArrayBackend
from edgejoin.diagnostics import log_operation

LOGGER = logging.getLogger("edgejoin.algo.labeling")


@dataclass(frozen=True)
class LabelingResult:
    """Per-(query edge, data edge) candidate flags.

    ``labels[q * data_edge_count + e]`` is 1 when data edge ``e`` may play
    query edge ``q``.
    """

    labels: Any
    candidate_counts: np.ndarray
    seconds: float

    @property
    def total_candidates(self) -> int:
        return int(self.candidate_counts.sum())


def label_candidates(
    query: Any,
    data: Any,
    bitmask: Any,
    *,
    backend: ArrayBackend | None = None,
    out: Any = None,
) -> LabelingResult:
    """Mark every data edge whose endpoints are feasible for a query edge's endpoints.

    Parameters
    ----------
    query, data:
        Graphs exposing ``froms``, ``tos`` and ``edge_count`` (a ``CSRGraph`` or
        a workspace ``DeviceGraph`` already staged on ``backend``).
    bitmask:
        One int64 per data node; bit ``i`` marks the node as a feasible image
        of query node ``i``.
    out:
        Optional zero-initialised label buffer of ``query.edge_count *
        data.edge_count`` entries. Allocated when omitted.
    """

    context = ej_config.runtime_context()
    backend = backend or context.get_backend()
    config = context.config
    query_edges = int(query.edge_count)
    data_edges = int(data.edge_count)

    with log_operation(
        LOGGER,
        "label_candidates",
        backend=backend.name,
        query_edges=query_edges,
        data_edges=data_edges,
    ) as metrics:
        if out is None:
            out = backend.zeros(query_edges * data_edges, label="labels")
        if backend.is_device:
            d_bitmask = backend.device_put(bitmask, label="bitmask") if isinstance(bitmask, np.ndarray) else bitmask
            d_query = _device_endpoints(backend, query, "query")
            d_data = _device_endpoints(backend, data, "data")
            if data_edges:
                blocks, threads = _kernels_cuda.launch_geometry(
                    data_edges, config.threads_per_block, config.blocks
                )
                _kernels_cuda.label_candidates_cuda[blocks, threads](
                    d_bitmask, d_data[0], d_data[1], d_query[0], d_query[1], out
                )
                backend.synchronize()
            host_labels = backend.to_numpy(out, label="labels")
        else:
            if data_edges:
                _kernels_numba.label_candidates_kernel(
                    np.ascontiguousarray(bitmask, dtype=np.int64),
                    data.froms,
                    data.tos,
                    query.froms,
                    query.tos,
                    out,
                )
            host_labels = out
        counts = np.asarray(host_labels).reshape(query_edges, data_edges).sum(axis=1)
        metrics.add(candidates=int(counts.sum()))

    return LabelingResult(
        labels=out,
        candidate_counts=counts.astype(np.int64, copy=False),
        seconds=metrics.wall_seconds,
    )


def _device_endpoints(backend: ArrayBackend, graph: Any, name: str) -> tuple[Any, Any]:
    froms, tos = graph.froms, graph.tos
    if isinstance(froms, np.ndarray):
        froms = backend.device_put(froms, label=f"{name}.froms")
        tos = backend.device_put(tos, label=f"{name}.tos")
    return froms, tos


__all__ = ["LabelingResult", "label_candidates"]
