from __future__ import annotations

import logging
from typing import Any

import numpy as np

from edgejoin import config as ej_config
from edgejoin.core.backend import ArrayBackend
from edgejoin.diagnostics import log_operation

LOGGER = logging.getLogger("edgejoin.algo.packing")


def pack_candidates(
    labels: Any,
    *,
    query_edge_count: int,
    data_edge_count: int,
    backend: ArrayBackend | None = None,
) -> Any:
    """Collapse a label array into the sorted, tagged candidate array.

    Entry ``q * data_edge_count + e`` is emitted for every set label. Because
    labels are laid out query-edge-major, the non-zero positions already come
    out grouped by query edge and ascending by data edge id, which is exactly
    the order segment compaction expects.
    """

    backend = backend or ej_config.runtime_context().get_backend()
    expected = query_edge_count * data_edge_count
    with log_operation(
        LOGGER,
        "pack_candidates",
        backend=backend.name,
        slots=expected,
    ) as metrics:
        host = np.asarray(backend.to_numpy(labels, label="labels"))
        if host.shape != (expected,):
            raise ValueError(
                f"label array must have {expected} entries, got shape {host.shape}"
            )
        packed = np.flatnonzero(host).astype(np.int64, copy=False)
        metrics.add(candidates=int(packed.shape[0]))
        result = backend.device_put(packed, label="candidates")
    return result


__all__ = ["pack_candidates"]
