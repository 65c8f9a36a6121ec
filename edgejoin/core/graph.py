from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np

from edgejoin.errors import InvalidGraphError

I64 = np.int64


def _frozen(values: np.ndarray) -> np.ndarray:
    arr = np.ascontiguousarray(values, dtype=I64)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class CSRGraph:
    """Directed graph in CSR form with explicit edge endpoint arrays.

    Edge ``e`` runs ``froms[e] -> tos[e]``; ``row_offsets[v]:row_offsets[v + 1]``
    spans the edges leaving ``v``. All arrays are int64 and read-only.
    """

    node_count: int
    edge_count: int
    row_offsets: np.ndarray
    froms: np.ndarray
    tos: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "row_offsets", _frozen(self.row_offsets))
        object.__setattr__(self, "froms", _frozen(self.froms))
        object.__setattr__(self, "tos", _frozen(self.tos))
        self.validate()

    def validate(self) -> None:
        if self.node_count < 0 or self.edge_count < 0:
            raise InvalidGraphError("node and edge counts must be non-negative")
        if self.row_offsets.shape != (self.node_count + 1,):
            raise InvalidGraphError(
                f"row_offsets must have {self.node_count + 1} entries, "
                f"got {self.row_offsets.shape[0]}"
            )
        if self.froms.shape != (self.edge_count,) or self.tos.shape != (self.edge_count,):
            raise InvalidGraphError("froms/tos must both have one entry per edge")
        if self.row_offsets[0] != 0 or self.row_offsets[-1] != self.edge_count:
            raise InvalidGraphError("row_offsets must start at 0 and end at edge_count")
        if np.any(np.diff(self.row_offsets) < 0):
            raise InvalidGraphError("row_offsets must be non-decreasing")
        if self.edge_count:
            lo = min(int(self.froms.min()), int(self.tos.min()))
            hi = max(int(self.froms.max()), int(self.tos.max()))
            if lo < 0 or hi >= self.node_count:
                raise InvalidGraphError("edge endpoints must lie in [0, node_count)")

    @classmethod
    def from_edges(cls, node_count: int, edges: Iterable[Sequence[int]]) -> "CSRGraph":
        """Build a CSR graph; edges are stably ordered by source node."""

        pairs = np.asarray(list(edges), dtype=I64).reshape(-1, 2)
        if pairs.size and (pairs.min() < 0 or pairs.max() >= node_count):
            raise InvalidGraphError("edge endpoints must lie in [0, node_count)")
        pairs = pairs[np.argsort(pairs[:, 0], kind="stable")]
        counts = np.bincount(pairs[:, 0], minlength=node_count)
        row_offsets = np.zeros(node_count + 1, dtype=I64)
        np.cumsum(counts, out=row_offsets[1:])
        return cls(
            node_count=int(node_count),
            edge_count=int(pairs.shape[0]),
            row_offsets=row_offsets,
            froms=pairs[:, 0],
            tos=pairs[:, 1],
        )

    def edge(self, index: int) -> Tuple[int, int]:
        return int(self.froms[index]), int(self.tos[index])

    def edges(self) -> list[Tuple[int, int]]:
        return list(zip(self.froms.tolist(), self.tos.tolist()))


__all__ = ["CSRGraph"]
