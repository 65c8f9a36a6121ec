from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


class EdgeJoinError(Exception):
    """Base class for errors raised by the matching pipeline."""


@dataclass(eq=False)
class DeviceAllocationError(EdgeJoinError, MemoryError):
    label: str
    nbytes: int
    backend: str = "numba"

    def __str__(self) -> str:
        return f"failed to allocate {self.nbytes} bytes for '{self.label}' on {self.backend}"


@dataclass(eq=False)
class DeviceTransferError(EdgeJoinError, RuntimeError):
    label: str
    direction: str

    def __str__(self) -> str:
        return f"{self.direction} transfer of '{self.label}' failed"


@dataclass(eq=False)
class MatchCapacityError(EdgeJoinError, RuntimeError):
    count: int
    capacity: int

    def __str__(self) -> str:
        return (
            f"result truncated: {self.count} matches accepted but the output "
            f"buffer holds {self.capacity}"
        )


@dataclass(eq=False)
class CombinationSpaceOverflowError(EdgeJoinError, OverflowError):
    lengths: Tuple[int, ...]
    limit: int

    def __str__(self) -> str:
        return (
            f"combination space over segment lengths {self.lengths} exceeds {self.limit}"
        )


@dataclass(eq=False)
class SegmentOrderError(EdgeJoinError, ValueError):
    message: str
    position: int = -1

    def __str__(self) -> str:
        if self.position < 0:
            return self.message
        return f"{self.message} (position {self.position})"


@dataclass(eq=False)
class QueryTooLargeError(EdgeJoinError, ValueError):
    what: str
    size: int
    limit: int

    def __str__(self) -> str:
        return f"query has {self.size} {self.what}; this backend supports at most {self.limit}"


@dataclass(eq=False)
class InvalidGraphError(EdgeJoinError, ValueError):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class BackendUnavailableError(EdgeJoinError, RuntimeError):
    backend: str
    reason: str | None = None

    def __str__(self) -> str:
        if self.reason:
            return f"backend '{self.backend}' is unavailable: {self.reason}"
        return f"backend '{self.backend}' is unavailable"


__all__ = [
    "EdgeJoinError",
    "DeviceAllocationError",
    "DeviceTransferError",
    "MatchCapacityError",
    "CombinationSpaceOverflowError",
    "SegmentOrderError",
    "QueryTooLargeError",
    "InvalidGraphError",
    "BackendUnavailableError",
]
