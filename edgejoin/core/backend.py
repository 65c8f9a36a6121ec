from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numba import cuda
from numba.cuda.cudadrv.driver import CudaAPIError

from edgejoin.errors import (
    BackendUnavailableError,
    DeviceAllocationError,
    DeviceTransferError,
)

DEFAULT_INT = np.int64


def cuda_available() -> bool:
    return bool(cuda.is_available())


@dataclass(frozen=True)
class ArrayBackend:
    """Where pipeline buffers live: host numpy arrays or numba CUDA device arrays."""

    name: str
    default_int: Any = DEFAULT_INT

    @classmethod
    def host(cls) -> "ArrayBackend":
        return cls(name="numba")

    @classmethod
    def cuda(cls) -> "ArrayBackend":
        if not cuda_available():
            raise BackendUnavailableError("cuda", "no CUDA device detected")
        return cls(name="cuda")

    @property
    def is_device(self) -> bool:
        return self.name == "cuda"

    def empty(self, shape: Any, *, label: str, dtype: Any = None) -> Any:
        dtype = np.dtype(dtype or self.default_int)
        nbytes = int(np.prod(shape, dtype=np.int64)) * dtype.itemsize
        try:
            if self.is_device:
                return cuda.device_array(shape, dtype=dtype)
            return np.empty(shape, dtype=dtype)
        except (MemoryError, CudaAPIError) as exc:
            raise DeviceAllocationError(label, nbytes, self.name) from exc

    def zeros(self, shape: Any, *, label: str, dtype: Any = None) -> Any:
        if not self.is_device:
            dtype = np.dtype(dtype or self.default_int)
            try:
                return np.zeros(shape, dtype=dtype)
            except MemoryError as exc:
                nbytes = int(np.prod(shape, dtype=np.int64)) * dtype.itemsize
                raise DeviceAllocationError(label, nbytes, self.name) from exc
        host = np.zeros(shape, dtype=dtype or self.default_int)
        return self.device_put(host, label=label)

    def asarray(self, value: Any, *, dtype: Any = None) -> np.ndarray:
        """Host-side coercion to a contiguous array of ``dtype``."""

        return np.ascontiguousarray(value, dtype=dtype or self.default_int)

    def device_put(self, value: Any, *, label: str) -> Any:
        host = np.ascontiguousarray(value)
        if not self.is_device:
            return host
        try:
            return cuda.to_device(host)
        except CudaAPIError as exc:
            raise DeviceTransferError(label, "host-to-device") from exc

    def to_numpy(self, value: Any, *, label: str = "array") -> np.ndarray:
        if isinstance(value, np.ndarray):
            return value
        try:
            return value.copy_to_host()
        except CudaAPIError as exc:
            raise DeviceTransferError(label, "device-to-host") from exc

    def synchronize(self) -> None:
        if self.is_device:
            cuda.synchronize()


HOST_BACKEND = ArrayBackend.host()


__all__ = ["ArrayBackend", "DEFAULT_INT", "HOST_BACKEND", "cuda_available"]
