from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator

import psutil

from edgejoin import config as ej_config


@dataclass
class OperationMetrics:
    """Wall/CPU/RSS deltas captured around a single pipeline operation."""

    op: str
    wall_seconds: float = 0.0
    cpu_user_seconds: float = 0.0
    cpu_system_seconds: float = 0.0
    rss_delta_bytes: int = 0
    fields: Dict[str, Any] = field(default_factory=dict)

    def add(self, **fields: Any) -> None:
        self.fields.update(fields)

    def format(self) -> str:
        parts = [
            f"op={self.op}",
            f"wall_ms={self.wall_seconds * 1e3:.3f}",
            f"cpu_user_ms={self.cpu_user_seconds * 1e3:.3f}",
            f"cpu_system_ms={self.cpu_system_seconds * 1e3:.3f}",
            f"rss_delta={self.rss_delta_bytes}",
        ]
        parts.extend(f"{key}={value}" for key, value in self.fields.items())
        return " ".join(parts)


@contextmanager
def log_operation(
    logger: logging.Logger,
    op: str,
    **fields: Any,
) -> Iterator[OperationMetrics]:
    """Measure the enclosed block and emit a single ``op=...`` log line.

    Extra key/value pairs can be attached inside the block through
    ``metrics.add(...)``. Nothing is logged when diagnostics are disabled,
    but the timings are still recorded on the yielded metrics object.
    """

    metrics = OperationMetrics(op=op, fields=dict(fields))
    enabled = ej_config.runtime_config().enable_diagnostics
    proc = psutil.Process() if enabled else None
    if proc is not None:
        cpu_before = proc.cpu_times()
        rss_before = proc.memory_info().rss
    start = time.perf_counter()
    try:
        yield metrics
    finally:
        metrics.wall_seconds = time.perf_counter() - start
        if proc is not None:
            cpu_after = proc.cpu_times()
            metrics.cpu_user_seconds = cpu_after.user - cpu_before.user
            metrics.cpu_system_seconds = cpu_after.system - cpu_before.system
            metrics.rss_delta_bytes = int(proc.memory_info().rss - rss_before)
            logger.info(metrics.format())


__all__ = ["OperationMetrics", "log_operation"]
