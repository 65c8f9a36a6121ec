"""Convenience alias so callers can ``from edgejoin import config as ej_config``."""

from edgejoin.runtime.config import (
    RuntimeConfig,
    RuntimeContext,
    configure_runtime,
    describe_runtime,
    reset_runtime_context,
    runtime_config,
    runtime_context,
)

__all__ = [
    "RuntimeConfig",
    "RuntimeContext",
    "configure_runtime",
    "describe_runtime",
    "reset_runtime_context",
    "runtime_config",
    "runtime_context",
]
