"""Runtime configuration for edgejoin."""

from .config import (
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
