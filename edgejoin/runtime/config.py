from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

_SUPPORTED_BACKENDS = {"numba", "cuda"}
_DEFAULT_BACKEND = "numba"
_DEFAULT_NUM_WORKERS = 0
_DEFAULT_THREADS_PER_BLOCK = 256
_DEFAULT_BLOCKS = 0
_DEFAULT_MATCH_CAPACITY = 1 << 20
_DEFAULT_NUMBA_THREADING_LAYER = "default"
_MAX_THREADS_PER_BLOCK = 1024


def _ensure_env(var: str, value: str) -> None:
    if os.getenv(var) is None:
        os.environ[var] = value


def _configure_threading_defaults() -> None:
    """Set conservative threading defaults unless the user overrides them."""

    _ensure_env("OMP_NUM_THREADS", "1")
    _ensure_env("OPENBLAS_NUM_THREADS", "1")
    _ensure_env("MKL_NUM_THREADS", "1")
    if os.getenv("NUMBA_NUM_THREADS") is None:
        os.environ["NUMBA_NUM_THREADS"] = str(os.cpu_count() or 1)
    _ensure_env("NUMBA_THREADING_LAYER", _DEFAULT_NUMBA_THREADING_LAYER)


_configure_threading_defaults()


def _bool_from_env(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_optional_int(raw: str | None) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid integer value '{raw}'") from exc


def _infer_backend_from_env() -> str:
    backend = os.getenv("EDGEJOIN_BACKEND", _DEFAULT_BACKEND).strip().lower()
    if backend not in _SUPPORTED_BACKENDS:
        raise ValueError(f"Unsupported backend '{backend}'. Expected one of {_SUPPORTED_BACKENDS}.")
    return backend


def _non_negative(raw: int | None, *, default: int) -> int:
    if raw is None or raw <= 0:
        return default
    return raw


@dataclass(frozen=True)
class RuntimeConfig:
    backend: str
    log_level: str
    enable_diagnostics: bool
    num_workers: int
    threads_per_block: int
    blocks: int
    match_capacity: int
    strict_capacity: bool
    verify_segments: bool

    def __post_init__(self) -> None:
        if self.backend not in _SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported backend '{self.backend}'. Expected one of {_SUPPORTED_BACKENDS}."
            )

    @property
    def uses_device(self) -> bool:
        return self.backend == "cuda"

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        backend = _infer_backend_from_env()
        log_level = os.getenv("EDGEJOIN_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        enable_diagnostics = _bool_from_env(
            os.getenv("EDGEJOIN_ENABLE_DIAGNOSTICS"), default=True
        )
        num_workers = _non_negative(
            _parse_optional_int(os.getenv("EDGEJOIN_NUM_WORKERS")),
            default=_DEFAULT_NUM_WORKERS,
        )
        threads_per_block = _non_negative(
            _parse_optional_int(os.getenv("EDGEJOIN_THREADS_PER_BLOCK")),
            default=_DEFAULT_THREADS_PER_BLOCK,
        )
        if threads_per_block > _MAX_THREADS_PER_BLOCK:
            raise ValueError(
                f"EDGEJOIN_THREADS_PER_BLOCK must not exceed {_MAX_THREADS_PER_BLOCK}"
            )
        blocks = _non_negative(
            _parse_optional_int(os.getenv("EDGEJOIN_BLOCKS")),
            default=_DEFAULT_BLOCKS,
        )
        raw_capacity = _parse_optional_int(os.getenv("EDGEJOIN_MATCH_CAPACITY"))
        if raw_capacity is None:
            match_capacity = _DEFAULT_MATCH_CAPACITY
        elif raw_capacity < 0:
            raise ValueError("EDGEJOIN_MATCH_CAPACITY must be non-negative")
        else:
            match_capacity = raw_capacity
        strict_capacity = _bool_from_env(
            os.getenv("EDGEJOIN_STRICT_CAPACITY"), default=False
        )
        verify_segments = _bool_from_env(
            os.getenv("EDGEJOIN_VERIFY_SEGMENTS"), default=True
        )
        return cls(
            backend=backend,
            log_level=log_level,
            enable_diagnostics=enable_diagnostics,
            num_workers=num_workers,
            threads_per_block=threads_per_block,
            blocks=blocks,
            match_capacity=match_capacity,
            strict_capacity=strict_capacity,
            verify_segments=verify_segments,
        )


def _configure_logging(level: str) -> None:
    logger = logging.getLogger("edgejoin")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        formatter = logging.Formatter("%(levelname)s %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)


@dataclass
class RuntimeContext:
    """Aggregate runtime configuration and lazily-resolved backend state."""

    config: RuntimeConfig
    _backend: Any = field(default=None, init=False, repr=False)
    _activated: bool = field(default=False, init=False, repr=False)

    def activate(self) -> None:
        """Apply logging side effects once."""

        if self._activated:
            return
        _configure_logging(self.config.log_level)
        self._activated = True

    def get_backend(self) -> "ArrayBackend":
        """Return the active array backend, instantiating it lazily."""

        if self._backend is None:
            from edgejoin.core.backend import ArrayBackend  # lazy import to avoid cycles

            if self.config.uses_device:
                self._backend = ArrayBackend.cuda()
            else:
                self._backend = ArrayBackend.host()
        return self._backend


_CONTEXT_CACHE: Optional[RuntimeContext] = None


def runtime_context() -> RuntimeContext:
    """Return the cached runtime context, constructing it if necessary."""

    global _CONTEXT_CACHE
    if _CONTEXT_CACHE is None:
        context = RuntimeContext(config=RuntimeConfig.from_env())
        context.activate()
        _CONTEXT_CACHE = context
    return _CONTEXT_CACHE


def runtime_config() -> RuntimeConfig:
    return runtime_context().config


def configure_runtime(config: RuntimeConfig) -> RuntimeContext:
    """Force the active runtime context to use ``config`` instead of env defaults."""

    global _CONTEXT_CACHE
    context = RuntimeContext(config=config)
    context.activate()
    _CONTEXT_CACHE = context
    return context


def reset_runtime_context() -> None:
    """Clear the cached runtime context (used in tests)."""

    global _CONTEXT_CACHE
    _CONTEXT_CACHE = None


def describe_runtime() -> Dict[str, Any]:
    """Return a serialisable view of the active runtime configuration."""

    config = runtime_config()
    return {
        "backend": config.backend,
        "log_level": config.log_level,
        "enable_diagnostics": config.enable_diagnostics,
        "num_workers": config.num_workers,
        "threads_per_block": config.threads_per_block,
        "blocks": config.blocks,
        "match_capacity": config.match_capacity,
        "strict_capacity": config.strict_capacity,
        "verify_segments": config.verify_segments,
    }


__all__ = [
    "RuntimeConfig",
    "RuntimeContext",
    "runtime_context",
    "runtime_config",
    "configure_runtime",
    "reset_runtime_context",
    "describe_runtime",
]
