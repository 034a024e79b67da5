"""
stock_engines.tracer -- Engine invocation tracer emitting ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    engine invocations with structured trace logging.  The trace captures
    engine_name, engine_version, input_fingerprint (deterministic SHA-256
    hash of selected inputs), and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Does NOT introduce I/O into engines; emits a log record only.

Invariants enforced:
    - Fingerprints are deterministic: values are canonicalized (Decimals
      by their string form, dict keys sorted) before hashing.
    - Engine purity: the decorator only reads arguments and emits a log
      record; it does not mutate inputs.

Usage:
    from stock_engines.tracer import traced_engine

    @traced_engine("wac", "1.0", fingerprint_fields=("on_hand", "wac"))
    def calculate_wac(on_hand, wac, quantity, unit_price):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from stock_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    """Stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        return str(value.normalize())
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, dict):
        items = sorted(value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """16-hex-char SHA-256 prefix over the selected arguments.

    Missing fields are recorded as "null".
    """
    parts = [f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields]
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "wac").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Argument names (positional or keyword) to
            include in the input fingerprint hash.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, dict(bound.arguments))

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 3)

            _logger.debug(
                "ENGINE_TRACE",
                extra={
                    "trace_type": "ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
