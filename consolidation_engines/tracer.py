"""
consolidation_engines.tracer -- CONSOLIDATION_ENGINE_TRACE emission.

Responsibility:
    ``@traced_engine`` wraps a calculation entry point and logs one trace
    record per call: engine name and version, a fingerprint of the inputs
    that determine the result (period buckets, entity ids), the size of the
    result and the elapsed time.  Two traces with the same fingerprint and
    version must have produced the same numbers.

Architecture position:
    Engines -- support for the pure calculation layer.  The decorator reads
    keyword arguments and writes a log record; it never touches the data.

Invariants enforced:
    - Fingerprints are order independent for sets and mappings, so a scope
      given as a frozenset of entity ids hashes the same on every run.
    - Dataclass inputs (buckets, ranges) are canonicalized field by field.

Failure modes:
    - A fingerprint field absent from kwargs hashes as ``null``.
    - Exceptions from the engine propagate; no trace is written for them.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import time
from collections.abc import Callable, Mapping, Sized
from enum import Enum
from typing import Any, TypeVar

from consolidation_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

F = TypeVar("F", bound=Callable[..., Any])

FINGERPRINT_LENGTH = 16


def _canonical(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return _canonical(value.value)
    if isinstance(value, Mapping):
        pairs = sorted(f"{_canonical(k)}:{_canonical(v)}" for k, v in value.items())
        return "{" + ",".join(pairs) + "}"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonical(v) for v in value)) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonical(v) for v in value) + "]"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = (f"{f.name}={_canonical(getattr(value, f.name))}" for f in dataclasses.fields(value))
        return f"{type(value).__name__}(" + ",".join(fields) + ")"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """Truncated SHA-256 over the named keyword arguments."""
    canonical = "|".join(f"{name}={_canonical(kwargs.get(name))}" for name in fingerprint_fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable[[F], F]:
    """
    Log CONSOLIDATION_ENGINE_TRACE around each call of the decorated engine.

    Engines are called with keyword arguments so the fingerprint can pick
    its fields by name.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            )
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

            _logger.info(
                "CONSOLIDATION_ENGINE_TRACE",
                extra={
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "result_size": len(result) if isinstance(result, Sized) else None,
                    "duration_ms": elapsed_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
