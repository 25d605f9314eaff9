# src/supmap/errors.py
"""
Failure kinds raised by the graph fusion stack.

  - ResourceExhaustion:     a working buffer could not be allocated
  - PreconditionViolation:  caller passed malformed inputs
  - NumericDegenerate:      a reduction was asked for over an empty graph

None of these are retried; any of them aborts the whole fusion call.
"""

from __future__ import annotations

from contextlib import contextmanager


class FusionError(Exception):
    """Base class for all supmap errors."""


class ResourceExhaustion(FusionError, MemoryError):
    pass


class PreconditionViolation(FusionError, ValueError):
    pass


class NumericDegenerate(FusionError, ArithmeticError):
    pass


@contextmanager
def resource_guard(what: str = "graph buffer"):
    """
    Re-raise allocation failures as ResourceExhaustion.
    """
    try:
        yield
    except ResourceExhaustion:
        raise
    except MemoryError as exc:
        raise ResourceExhaustion(f"could not allocate {what}: {exc}") from exc
