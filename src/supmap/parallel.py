# src/supmap/parallel.py
"""
Data-parallel execution for row and edge kernels.

Every kernel in supmap has the signature

    kernel(start, stop, *args)

and processes the half-open range of work items [start, stop), writing only
to its own output slots. The context splits the items into fixed-size
batches and runs them either inline or on a joblib thread pool. Kernels are
numba functions compiled with ``nogil=True`` so threads actually overlap.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, List, Tuple

import numpy as np
from joblib import Parallel, delayed

from .errors import PreconditionViolation, resource_guard


@dataclass
class ExecutionContext:
    batch_size: int = 256
    n_jobs: int = 1
    live_buffers: int = field(default=0, init=False, repr=False)

    def __post_init__(self):
        if self.batch_size < 1:
            raise PreconditionViolation(
                f"batch_size must be positive, got {self.batch_size}"
            )
        if self.n_jobs == 0:
            raise PreconditionViolation("n_jobs must be non-zero")

    def batches(self, n_items: int) -> List[Tuple[int, int]]:
        bs = self.batch_size
        return [(start, min(start + bs, n_items)) for start in range(0, n_items, bs)]

    def parallel_for(self, n_items: int, kernel: Callable, *args) -> List[Any]:
        """
        Run ``kernel`` over all batches of ``n_items`` and return the
        per-batch results in batch order.

        Returns only once every batch has finished, so callers can treat
        the return as a barrier.
        """
        ranges = self.batches(n_items)
        if self.n_jobs == 1 or len(ranges) <= 1:
            return [kernel(start, stop, *args) for start, stop in ranges]
        return Parallel(n_jobs=self.n_jobs, prefer="threads")(
            delayed(kernel)(start, stop, *args) for start, stop in ranges
        )

    @contextmanager
    def buffer(self, size: int, dtype=np.int64, fill=0):
        """
        Scoped working buffer (row offsets, per-row counts, ...).
        """
        with resource_guard(f"working buffer of {size} x {np.dtype(dtype).name}"):
            buf = np.full(size, fill, dtype=dtype)
        self.live_buffers += 1
        try:
            yield buf
        finally:
            self.live_buffers -= 1


def default_context(ctx: ExecutionContext | None) -> ExecutionContext:
    return ctx if ctx is not None else ExecutionContext()
