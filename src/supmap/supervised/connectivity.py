# src/supmap/supervised/connectivity.py
from __future__ import annotations

import numpy as np

from ..graph import SparseGraph, row_normalize_max, sorted_to_row_index, symmetrize
from ..parallel import ExecutionContext, default_context


def fuzzy_union(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Probabilistic OR of two membership strengths."""
    return a + b - a * b


def reset_local_connectivity(
    graph: SparseGraph,
    ctx: ExecutionContext | None = None,
) -> SparseGraph:
    """
    Restore the local connectivity assumption: every point should be fully
    confident (weight 1) in at least one of its edges.

    Rows are L-inf normalised, then (i, j) and (j, i) are merged with a
    fuzzy union. The input graph is not modified.
    """
    ctx = default_context(ctx)
    row_ind = sorted_to_row_index(graph, ctx)

    normalized = graph.copy()
    row_normalize_max(row_ind, graph.vals, graph.n_rows, ctx, out=normalized.vals)

    return symmetrize(normalized, fuzzy_union, ctx)
