# src/supmap/graph/ops.py
"""
Sparse graph primitives used by the fusion engines.

Row-parallel kernels take a [start, stop) range of rows; edge-parallel
kernels take a [start, stop) range of non-zeros. See supmap.parallel.
"""

from __future__ import annotations

from typing import Callable

import numba
import numpy as np

from ..errors import NumericDegenerate, PreconditionViolation, resource_guard
from ..parallel import ExecutionContext, default_context
from .coo import SparseGraph


@numba.njit(nogil=True)
def get_stop_idx(row, n_rows, nnz, row_ind):
    if row < n_rows - 1:
        return row_ind[row + 1]
    return nnz


@numba.njit(nogil=True)
def _row_index_kernel(start, stop, rows, row_ind):
    for row in range(start, stop):
        row_ind[row] = np.searchsorted(rows, row)


@numba.njit(nogil=True)
def _row_normalize_max_kernel(start, stop, row_ind, vals, nnz, n_rows, out):
    for row in range(start, stop):
        lo = row_ind[row]
        hi = get_stop_idx(row, n_rows, nnz, row_ind)

        max_val = 0.0
        for k in range(lo, hi):
            if vals[k] > max_val:
                max_val = vals[k]

        for k in range(lo, hi):
            if max_val > 0.0:
                out[k] = vals[k] / max_val
            else:
                out[k] = vals[k]


@numba.njit(nogil=True)
def _min_kernel(start, stop, vals):
    min_val = vals[start]
    for k in range(start + 1, stop):
        if vals[k] < min_val:
            min_val = vals[k]
    return min_val


def sorted_to_row_index(graph: SparseGraph, ctx: ExecutionContext | None = None) -> np.ndarray:
    """
    Row-offset array of a row-sorted graph: row i occupies
    [row_ind[i], row_ind[i+1]) (or [row_ind[i], nnz) for the last row).
    """
    ctx = default_context(ctx)
    if not graph.is_row_sorted():
        raise PreconditionViolation("graph must be sorted by row")

    with resource_guard(f"row index of {graph.n_rows} rows"):
        row_ind = np.zeros(graph.n_rows, dtype=np.int64)
    ctx.parallel_for(graph.n_rows, _row_index_kernel, graph.rows, row_ind)
    return row_ind


def row_index_to_rows(row_ind: np.ndarray, nnz: int) -> np.ndarray:
    counts = np.diff(np.append(row_ind, nnz))
    return np.repeat(np.arange(row_ind.shape[0], dtype=np.int64), counts)


def row_normalize_max(
    row_ind: np.ndarray,
    vals: np.ndarray,
    n_rows: int,
    ctx: ExecutionContext | None = None,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """
    L-inf normalise each row so its largest weight becomes 1.

    Rows whose max weight is 0 are left untouched. Works in place unless
    ``out`` is given.
    """
    ctx = default_context(ctx)
    if out is None:
        out = vals
    ctx.parallel_for(
        n_rows, _row_normalize_max_kernel, row_ind, vals, vals.shape[0], n_rows, out
    )
    return out


def remove_explicit_zeros(graph: SparseGraph) -> SparseGraph:
    keep = graph.vals != 0
    with resource_guard(f"compacted graph of {int(keep.sum())} non-zeros"):
        return SparseGraph(
            graph.rows[keep], graph.cols[keep], graph.vals[keep], graph.n_rows
        )


def min_weight(vals: np.ndarray, ctx: ExecutionContext | None = None) -> float:
    ctx = default_context(ctx)
    if vals.shape[0] == 0:
        raise NumericDegenerate("minimum weight of an empty graph is undefined")
    partial = ctx.parallel_for(vals.shape[0], _min_kernel, vals)
    return float(min(partial))


def symmetrize(
    graph: SparseGraph,
    combine: Callable[[np.ndarray, np.ndarray], np.ndarray],
    ctx: ExecutionContext | None = None,
) -> SparseGraph:
    """
    Merge (i, j) and (j, i) into one symmetric weight.

    ``combine(w_ij, w_ji)`` is evaluated on whole weight arrays, with a
    missing mirror edge read as 0. The value computed for the upper
    triangle is written to both positions, so the output is symmetric
    even for a non-commutative rule.
    """
    # imported here: union builds on the primitives above
    from .union import gather_union_values, structural_union

    ctx = default_context(ctx)
    row_ind = sorted_to_row_index(graph, ctx)
    transpose = graph.transpose()
    t_row_ind = sorted_to_row_index(transpose, ctx)

    result_ind, result = structural_union(row_ind, graph, t_row_ind, transpose, ctx)
    forward, backward = gather_union_values(
        row_ind, graph, t_row_ind, transpose, result_ind, result, 0.0, 0.0, ctx
    )

    upper = result.rows <= result.cols
    result.vals[:] = np.where(
        upper, combine(forward, backward), combine(backward, forward)
    )
    return result
