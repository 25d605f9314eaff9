# src/supmap/graph/union.py
"""
Two-pass structural union of two row-indexed graphs.

  1) count:    per row, the number of distinct columns present in either
               input; an exclusive prefix sum turns the counts into the
               result's row offsets.
  2) populate: per row, write the sorted distinct columns at the offsets
               computed in pass 1, each weighted by the sum of the input
               weights present at that position.

The count pass must fully finish before populate starts;
ExecutionContext.parallel_for only returns once every batch is done.
"""

from __future__ import annotations

from typing import Tuple

import numba
import numpy as np

from ..errors import PreconditionViolation, resource_guard
from ..parallel import ExecutionContext, default_context
from .coo import SparseGraph
from .ops import get_stop_idx


@numba.njit(nogil=True)
def _row_union(cols1, lo1, hi1, cols2, lo2, hi2):
    merged = np.empty((hi1 - lo1) + (hi2 - lo2), dtype=np.int64)
    n = 0
    for k in range(lo1, hi1):
        merged[n] = cols1[k]
        n += 1
    for k in range(lo2, hi2):
        merged[n] = cols2[k]
        n += 1
    return np.unique(merged)


@numba.njit(nogil=True)
def _union_count_kernel(
    start, stop, n_rows, ind1, cols1, nnz1, ind2, cols2, nnz2, counts
):
    for row in range(start, stop):
        lo1 = ind1[row]
        hi1 = get_stop_idx(row, n_rows, nnz1, ind1)
        lo2 = ind2[row]
        hi2 = get_stop_idx(row, n_rows, nnz2, ind2)
        counts[row] = _row_union(cols1, lo1, hi1, cols2, lo2, hi2).shape[0]


@numba.njit(nogil=True)
def _union_populate_kernel(
    start, stop, n_rows,
    ind1, cols1, vals1, nnz1,
    ind2, cols2, vals2, nnz2,
    result_ind, nnz, result_rows, result_cols, result_vals,
):
    for row in range(start, stop):
        lo1 = ind1[row]
        hi1 = get_stop_idx(row, n_rows, nnz1, ind1)
        lo2 = ind2[row]
        hi2 = get_stop_idx(row, n_rows, nnz2, ind2)

        merged = _row_union(cols1, lo1, hi1, cols2, lo2, hi2)
        res_start = result_ind[row]
        for k in range(merged.shape[0]):
            col = merged[k]
            total = 0.0
            for m in range(lo1, hi1):
                if cols1[m] == col:
                    total += vals1[m]
            for m in range(lo2, hi2):
                if cols2[m] == col:
                    total += vals2[m]
            result_rows[res_start + k] = row
            result_cols[res_start + k] = col
            result_vals[res_start + k] = total


@numba.njit(nogil=True)
def _gather_kernel(
    start, stop, n_rows,
    ind1, cols1, vals1, nnz1,
    ind2, cols2, vals2, nnz2,
    result_ind, result_cols, nnz,
    fill1, fill2, out1, out2,
):
    for row in range(start, stop):
        res_start = result_ind[row]
        res_stop = get_stop_idx(row, n_rows, nnz, result_ind)

        lo1 = ind1[row]
        hi1 = get_stop_idx(row, n_rows, nnz1, ind1)
        lo2 = ind2[row]
        hi2 = get_stop_idx(row, n_rows, nnz2, ind2)

        for j in range(res_start, res_stop):
            col = result_cols[j]

            left_val = fill1
            for k in range(lo1, hi1):
                if cols1[k] == col:
                    left_val = vals1[k]

            right_val = fill2
            for k in range(lo2, hi2):
                if cols2[k] == col:
                    right_val = vals2[k]

            out1[j] = left_val
            out2[j] = right_val


def _check_shapes(left_ind, left: SparseGraph, right_ind, right: SparseGraph) -> int:
    n_rows = left.n_rows
    if right.n_rows != n_rows:
        raise PreconditionViolation(
            f"graphs must have the same number of rows, got {n_rows} and {right.n_rows}"
        )
    if left_ind.shape[0] != n_rows or right_ind.shape[0] != n_rows:
        raise PreconditionViolation("row index length must equal n_rows")
    return n_rows


def structural_union_count(
    left_ind: np.ndarray,
    left: SparseGraph,
    right_ind: np.ndarray,
    right: SparseGraph,
    ctx: ExecutionContext | None = None,
) -> Tuple[np.ndarray, int]:
    """
    Sizing pass. Returns the result's row offsets and its total nnz.
    """
    ctx = default_context(ctx)
    n_rows = _check_shapes(left_ind, left, right_ind, right)

    with ctx.buffer(n_rows, dtype=np.int64) as counts:
        ctx.parallel_for(
            n_rows, _union_count_kernel, n_rows,
            left_ind, left.cols, left.nnz,
            right_ind, right.cols, right.nnz,
            counts,
        )
        with resource_guard(f"row index of {n_rows} rows"):
            result_ind = np.zeros(n_rows, dtype=np.int64)
        if n_rows > 1:
            np.cumsum(counts[:-1], out=result_ind[1:])
        result_nnz = int(counts.sum())
    return result_ind, result_nnz


def structural_union_populate(
    left_ind: np.ndarray,
    left: SparseGraph,
    right_ind: np.ndarray,
    right: SparseGraph,
    result_ind: np.ndarray,
    result: SparseGraph,
    ctx: ExecutionContext | None = None,
) -> SparseGraph:
    ctx = default_context(ctx)
    n_rows = _check_shapes(left_ind, left, right_ind, right)
    ctx.parallel_for(
        n_rows, _union_populate_kernel, n_rows,
        left_ind, left.cols, left.vals, left.nnz,
        right_ind, right.cols, right.vals, right.nnz,
        result_ind, result.nnz, result.rows, result.cols, result.vals,
    )
    return result


def structural_union(
    left_ind: np.ndarray,
    left: SparseGraph,
    right_ind: np.ndarray,
    right: SparseGraph,
    ctx: ExecutionContext | None = None,
) -> Tuple[np.ndarray, SparseGraph]:
    """
    Union of the non-zero positions of two graphs. Each position carries the
    element-wise sum of the input weights found there.

    Output is row-sorted and column-sorted within each row.
    """
    ctx = default_context(ctx)
    result_ind, result_nnz = structural_union_count(left_ind, left, right_ind, right, ctx)
    dtype = np.result_type(left.vals.dtype, right.vals.dtype)
    result = SparseGraph.allocate(result_nnz, left.n_rows, dtype=dtype)
    structural_union_populate(left_ind, left, right_ind, right, result_ind, result, ctx)
    return result_ind, result


def gather_union_values(
    left_ind: np.ndarray,
    left: SparseGraph,
    right_ind: np.ndarray,
    right: SparseGraph,
    result_ind: np.ndarray,
    result: SparseGraph,
    left_fill: float,
    right_fill: float,
    ctx: ExecutionContext | None = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    For every position of ``result``, the weight each input holds there,
    or its fill value when the input has no edge at that position.
    """
    ctx = default_context(ctx)
    n_rows = _check_shapes(left_ind, left, right_ind, right)
    with resource_guard(f"gathered weights of {result.nnz} non-zeros"):
        left_vals = np.zeros(result.nnz, dtype=np.float64)
        right_vals = np.zeros(result.nnz, dtype=np.float64)
    ctx.parallel_for(
        n_rows, _gather_kernel, n_rows,
        left_ind, left.cols, left.vals, left.nnz,
        right_ind, right.cols, right.vals, right.nnz,
        result_ind, result.cols, result.nnz,
        float(left_fill), float(right_fill), left_vals, right_vals,
    )
    return left_vals, right_vals
