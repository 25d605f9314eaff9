# src/supmap/supervised/general.py
"""
Fusion of a feature graph with continuous target values.

The targets get their own fuzzy graph (kNN over the values + fuzzy set
construction). Both graphs are then merged over the union of their edges,
each edge weight being a power-mean blend of the two sources controlled by
the mix weight (target_weights).
"""

from __future__ import annotations

import numpy as np

from ..config import FusionParams, FuzzySetConfig
from ..errors import NumericDegenerate, PreconditionViolation, resource_guard
from ..fuzzy import fuzzy_simplicial_set
from ..graph import (
    SparseGraph,
    as_graph,
    gather_union_values,
    min_weight,
    remove_explicit_zeros,
    sorted_to_row_index,
    structural_union,
)
from ..neighbors import target_nearest_neighbors
from ..parallel import ExecutionContext, default_context
from .connectivity import reset_local_connectivity

# lowest floor used for a missing edge
MIN_FLOOR = 1e-8


def power_mean_blend(
    left: np.ndarray,
    right: np.ndarray,
    left_min: float,
    right_min: float,
    mix_weight: float,
    placeholder: np.ndarray | None = None,
) -> np.ndarray:
    """
    Weighted geometric blend of two aligned weight arrays.

    mix_weight -> 0 keeps ``left``, mix_weight -> 1 keeps ``right``.
    Positions where neither side exceeds its floor keep ``placeholder``
    (0 when not given).
    """
    if placeholder is None:
        merged = np.zeros(left.shape[0], dtype=np.float64)
    else:
        merged = np.array(placeholder, dtype=np.float64)
    used = (left > left_min) | (right > right_min)
    lv = left[used]
    rv = right[used]

    # two branches keep the exponent finite at both ends of [0, 1]
    if mix_weight < 0.5:
        merged[used] = lv * np.power(rv, mix_weight / (1.0 - mix_weight))
    else:
        merged[used] = np.power(lv, (1.0 - mix_weight) / mix_weight) * rv
    return merged


def general_simplicial_set_intersection(
    left_ind: np.ndarray,
    left: SparseGraph,
    right_ind: np.ndarray,
    right: SparseGraph,
    mix_weight: float = 0.5,
    ctx: ExecutionContext | None = None,
) -> SparseGraph:
    """
    Merge two row-indexed graphs over the union of their edges.

    A side without an edge at a position contributes half of its smallest
    weight (at least MIN_FLOOR) instead. Positions where neither side exceeds
    its floor keep the union-pass weight, the sum of the weights present.
    """
    ctx = default_context(ctx)
    if not 0.0 <= mix_weight <= 1.0:
        raise PreconditionViolation(f"mix_weight must lie in [0, 1], got {mix_weight}")

    result_ind, result = structural_union(left_ind, left, right_ind, right, ctx)

    left_min = max(min_weight(left.vals, ctx) / 2.0, MIN_FLOOR)
    right_min = max(min_weight(right.vals, ctx) / 2.0, MIN_FLOOR)

    left_vals, right_vals = gather_union_values(
        left_ind, left, right_ind, right, result_ind, result, left_min, right_min, ctx
    )
    result.vals[:] = power_mean_blend(
        left_vals, right_vals, left_min, right_min, mix_weight, placeholder=result.vals
    )
    return result


def _check_values(target_values, n_rows: int) -> np.ndarray:
    try:
        target = np.asarray(target_values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise PreconditionViolation(f"continuous target must be numeric: {e}") from e
    if target.ndim == 0 or target.shape[0] != n_rows:
        raise PreconditionViolation(
            f"target must have {n_rows} entries, got shape {target.shape}"
        )
    if not np.isfinite(target).all():
        raise PreconditionViolation("continuous target has missing / non-finite values")
    return target


def fuse_general(
    feature_graph,
    target_values,
    params: FusionParams | None = None,
    ctx: ExecutionContext | None = None,
    fuzzy_config: FuzzySetConfig | None = None,
) -> SparseGraph:
    """
    Fuse a feature graph with continuous per-point targets.

    Pipeline: target kNN -> target fuzzy graph -> drop zeros -> union with
    power-mean blend -> drop zeros -> reset local connectivity.
    """
    params = (params if params is not None else FusionParams()).validate()
    ctx = default_context(ctx)
    graph = as_graph(feature_graph)
    n_rows = graph.n_rows

    if graph.nnz == 0:
        raise NumericDegenerate("cannot fuse an empty feature graph (nnz=0)")
    target = _check_values(target_values, n_rows)
    if not graph.is_row_sorted():
        raise PreconditionViolation("feature graph must be sorted by row")

    with resource_guard("general fusion buffers"):
        knn_indices, knn_dists = target_nearest_neighbors(
            target, params.target_n_neighbors, verbose=params.verbose
        )
        if params.verbose:
            print("[SupervisedFusion] target kNN graph", flush=True)
            print(np.array2string(knn_indices, threshold=50, prefix="knn_indices "), flush=True)
            print(np.array2string(knn_dists, threshold=50, prefix="knn_dists "), flush=True)

        target_graph = fuzzy_simplicial_set(
            n_rows, knn_indices, knn_dists, params.target_n_neighbors, fuzzy_config, ctx
        )
        target_graph = remove_explicit_zeros(target_graph)
        if params.verbose:
            print(f"[SupervisedFusion] target fuzzy simplicial set: {target_graph}", flush=True)
        if target_graph.nnz == 0:
            raise NumericDegenerate("target fuzzy graph has no edges")

        x_ind = sorted_to_row_index(graph, ctx)
        y_ind = sorted_to_row_index(target_graph, ctx)

        merged = general_simplicial_set_intersection(
            x_ind, graph, y_ind, target_graph, params.target_weights, ctx
        )
        merged = remove_explicit_zeros(merged)
        fused = reset_local_connectivity(merged, ctx)

    if params.verbose:
        print(
            f"[SupervisedFusion] general intersection: feature nnz={graph.nnz}, "
            f"target nnz={target_graph.nnz}, fused nnz={fused.nnz}, "
            f"mix_weight={params.target_weights:.3f}",
            flush=True,
        )
    return fused
