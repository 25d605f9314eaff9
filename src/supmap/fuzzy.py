# src/supmap/fuzzy.py
"""
Fuzzy simplicial set construction from kNN lists.

For each point i a local fuzzy set is built with membership

    exp(-(d(i, j) - rho_i) / sigma_i)

where rho_i is the distance to the nearest (non-identical) neighbour and
sigma_i is found by binary search so the memberships sum to log2(k). The
local sets are then merged into one graph with a fuzzy set operation.
"""

from __future__ import annotations

from typing import Callable, Tuple

import numba
import numpy as np

from .config import FuzzySetConfig
from .errors import PreconditionViolation, resource_guard
from .graph import SparseGraph, remove_explicit_zeros, symmetrize
from .parallel import ExecutionContext, default_context

SMOOTH_K_TOLERANCE = 1e-5
MIN_K_DIST_SCALE = 1e-3


@numba.njit(nogil=True)
def _smooth_knn_dist_kernel(
    start, stop, distances, target, n_iter, local_connectivity,
    mean_distances, sigmas, rhos,
):
    for i in range(start, stop):
        lo = 0.0
        hi = np.inf
        mid = 1.0
        rho = 0.0

        ith_distances = distances[i]
        non_zero_dists = ith_distances[ith_distances > 0.0]
        if non_zero_dists.shape[0] >= local_connectivity:
            index = int(np.floor(local_connectivity))
            interpolation = local_connectivity - index
            if index > 0:
                rho = non_zero_dists[index - 1]
                if interpolation > SMOOTH_K_TOLERANCE:
                    rho += interpolation * (
                        non_zero_dists[index] - non_zero_dists[index - 1]
                    )
            else:
                rho = interpolation * non_zero_dists[0]
        elif non_zero_dists.shape[0] > 0:
            rho = np.max(non_zero_dists)

        for _ in range(n_iter):
            psum = 0.0
            # column 0 is the point itself
            for j in range(1, distances.shape[1]):
                d = distances[i, j] - rho
                if d > 0:
                    psum += np.exp(-(d / mid))
                else:
                    psum += 1.0

            if np.fabs(psum - target) < SMOOTH_K_TOLERANCE:
                break

            if psum > target:
                hi = mid
                mid = (lo + hi) / 2.0
            else:
                lo = mid
                if hi == np.inf:
                    mid *= 2
                else:
                    mid = (lo + hi) / 2.0

        sigma = mid
        if rho > 0.0:
            floor = MIN_K_DIST_SCALE * np.mean(ith_distances)
        else:
            floor = MIN_K_DIST_SCALE * mean_distances
        if sigma < floor:
            sigma = floor

        sigmas[i] = sigma
        rhos[i] = rho


@numba.njit(nogil=True)
def _membership_kernel(start, stop, knn_indices, knn_dists, sigmas, rhos, rows, cols, vals):
    n_neighbors = knn_indices.shape[1]
    for i in range(start, stop):
        for j in range(n_neighbors):
            pos = i * n_neighbors + j
            nbr = knn_indices[i, j]
            rows[pos] = i
            if nbr == -1:
                # incomplete kNN list; leave an explicit zero on the diagonal
                cols[pos] = i
                vals[pos] = 0.0
                continue

            cols[pos] = nbr
            if nbr == i:
                vals[pos] = 0.0
            elif knn_dists[i, j] - rhos[i] <= 0.0 or sigmas[i] == 0.0:
                vals[pos] = 1.0
            else:
                vals[pos] = np.exp(-((knn_dists[i, j] - rhos[i]) / sigmas[i]))


def smooth_knn_dist(
    distances: np.ndarray,
    k: float,
    ctx: ExecutionContext | None = None,
    n_iter: int = 64,
    local_connectivity: float = 1.0,
    bandwidth: float = 1.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per-point normalisation (sigma) and local connectivity offset (rho).

    distances: (n_points, k) sorted kNN distances, self in column 0.
    """
    ctx = default_context(ctx)
    distances = np.ascontiguousarray(distances, dtype=np.float32)
    n_points = distances.shape[0]
    target = np.log2(k) * bandwidth
    mean_distances = float(np.mean(distances)) if distances.size else 0.0

    with resource_guard(f"sigma / rho arrays of {n_points} points"):
        sigmas = np.zeros(n_points, dtype=np.float32)
        rhos = np.zeros(n_points, dtype=np.float32)
    ctx.parallel_for(
        n_points, _smooth_knn_dist_kernel, distances, float(target), int(n_iter),
        float(local_connectivity), mean_distances, sigmas, rhos,
    )
    return sigmas, rhos


def compute_membership_strengths(
    knn_indices: np.ndarray,
    knn_dists: np.ndarray,
    sigmas: np.ndarray,
    rhos: np.ndarray,
    ctx: ExecutionContext | None = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    ctx = default_context(ctx)
    knn_indices = np.ascontiguousarray(knn_indices, dtype=np.int64)
    knn_dists = np.ascontiguousarray(knn_dists, dtype=np.float32)
    n_points = knn_indices.shape[0]

    with resource_guard(f"membership graph of {knn_indices.size} edges"):
        rows = np.zeros(knn_indices.size, dtype=np.int64)
        cols = np.zeros(knn_indices.size, dtype=np.int64)
        vals = np.zeros(knn_indices.size, dtype=np.float32)
    ctx.parallel_for(
        n_points, _membership_kernel, knn_indices, knn_dists, sigmas, rhos,
        rows, cols, vals,
    )
    return rows, cols, vals


def set_operation(set_op_mix_ratio: float) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
    """
    Blend of fuzzy union (ratio 1) and fuzzy intersection (ratio 0),
    both under the product t-norm.
    """
    def combine(a, b):
        prod = a * b
        return set_op_mix_ratio * (a + b - prod) + (1.0 - set_op_mix_ratio) * prod

    return combine


def fuzzy_simplicial_set(
    n_points: int,
    knn_indices: np.ndarray,
    knn_dists: np.ndarray,
    n_neighbors: int,
    config: FuzzySetConfig | None = None,
    ctx: ExecutionContext | None = None,
) -> SparseGraph:
    """
    Build the global fuzzy graph of ``n_points`` from kNN lists.

    Returned graph is symmetric, row-sorted and free of explicit zeros
    (self loops carry weight 0 and are dropped).
    """
    config = config if config is not None else FuzzySetConfig()
    ctx = default_context(ctx)
    if knn_indices.shape != knn_dists.shape or knn_indices.shape[0] != n_points:
        raise PreconditionViolation(
            f"kNN arrays must both have shape ({n_points}, k), got "
            f"{knn_indices.shape} and {knn_dists.shape}"
        )

    sigmas, rhos = smooth_knn_dist(
        knn_dists,
        float(n_neighbors),
        ctx,
        n_iter=config.n_iter,
        local_connectivity=config.local_connectivity,
        bandwidth=config.bandwidth,
    )
    rows, cols, vals = compute_membership_strengths(knn_indices, knn_dists, sigmas, rhos, ctx)

    graph = remove_explicit_zeros(SparseGraph(rows, cols, vals, n_points))
    return symmetrize(graph, set_operation(config.set_op_mix_ratio), ctx)
