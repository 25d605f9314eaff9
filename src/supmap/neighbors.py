# src/supmap/neighbors.py
from __future__ import annotations

from typing import Tuple

import numpy as np
from sklearn.neighbors import NearestNeighbors

from .errors import PreconditionViolation


def target_nearest_neighbors(
    target: np.ndarray,
    n_neighbors: int,
    metric: str = "euclidean",
    verbose: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Exact kNN over the target values.

    Each point is its own first neighbour (distance 0), so the returned
    lists hold the point plus its n_neighbors - 1 closest others.
    Shapes: (n_points, n_neighbors) for both indices and distances.
    """
    y = np.asarray(target, dtype=np.float32)
    if y.ndim == 1:
        y = y.reshape(-1, 1)
    n_points = y.shape[0]
    if n_neighbors > n_points:
        raise PreconditionViolation(
            f"target_n_neighbors={n_neighbors} exceeds the number of points ({n_points})"
        )

    if verbose:
        print(
            f"[TargetKNN] building {n_neighbors}-NN graph over targets "
            f"with shape {y.shape} ({metric})",
            flush=True,
        )
    nn = NearestNeighbors(n_neighbors=n_neighbors, metric=metric)
    nn.fit(y)
    distances, indices = nn.kneighbors(y)
    return indices.astype(np.int64), distances.astype(np.float32)
