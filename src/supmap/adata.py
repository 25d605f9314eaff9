# src/supmap/adata.py
from __future__ import annotations

from typing import Tuple

import numpy as np
import pandas as pd
import scanpy as sc  # type: ignore

from .config import FusionParams, FuzzySetConfig, TargetMetric
from .errors import PreconditionViolation
from .graph import SparseGraph
from .parallel import ExecutionContext
from .supervised import UNKNOWN_LABEL, SupervisedFusionEngine


def target_from_obs(
    ad: sc.AnnData,
    key: str,
    target_metric: TargetMetric | None = None,
) -> Tuple[np.ndarray, str]:
    """
    Pull a supervision target out of ``ad.obs[key]``.

    - categorical / string / boolean columns -> integer codes, missing
      values mapped to UNKNOWN_LABEL
    - numeric columns -> float values (continuous)

    ``target_metric`` forces the interpretation.
    """
    if key not in ad.obs:
        raise PreconditionViolation(f"'{key}' not found in ad.obs")
    col = ad.obs[key]

    if target_metric is None:
        is_numeric = pd.api.types.is_numeric_dtype(col) and not pd.api.types.is_bool_dtype(col)
        target_metric = "continuous" if is_numeric else "categorical"

    if target_metric == "categorical":
        codes = pd.Categorical(col).codes.astype(np.int64)
        codes[codes < 0] = UNKNOWN_LABEL
        return codes, "categorical"
    if target_metric == "continuous":
        values = col.to_numpy(dtype=np.float64)
        if not np.isfinite(values).all():
            raise PreconditionViolation(
                f"ad.obs['{key}'] has missing / non-finite values; "
                "continuous targets must be complete"
            )
        return values, "continuous"
    raise ValueError(f"Unknown target_metric: {target_metric}")


def build_supervised_graph_from_config(
    ad: sc.AnnData,
    params: FusionParams,
    target_key: str,
    target_metric: TargetMetric | None = None,
    connectivities_key: str = "connectivities",
    out_key: str = "supervised_connectivities",
    fuzzy_config: FuzzySetConfig | None = None,
    ctx: ExecutionContext | None = None,
) -> sc.AnnData:
    """
    Fuse ad.obsp[connectivities_key] with ad.obs[target_key] and store the
    result (CSR) in ad.obsp[out_key].
    """
    if connectivities_key not in ad.obsp:
        if connectivities_key != "connectivities":
            raise PreconditionViolation(
                f"'{connectivities_key}' not found in ad.obsp. Run sc.pp.neighbors first."
            )
        # Lazily compute the default neighbour graph if missing
        print(
            "[AnnData] 'connectivities' not found in ad.obsp; "
            "computing neighbours in-memory",
            flush=True,
        )
        sc.pp.neighbors(ad)

    target, metric = target_from_obs(ad, target_key, target_metric)
    graph = SparseGraph.from_scipy(ad.obsp[connectivities_key])
    print(
        f"[AnnData] fusing '{connectivities_key}' (nnz={graph.nnz}) with "
        f"obs['{target_key}'] as {metric} target",
        flush=True,
    )

    engine = SupervisedFusionEngine(params, ctx=ctx, fuzzy_config=fuzzy_config)
    fused = engine.fuse(graph, target, target_metric=metric)

    ad.obsp[out_key] = fused.to_scipy().tocsr()
    return ad
