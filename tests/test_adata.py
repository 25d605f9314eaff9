"""
Tests for the AnnData integration
"""

import anndata
import numpy as np
import pandas as pd
import pytest
from sklearn.neighbors import kneighbors_graph

from supmap import FusionParams, PreconditionViolation, UNKNOWN_LABEL
from supmap.adata import build_supervised_graph_from_config, target_from_obs


def _adata(n=30):
    rng = np.random.RandomState(0)
    X = rng.normal(size=(n, 4)).astype(np.float32)
    labels = list(rng.choice(["a", "b", "c"], size=n))
    labels[0] = None
    obs = pd.DataFrame(
        {
            "cell_type": pd.Categorical(labels),
            "time": rng.uniform(0.0, 5.0, size=n),
        },
        index=[f"cell{i}" for i in range(n)],
    )
    adata = anndata.AnnData(X=X, obs=obs)
    W = kneighbors_graph(X, 5, mode="connectivity")
    adata.obsp["connectivities"] = ((W + W.T) * 0.5).tocsr()
    return adata


class TestTargetFromObs:
    def test_categorical_codes(self):
        adata = _adata()
        codes, metric = target_from_obs(adata, "cell_type")
        assert metric == "categorical"
        assert codes[0] == UNKNOWN_LABEL
        assert set(codes[1:].tolist()) <= {0, 1, 2}

    def test_numeric_is_continuous(self):
        adata = _adata()
        values, metric = target_from_obs(adata, "time")
        assert metric == "continuous"
        np.testing.assert_allclose(values, adata.obs["time"].to_numpy())

    def test_forced_categorical(self):
        adata = _adata()
        codes, metric = target_from_obs(adata, "time", target_metric="categorical")
        assert metric == "categorical"
        assert codes.min() >= 0

    def test_missing_key(self):
        with pytest.raises(PreconditionViolation):
            target_from_obs(_adata(), "batch")


class TestBuildSupervisedGraph:
    @pytest.mark.parametrize("key", ["cell_type", "time"])
    def test_fused_graph_stored(self, key):
        adata = _adata()
        params = FusionParams(target_weights=0.5, target_n_neighbors=5)
        adata = build_supervised_graph_from_config(adata, params, target_key=key)

        fused = adata.obsp["supervised_connectivities"]
        assert fused.shape == (adata.n_obs, adata.n_obs)
        dense = fused.toarray()
        np.testing.assert_allclose(dense, dense.T, atol=1e-6)
        assert dense.max() <= 1.0 + 1e-6

    def test_missing_custom_graph(self):
        with pytest.raises(PreconditionViolation):
            build_supervised_graph_from_config(
                _adata(), FusionParams(), target_key="cell_type",
                connectivities_key="rna_connectivities",
            )
