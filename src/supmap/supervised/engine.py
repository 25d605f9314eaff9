# src/supmap/supervised/engine.py

from typing import Callable, Dict

from ..config import FusionParams, FuzzySetConfig
from ..graph import SparseGraph
from ..parallel import ExecutionContext, default_context
from .categorical import fuse_categorical
from .general import fuse_general


class SupervisedFusionEngine:
    """
    - Holds fusion params, fuzzy-set config and the execution context
    - Dispatches to the categorical or continuous fusion path
    """

    def __init__(
        self,
        params: FusionParams | None = None,
        ctx: ExecutionContext | None = None,
        fuzzy_config: FuzzySetConfig | None = None,
    ):
        self.params = (params if params is not None else FusionParams()).validate()
        self.ctx = default_context(ctx)
        self.fuzzy_config = fuzzy_config if fuzzy_config is not None else FuzzySetConfig()

        self._paths: Dict[str, Callable] = {
            "categorical": self._fuse_categorical,
            "continuous": self._fuse_continuous,
        }

    def _fuse_categorical(self, graph, target) -> SparseGraph:
        return fuse_categorical(graph, target, self.params, self.ctx)

    def _fuse_continuous(self, graph, target) -> SparseGraph:
        return fuse_general(graph, target, self.params, self.ctx, self.fuzzy_config)

    def fuse(self, graph, target, target_metric: str = "categorical") -> SparseGraph:
        if target_metric not in self._paths:
            raise ValueError(f"Unknown target_metric: {target_metric}")
        if self.params.verbose:
            print(f"[SupervisedFusion] fusing with target_metric={target_metric}", flush=True)
        return self._paths[target_metric](graph, target)
