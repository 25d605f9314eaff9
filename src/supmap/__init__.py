# src/supmap/__init__.py
from __future__ import annotations

# Config
from .config import (
    FusionParams,
    FuzzySetConfig,
    execution_context_from_params,
    fusion_params_from_params,
    fuzzy_config_from_params,
    load_params,
)
from .errors import (
    FusionError,
    NumericDegenerate,
    PreconditionViolation,
    ResourceExhaustion,
)
from .parallel import ExecutionContext

# Graphs
from .graph import SparseGraph, as_graph
from .fuzzy import fuzzy_simplicial_set
from .neighbors import target_nearest_neighbors

# Fusion
from .supervised import (
    UNKNOWN_LABEL,
    SupervisedFusionEngine,
    fuse_categorical,
    fuse_general,
    reset_local_connectivity,
)
