# src/supmap/supervised/__init__.py
"""
Supervised graph fusion.

  - connectivity: local connectivity reset (row max-normalise + fuzzy union)
  - categorical:  label-penalty fusion for categorical targets
  - general:      structural-union fusion for continuous targets
  - engine:       SupervisedFusionEngine dispatching between the two
"""

from __future__ import annotations

from ..config import far_dist_from_target_weights
from .connectivity import fuzzy_union, reset_local_connectivity
from .categorical import (
    UNKNOWN_LABEL,
    categorical_simplicial_set_intersection,
    fuse_categorical,
)
from .general import (
    fuse_general,
    general_simplicial_set_intersection,
    power_mean_blend,
)
from .engine import SupervisedFusionEngine
