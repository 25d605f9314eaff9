# src/supmap/config.py
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Literal, Mapping

import yaml

from .errors import PreconditionViolation
from .parallel import ExecutionContext


TargetMetric = Literal["categorical", "continuous"]

# far_dist used when target_weights >= 1: different labels end up at weight 0
FAR_DIST_SATURATED = 1.0e12


def far_dist_from_target_weights(target_weights: float) -> float:
    if target_weights < 1.0:
        return 2.5 * (1.0 / (1.0 - target_weights))
    return FAR_DIST_SATURATED


@dataclass
class FusionParams:
    """
    Knobs of the supervised graph fusion.

    target_weights:
        categorical path: controls far_dist (0 -> mild penalty, 1 -> labels
        fully separate the graph). continuous path: the mix weight between
        feature graph (0) and target graph (1).
    target_n_neighbors:
        neighbour count for the target kNN graph (continuous path only).
    unknown_dist / far_dist:
        penalty exponents for unknown labels / differing labels.
        far_dist=None derives it from target_weights.
    """
    target_weights: float = 0.5
    target_n_neighbors: int = 15
    unknown_dist: float = 1.0
    far_dist: float | None = None
    verbose: bool = False

    def validate(self) -> "FusionParams":
        if not 0.0 <= self.target_weights <= 1.0:
            raise PreconditionViolation(
                f"target_weights must lie in [0, 1], got {self.target_weights}"
            )
        if self.target_n_neighbors < 2:
            raise PreconditionViolation(
                f"target_n_neighbors must be at least 2, got {self.target_n_neighbors}"
            )
        return self

    def resolve_far_dist(self) -> float:
        if self.far_dist is not None:
            return float(self.far_dist)
        return far_dist_from_target_weights(self.target_weights)


@dataclass
class FuzzySetConfig:
    local_connectivity: float = 1.0
    set_op_mix_ratio: float = 1.0   # 1.0 = pure fuzzy union, 0.0 = intersection
    n_iter: int = 64                # binary search steps for sigma
    bandwidth: float = 1.0


def _filter_fields(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Drop any keys not in the dataclass fields so extra params.yml keys
    don't crash construction.
    """
    valid = {f.name for f in fields(cls) if f.init}
    return {k: v for k, v in data.items() if k in valid}


def load_params(path: str | Path) -> Dict[str, Any]:
    with Path(path).open("r") as f:
        params = yaml.safe_load(f)
    return dict(params or {})


def fusion_params_from_params(
    params: Mapping[str, Any],
    key: str = "supervised_fusion",
) -> FusionParams:
    """
    Build FusionParams from a params.yml-style dict, applying dataclass
    defaults for anything not specified.
    """
    block = _filter_fields(FusionParams, dict(params.get(key, {}) or {}))
    return FusionParams(**block).validate()


def fuzzy_config_from_params(
    params: Mapping[str, Any],
    key: str = "target_fuzzy_set",
) -> FuzzySetConfig:
    block = _filter_fields(FuzzySetConfig, dict(params.get(key, {}) or {}))
    return FuzzySetConfig(**block)


def execution_context_from_params(
    params: Mapping[str, Any],
    key: str = "execution",
) -> ExecutionContext:
    block = _filter_fields(ExecutionContext, dict(params.get(key, {}) or {}))
    return ExecutionContext(**block)
