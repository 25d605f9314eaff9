# src/supmap/graph/__init__.py
"""
Sparse graph storage and primitives.

  - coo:    SparseGraph (coordinate-list form) and scipy interchange
  - ops:    row offsets, L-inf row normalisation, zero compaction,
            min reduction, symmetrisation
  - union:  two-pass structural union and per-position value gathering
"""

from __future__ import annotations

from .coo import SparseGraph, as_graph
from .ops import (
    min_weight,
    remove_explicit_zeros,
    row_index_to_rows,
    row_normalize_max,
    sorted_to_row_index,
    symmetrize,
)
from .union import (
    gather_union_values,
    structural_union,
    structural_union_count,
    structural_union_populate,
)
