# src/supmap/graph/coo.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import sparse

from ..errors import PreconditionViolation, resource_guard


@dataclass
class SparseGraph:
    """
    Square weighted graph in coordinate-list form.

    rows / cols are int64 arrays of equal length; vals holds the edge
    weights. A weight of exactly 0 means "no edge" and may be compacted
    away. Most stages expect the triples ordered by row.
    """
    rows: np.ndarray      # [nnz]
    cols: np.ndarray      # [nnz]
    vals: np.ndarray      # [nnz]
    n_rows: int

    def __post_init__(self):
        self.rows = np.asarray(self.rows, dtype=np.int64)
        self.cols = np.asarray(self.cols, dtype=np.int64)
        self.vals = np.asarray(self.vals)
        if not np.issubdtype(self.vals.dtype, np.floating):
            self.vals = self.vals.astype(np.float32)
        self.n_rows = int(self.n_rows)

        if not (self.rows.shape == self.cols.shape == self.vals.shape):
            raise PreconditionViolation(
                "rows, cols and vals must have the same length, got "
                f"{self.rows.shape}, {self.cols.shape}, {self.vals.shape}"
            )
        if self.rows.ndim != 1:
            raise PreconditionViolation("coordinate arrays must be 1-D")
        if self.nnz > 0:
            lo = min(self.rows.min(), self.cols.min())
            hi = max(self.rows.max(), self.cols.max())
            if lo < 0 or hi >= self.n_rows:
                raise PreconditionViolation(
                    f"edge index out of range [0, {self.n_rows}): min={lo}, max={hi}"
                )

    @property
    def nnz(self) -> int:
        return int(self.vals.shape[0])

    @property
    def dtype(self):
        return self.vals.dtype

    @classmethod
    def allocate(cls, nnz: int, n_rows: int, dtype=np.float32) -> "SparseGraph":
        with resource_guard(f"graph with {nnz} non-zeros"):
            rows = np.zeros(nnz, dtype=np.int64)
            cols = np.zeros(nnz, dtype=np.int64)
            vals = np.zeros(nnz, dtype=dtype)
        return cls(rows, cols, vals, n_rows)

    @classmethod
    def from_scipy(cls, matrix) -> "SparseGraph":
        """
        Canonical graph (row-sorted, column-sorted within each row,
        duplicates summed) from any scipy sparse matrix.
        """
        if matrix.shape[0] != matrix.shape[1]:
            raise PreconditionViolation(
                f"graph matrix must be square, got shape {matrix.shape}"
            )
        csr = sparse.csr_matrix(matrix, copy=True)
        csr.sum_duplicates()
        csr.sort_indices()
        coo = csr.tocoo()
        return cls(coo.row, coo.col, coo.data, matrix.shape[0])

    def to_scipy(self) -> sparse.coo_matrix:
        return sparse.coo_matrix(
            (self.vals, (self.rows, self.cols)),
            shape=(self.n_rows, self.n_rows),
        )

    def copy(self) -> "SparseGraph":
        return SparseGraph(
            self.rows.copy(), self.cols.copy(), self.vals.copy(), self.n_rows
        )

    def is_row_sorted(self) -> bool:
        return bool(np.all(self.rows[1:] >= self.rows[:-1]))

    def transpose(self) -> "SparseGraph":
        """Transpose, ordered by row and then by column."""
        order = np.lexsort((self.rows, self.cols))
        return SparseGraph(
            self.cols[order], self.rows[order], self.vals[order], self.n_rows
        )

    def __repr__(self) -> str:
        return (
            f"SparseGraph(n_rows={self.n_rows}, nnz={self.nnz}, "
            f"dtype={self.vals.dtype})"
        )


def as_graph(obj) -> SparseGraph:
    if isinstance(obj, SparseGraph):
        return obj
    if sparse.issparse(obj):
        return SparseGraph.from_scipy(obj)
    raise TypeError(
        f"expected a SparseGraph or scipy sparse matrix, got {type(obj).__name__}"
    )
