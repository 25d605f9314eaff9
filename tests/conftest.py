import numpy as np
import pytest

from supmap import SparseGraph


def make_graph(edges, n_rows, dtype=np.float64):
    """SparseGraph from a list of (row, col, weight) triples."""
    if edges:
        rows, cols, vals = zip(*edges)
    else:
        rows, cols, vals = (), (), ()
    return SparseGraph(
        np.array(rows, dtype=np.int64),
        np.array(cols, dtype=np.int64),
        np.array(vals, dtype=dtype),
        n_rows,
    )


def edge_set(graph):
    return set(zip(graph.rows.tolist(), graph.cols.tolist()))


@pytest.fixture
def graph_factory():
    return make_graph
