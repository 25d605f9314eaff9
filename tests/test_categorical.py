"""
Tests for the categorical label fusion
"""

import numpy as np
import pytest

from supmap import (
    ExecutionContext,
    FusionParams,
    NumericDegenerate,
    PreconditionViolation,
    fuse_categorical,
)
from supmap.supervised import (
    UNKNOWN_LABEL,
    categorical_simplicial_set_intersection,
    far_dist_from_target_weights,
)

from conftest import edge_set, make_graph


def _pair_graph():
    return make_graph([(0, 1, 0.8), (1, 0, 0.8)], 2)


class TestFarDist:
    def test_derived_from_target_weights(self):
        assert far_dist_from_target_weights(0.0) == pytest.approx(2.5)
        assert far_dist_from_target_weights(0.5) == pytest.approx(5.0)
        assert far_dist_from_target_weights(0.9) == pytest.approx(25.0)

    def test_saturates_at_one(self):
        assert far_dist_from_target_weights(1.0) == 1.0e12

    def test_params_resolution(self):
        assert FusionParams(target_weights=0.5).resolve_far_dist() == pytest.approx(5.0)
        assert FusionParams(target_weights=0.5, far_dist=3.0).resolve_far_dist() == 3.0


class TestCategoricalPenalty:
    def test_same_label_unchanged(self):
        out = categorical_simplicial_set_intersection(_pair_graph(), np.array([3, 3]))
        np.testing.assert_allclose(out.vals, [0.8, 0.8])

    def test_different_labels(self):
        out = categorical_simplicial_set_intersection(
            _pair_graph(), np.array([0, 1]), far_dist=5.0
        )
        np.testing.assert_allclose(out.vals, 0.8 * np.exp(-5.0))

    def test_unknown_label(self):
        out = categorical_simplicial_set_intersection(
            _pair_graph(), np.array([UNKNOWN_LABEL, 1]), far_dist=5.0, unknown_dist=1.0
        )
        np.testing.assert_allclose(out.vals, 0.8 * np.exp(-1.0))

    def test_unknown_wins_over_different(self):
        out = categorical_simplicial_set_intersection(
            _pair_graph(), np.array([UNKNOWN_LABEL, UNKNOWN_LABEL]), unknown_dist=2.0
        )
        np.testing.assert_allclose(out.vals, 0.8 * np.exp(-2.0))

    def test_input_not_modified(self):
        g = _pair_graph()
        categorical_simplicial_set_intersection(g, np.array([0, 1]))
        np.testing.assert_allclose(g.vals, [0.8, 0.8])

    def test_wrong_target_length(self):
        with pytest.raises(PreconditionViolation):
            categorical_simplicial_set_intersection(_pair_graph(), np.array([0, 1, 2]))

    def test_three_point_penalty(self):
        g = make_graph([(0, 1, 0.8), (1, 2, 0.6)], 3)
        out = categorical_simplicial_set_intersection(g, np.array([0, 0, 1]), far_dist=5.0)
        assert out.vals[0] == pytest.approx(0.8)
        assert out.vals[1] == pytest.approx(0.00404277, rel=1e-4)


class TestFuseCategorical:
    def test_three_point_example(self):
        g = make_graph([(0, 1, 0.8), (1, 2, 0.6)], 3)
        fused = fuse_categorical(g, np.array([0, 0, 1]), FusionParams(target_weights=0.5))

        # the penalised edge survives and is renormalised within its row
        expected = np.array([
            [0.0, 1.0, 0.0],
            [1.0, 0.0, 1.0],
            [0.0, 1.0, 0.0],
        ])
        np.testing.assert_allclose(fused.to_scipy().toarray(), expected)
        assert fused.is_row_sorted()

    def test_full_target_weight_cuts_label_boundaries(self):
        g = make_graph(
            [(0, 1, 0.8), (1, 0, 0.8), (1, 2, 0.6), (2, 1, 0.6)], 3
        )
        fused = fuse_categorical(g, np.array([0, 0, 1]), FusionParams(target_weights=1.0))
        assert edge_set(fused) == {(0, 1), (1, 0)}
        np.testing.assert_allclose(fused.vals, [1.0, 1.0])

    def test_result_is_symmetric_and_normalised(self):
        rng = np.random.RandomState(0)
        edges = []
        for i in range(12):
            for j in rng.choice(12, size=3, replace=False):
                if i != j:
                    edges.append((i, int(j), float(rng.uniform(0.1, 1.0))))
        g = make_graph(edges, 12)
        labels = rng.randint(-1, 3, size=12)

        fused = fuse_categorical(g, labels, FusionParams(target_weights=0.3))
        dense = fused.to_scipy().toarray()
        np.testing.assert_allclose(dense, dense.T)
        assert dense.max() <= 1.0 + 1e-6
        for row in dense:
            if row.any():
                assert row.max() == pytest.approx(1.0, abs=1e-6)

    def test_accepts_scipy_matrix(self):
        g = make_graph([(0, 1, 0.8), (1, 0, 0.8)], 2)
        fused = fuse_categorical(g.to_scipy().tocsr(), np.array([1, 1]))
        np.testing.assert_allclose(fused.vals, [1.0, 1.0])

    def test_batch_layout_invariance(self):
        g = make_graph([(0, 1, 0.8), (1, 2, 0.6), (2, 0, 0.3), (3, 1, 0.9)], 4)
        labels = np.array([0, 1, 1, UNKNOWN_LABEL])
        a = fuse_categorical(g, labels, ctx=ExecutionContext(batch_size=1))
        b = fuse_categorical(g, labels, ctx=ExecutionContext(batch_size=3, n_jobs=2))
        assert a.rows.tolist() == b.rows.tolist()
        assert a.cols.tolist() == b.cols.tolist()
        np.testing.assert_allclose(a.vals, b.vals)

    def test_empty_graph(self):
        g = make_graph([], 3)
        with pytest.raises(NumericDegenerate):
            fuse_categorical(g, np.array([0, 1, 2]))

    def test_wrong_target_length(self):
        with pytest.raises(PreconditionViolation):
            fuse_categorical(_pair_graph(), np.array([0]))

    def test_string_labels_rejected(self):
        with pytest.raises(PreconditionViolation):
            fuse_categorical(_pair_graph(), np.array(["a", "b"]))
        with pytest.raises(PreconditionViolation):
            categorical_simplicial_set_intersection(_pair_graph(), np.array(["a", "b"], dtype=object))

    def test_unsorted_graph(self):
        g = make_graph([(1, 0, 0.8), (0, 1, 0.8)], 2)
        with pytest.raises(PreconditionViolation):
            fuse_categorical(g, np.array([0, 0]))

    def test_target_weights_out_of_range(self):
        with pytest.raises(PreconditionViolation):
            fuse_categorical(_pair_graph(), np.array([0, 0]), FusionParams(target_weights=1.5))

    def test_verbose_logging(self, capsys):
        fuse_categorical(_pair_graph(), np.array([0, 1]), FusionParams(verbose=True))
        out = capsys.readouterr().out
        assert "[SupervisedFusion]" in out
