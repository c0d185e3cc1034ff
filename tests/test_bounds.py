"""Tests for Bound, BoundsMatrix and DenseBounds."""

import numpy as np
import pytest

from dgembed.bounds import Bound, BoundsMatrix, DenseBounds, ViolationCounts
from dgembed.errors import MatrixIndexError, MatrixShapeError


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════

@pytest.fixture
def chain_bounds():
    """5-point chain with backbone restraints and one long-range contact."""
    b = BoundsMatrix(5).add_backbone(3.8)
    b.set(0, 4, (2.8, 8.0))
    return b


# ═══════════════════════════════════════════════════════════════════
# Bound
# ═══════════════════════════════════════════════════════════════════

class TestBound:

    def test_exact(self):
        b = Bound.exact(3.8)
        assert b.is_exact
        assert b.width == 0.0

    def test_width_and_contains(self):
        b = Bound(2.0, 5.0)
        assert b.width == 3.0
        assert b.contains(2.0)
        assert b.contains(5.0)
        assert not b.contains(5.1)
        assert b.contains(5.1, tol=0.2)

    def test_lower_above_upper_rejected(self):
        with pytest.raises(ValueError):
            Bound(5.0, 4.0)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            Bound(-1.0, 4.0)

    @pytest.mark.parametrize("lower, upper", [
        (float("nan"), float("nan")),
        (1.0, float("nan")),
        (1.0, float("inf")),
    ])
    def test_non_finite_rejected(self, lower, upper):
        with pytest.raises(ValueError, match="finite"):
            Bound(lower, upper)

    def test_nan_tuple_rejected_by_matrix(self):
        with pytest.raises(ValueError):
            BoundsMatrix(3).set(0, 2, (float("nan"), 4.0))

    def test_frozen(self):
        b = Bound(1.0, 2.0)
        with pytest.raises(AttributeError):
            b.lower = 0.5

    def test_str(self):
        assert str(Bound(1.0, 2.5)) == "[1.00, 2.50]"


class TestViolationCounts:

    def test_total_and_add(self):
        v = ViolationCounts(1, 2) + ViolationCounts(3, 4)
        assert v == ViolationCounts(4, 6)
        assert v.total == 10


# ═══════════════════════════════════════════════════════════════════
# BoundsMatrix
# ═══════════════════════════════════════════════════════════════════

class TestBoundsMatrix:

    def test_symmetric_storage(self):
        b = BoundsMatrix(4)
        b.set(3, 1, Bound(2.0, 6.0))
        assert b.get(1, 3) == Bound(2.0, 6.0)
        assert b[3, 1] == b[1, 3]
        assert (1, 3) in b and (3, 1) in b
        assert b.pairs() == [(1, 3)]

    def test_absent_pair(self):
        b = BoundsMatrix(4)
        assert b.get(0, 2) is None
        with pytest.raises(KeyError):
            _ = b[0, 2]

    def test_diagonal_and_range_errors(self):
        b = BoundsMatrix(4)
        with pytest.raises(MatrixIndexError):
            b.set(2, 2, (0.0, 1.0))
        with pytest.raises(MatrixIndexError):
            b.get(0, 4)
        with pytest.raises(MatrixShapeError):
            BoundsMatrix(0)

    def test_tuple_is_validated(self):
        with pytest.raises(ValueError):
            BoundsMatrix(3).set(0, 2, (4.0, 1.0))

    def test_add_backbone(self):
        b = BoundsMatrix(4).add_backbone(3.8)
        assert len(b) == 3
        for i in range(3):
            assert b[i, i + 1] == Bound.exact(3.8)

    def test_copy_is_independent(self, chain_bounds):
        c = chain_bounds.copy()
        c.remove(0, 4)
        assert (0, 4) in chain_bounds
        assert (0, 4) not in c

    def test_max_upper(self, chain_bounds):
        assert chain_bounds.max_upper() == 8.0
        assert BoundsMatrix(3).max_upper() == 0.0

    def test_sparse_overlays(self, chain_bounds):
        lower = chain_bounds.lower_matrix()
        upper = chain_bounds.upper_matrix()
        contacts = chain_bounds.contact_matrix()
        assert lower.is_symmetric() and upper.is_symmetric()
        assert lower[4, 0] == 2.8
        assert upper[0, 4] == 8.0
        assert contacts.nnz == 2 * len(chain_bounds)
        # paths of length 2 through the contact graph
        assert contacts.pow(2)[0, 2] == 1.0

    def test_to_arrays(self, chain_bounds):
        lower, upper = chain_bounds.to_arrays()
        assert lower[0, 0] == 0.0
        assert np.isnan(lower[0, 2])
        assert upper[4, 0] == 8.0
        np.testing.assert_array_equal(np.isnan(lower), np.isnan(lower.T))

    def test_count_violations(self, chain_bounds):
        coords = np.array([[3.8 * i, 0.0, 0.0] for i in range(5)])
        d = np.linalg.norm(coords[:, None] - coords[None], axis=-1)
        counts = chain_bounds.count_violations(d, tol=1e-9)
        # straight chain: end-to-end 15.2 Å exceeds the 8 Å contact
        assert counts == ViolationCounts(lower=0, upper=1)

    def test_count_violations_empty(self):
        assert BoundsMatrix(3).count_violations(np.zeros((3, 3))).total == 0


# ═══════════════════════════════════════════════════════════════════
# DenseBounds
# ═══════════════════════════════════════════════════════════════════

class TestDenseBounds:

    def test_shape_validation(self):
        with pytest.raises(MatrixShapeError):
            DenseBounds(np.zeros((2, 3)), np.zeros((2, 3)))
        with pytest.raises(MatrixShapeError):
            DenseBounds(np.zeros((2, 2)), np.zeros((3, 3)))

    def test_getitem_and_copy(self):
        L = np.array([[0.0, 1.0], [1.0, 0.0]])
        U = np.array([[0.0, 2.0], [2.0, 0.0]])
        dense = DenseBounds(L, U)
        assert dense[0, 1] == Bound(1.0, 2.0)
        c = dense.copy()
        c.upper[0, 1] = 5.0
        assert dense.upper[0, 1] == 2.0

    def test_triangle_violations(self):
        U = np.array([[0.0, 1.0, 5.0],
                      [1.0, 0.0, 1.0],
                      [5.0, 1.0, 0.0]])
        bad = DenseBounds(np.zeros((3, 3)), U)
        # u_02 = 5 > u_01 + u_12 = 2, counted for (0,2) and (2,0)
        assert bad.triangle_violations() == 2
        U[0, 2] = U[2, 0] = 2.0
        assert DenseBounds(np.zeros((3, 3)), U).triangle_violations() == 0

    def test_count_violations_and_width(self):
        L = np.full((3, 3), 1.0)
        U = np.full((3, 3), 2.0)
        np.fill_diagonal(L, 0.0)
        np.fill_diagonal(U, 0.0)
        dense = DenseBounds(L, U)
        d = np.array([[0.0, 0.5, 1.5],
                      [0.5, 0.0, 3.0],
                      [1.5, 3.0, 0.0]])
        assert dense.count_violations(d) == ViolationCounts(lower=1, upper=1)
        assert dense.mean_width() == pytest.approx(1.0)

    def test_to_bounds_matrix(self):
        L = np.array([[0.0, 1.0], [1.0, 0.0]])
        dense = DenseBounds(L, 2 * L)
        sparse = dense.to_bounds_matrix()
        assert len(sparse) == 1
        assert sparse[0, 1] == Bound(1.0, 2.0)
