"""Tests for classical-scaling embedding."""

import warnings

import numpy as np
import pytest

from dgembed.embedding import (
    Embedder, ScalingMethod, distance_matrix, radius_of_gyration,
    radius_of_gyration_from_distances,
)
from dgembed.errors import DegenerateEmbeddingWarning


@pytest.fixture
def random_coords():
    rng = np.random.default_rng(42)
    return rng.normal(scale=6.0, size=(20, 3))


@pytest.fixture
def chain_coords():
    """Non-planar 8-residue chain with 3.8 Å steps."""
    rng = np.random.default_rng(3)
    steps = rng.normal(size=(7, 3))
    steps = 3.8 * steps / np.linalg.norm(steps, axis=1, keepdims=True)
    return np.vstack([np.zeros(3), np.cumsum(steps, axis=0)])


# ═══════════════════════════════════════════════════════════════════
# Geometry helpers
# ═══════════════════════════════════════════════════════════════════

class TestGeometry:

    def test_distance_matrix(self):
        d = distance_matrix(np.array([[0.0, 0, 0], [3, 4, 0]]))
        np.testing.assert_allclose(d, [[0, 5], [5, 0]])

    def test_distance_matrix_single_point(self):
        assert distance_matrix(np.zeros((1, 3))).shape == (1, 1)

    def test_radius_of_gyration_agrees(self, random_coords):
        d = distance_matrix(random_coords)
        assert radius_of_gyration_from_distances(d) == pytest.approx(
            radius_of_gyration(random_coords))

    def test_radius_of_gyration_translation_invariant(self, random_coords):
        assert radius_of_gyration(random_coords + 100.0) == pytest.approx(
            radius_of_gyration(random_coords))


# ═══════════════════════════════════════════════════════════════════
# Embedder
# ═══════════════════════════════════════════════════════════════════

class TestEmbedderValidation:

    def test_non_square(self):
        with pytest.raises(ValueError):
            Embedder(np.zeros((2, 3)))

    def test_asymmetric(self):
        with pytest.raises(ValueError):
            Embedder(np.array([[0.0, 1.0], [2.0, 0.0]]))

    def test_nonzero_diagonal(self):
        with pytest.raises(ValueError):
            Embedder(np.array([[1.0, 1.0], [1.0, 0.0]]))

    def test_scaling_from_string(self, random_coords):
        emb = Embedder(distance_matrix(random_coords)).embed("ca")
        assert emb.coords.shape == (20, 3)


class TestEmbeddingInvariance:

    def test_reproduces_pairwise_distances(self, random_coords):
        d = distance_matrix(random_coords)
        emb = Embedder(d).embed(ScalingMethod.RADIUS_OF_GYRATION)
        np.testing.assert_allclose(emb.distances(), d, atol=1e-6)
        assert emb.scale == pytest.approx(1.0)
        assert not emb.degenerate

    def test_centred_at_origin(self, random_coords):
        emb = Embedder(distance_matrix(random_coords)).embed()
        np.testing.assert_allclose(emb.coords.mean(axis=0), 0.0, atol=1e-9)

    def test_eigenvalues_descending(self, random_coords):
        emb = Embedder(distance_matrix(random_coords)).embed()
        assert np.all(np.diff(emb.eigenvalues) <= 1e-9)
        # rank 3: everything past the third eigenvalue is numerically zero
        assert np.all(np.abs(emb.eigenvalues[3:]) < 1e-6 * emb.eigenvalues[0])

    def test_planar_input(self):
        square = np.array([[0.0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]])
        d = distance_matrix(square)
        emb = Embedder(d).embed()
        np.testing.assert_allclose(emb.distances(), d, atol=1e-9)
        assert np.all(np.isfinite(emb.coords))


class TestScaling:

    def test_target_radius(self, random_coords):
        emb = Embedder(distance_matrix(random_coords)).embed(target_radius=5.0)
        assert radius_of_gyration(emb.coords) == pytest.approx(5.0)

    def test_average_ca_distance(self, chain_coords):
        emb = Embedder(distance_matrix(chain_coords)).embed(
            ScalingMethod.AVERAGE_CA_DISTANCE)
        steps = np.linalg.norm(np.diff(emb.coords, axis=0), axis=1)
        assert steps.mean() == pytest.approx(3.8)
        np.testing.assert_allclose(steps, 3.8, atol=1e-6)

    def test_collapsed_input_not_rescaled(self):
        with pytest.warns(DegenerateEmbeddingWarning):
            emb = Embedder(np.zeros((3, 3))).embed()
        assert emb.scale == 1.0
        np.testing.assert_allclose(emb.coords, 0.0)


class TestDegenerate:

    def test_non_euclidean_input_warns(self):
        # hub at 1 from three leaves that sit 2 apart: metric but not Euclidean
        d = np.array([[0.0, 1, 1, 1],
                      [1, 0, 2, 2],
                      [1, 2, 0, 2],
                      [1, 2, 2, 0]])
        with pytest.warns(DegenerateEmbeddingWarning):
            emb = Embedder(d).embed()
        assert emb.degenerate
        assert emb.negative_fraction > 0.05
        assert np.all(np.isfinite(emb.coords))

    def test_euclidean_input_silent(self, random_coords):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DegenerateEmbeddingWarning)
            emb = Embedder(distance_matrix(random_coords)).embed()
        assert emb.negative_fraction < 1e-9
