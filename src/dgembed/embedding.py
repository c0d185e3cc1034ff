"""Classical scaling: distance matrix → 3-D coordinates.

Pipeline
--------
1. Square the distances, D².
2. Double-centre: ``B = −½ J D² J`` with ``J = I − 𝟙𝟙ᵀ/n``; B is the Gram
   matrix of the points about their centroid.
3. ``np.linalg.eigh(B)``; keep the 3 largest eigenpairs, negative
   eigenvalues clamped to 0, and set ``X_k = √λ_k · v_k``.
4. Rescale by the chosen :class:`ScalingMethod`.

A distance matrix that is far from Euclidean shows up as negative
eigenvalue mass.  Above ``embedding.negative_mass_tolerance`` the
embedding is flagged ``degenerate`` and a
:class:`~dgembed.errors.DegenerateEmbeddingWarning` is issued; the clamped
coordinates are still returned.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np
from scipy.spatial.distance import pdist, squareform

from .errors import DegenerateEmbeddingWarning
from .parameters import DEFAULT_PARAMETERS, ParameterRegistry

__all__ = [
    "ScalingMethod",
    "Embedding",
    "Embedder",
    "distance_matrix",
    "radius_of_gyration",
    "radius_of_gyration_from_distances",
]

DIMENSIONS = 3


class ScalingMethod(str, Enum):
    """How embedded coordinates are rescaled."""

    RADIUS_OF_GYRATION = "rg"
    AVERAGE_CA_DISTANCE = "ca"


# ── geometry helpers ────────────────────────────────────────────

def distance_matrix(coords: np.ndarray) -> np.ndarray:
    """All-pairs Euclidean distances of an ``(n, d)`` point set."""
    coords = np.asarray(coords, dtype=float)
    if len(coords) < 2:
        return np.zeros((len(coords), len(coords)))
    return squareform(pdist(coords))


def radius_of_gyration(coords: np.ndarray) -> float:
    """√(mean squared distance to the centroid)."""
    coords = np.asarray(coords, dtype=float)
    centred = coords - coords.mean(axis=0)
    return float(np.sqrt(np.mean(np.sum(centred ** 2, axis=1))))


def radius_of_gyration_from_distances(distances: np.ndarray) -> float:
    """Radius of gyration implied by a distance matrix.

    Uses ``Rg² = Σ_{i<j} d_ij² / n²``, which equals the coordinate
    definition whenever the distances are Euclidean.
    """
    D = np.asarray(distances, dtype=float)
    n = D.shape[0]
    if n == 0:
        return 0.0
    return float(np.sqrt(np.sum(np.triu(D, k=1) ** 2) / n ** 2))


# ═══════════════════════════════════════════════════════════════════
# Embedding result
# ═══════════════════════════════════════════════════════════════════

@dataclass
class Embedding:
    """Coordinates produced by :meth:`Embedder.embed`.

    Attributes
    ----------
    coords : ndarray, shape (n, 3)
    eigenvalues : ndarray, shape (n,)
        All Gram-matrix eigenvalues, descending, before clamping.
    negative_fraction : float
        ``Σ|λ<0| / Σ|λ|``.
    degenerate : bool
        True when *negative_fraction* exceeded the tolerance.
    scale : float
        Factor applied by the scaling policy.
    """

    coords: np.ndarray
    eigenvalues: np.ndarray
    negative_fraction: float
    degenerate: bool
    scale: float

    @property
    def n(self) -> int:
        return len(self.coords)

    def distances(self) -> np.ndarray:
        return distance_matrix(self.coords)


# ═══════════════════════════════════════════════════════════════════
# Embedder
# ═══════════════════════════════════════════════════════════════════

class Embedder:
    """Classical-scaling embedder for one dense distance matrix.

    Parameters
    ----------
    distances : ndarray, shape (n, n)
        Symmetric, non-negative, zero diagonal.
    parameters : ParameterRegistry, optional

    Raises
    ------
    ValueError
        If *distances* is not a symmetric square matrix with zero diagonal.
    """

    def __init__(self, distances: np.ndarray,
                 parameters: Optional[ParameterRegistry] = None):
        D = np.array(distances, dtype=float)
        if D.ndim != 2 or D.shape[0] != D.shape[1]:
            raise ValueError(f"Distance matrix must be square, got {D.shape}")
        if D.shape[0] == 0:
            raise ValueError("Distance matrix is empty")
        if not np.allclose(D, D.T):
            raise ValueError("Distance matrix must be symmetric")
        if np.any(np.diag(D) != 0):
            raise ValueError("Distance matrix must have a zero diagonal")
        if np.any(D < 0):
            raise ValueError("Distances must be non-negative")
        self.distances = D
        self._params = parameters or DEFAULT_PARAMETERS

    @property
    def n(self) -> int:
        return self.distances.shape[0]

    def gram_matrix(self) -> np.ndarray:
        """Double-centred squared distances ``−½ J D² J``."""
        n = self.n
        J = np.eye(n) - np.ones((n, n)) / n
        B = -0.5 * J @ (self.distances ** 2) @ J
        return (B + B.T) / 2

    def embed(
        self,
        scaling: Union[ScalingMethod, str] = ScalingMethod.RADIUS_OF_GYRATION,
        target_radius: Optional[float] = None,
    ) -> Embedding:
        """Embed in 3-D and rescale.

        Parameters
        ----------
        scaling : ScalingMethod or str
            ``RADIUS_OF_GYRATION`` matches *target_radius* (default: the
            radius implied by the input distances); ``AVERAGE_CA_DISTANCE``
            matches the mean consecutive distance to the backbone spacing.
        target_radius : float, optional

        Returns
        -------
        Embedding
        """
        scaling = ScalingMethod(scaling)
        eigvals, eigvecs = np.linalg.eigh(self.gram_matrix())
        order = np.argsort(eigvals)[::-1]
        eigvals, eigvecs = eigvals[order], eigvecs[:, order]

        total = float(np.sum(np.abs(eigvals)))
        negative = float(-np.sum(eigvals[eigvals < 0]))
        negative_fraction = negative / total if total > 0 else 0.0
        tolerance = self._params["embedding.negative_mass_tolerance"]
        degenerate = negative_fraction > tolerance
        if degenerate:
            warnings.warn(
                f"Distance matrix is far from Euclidean: {negative_fraction:.1%} "
                f"of eigenvalue mass is negative (tolerance {tolerance:.1%})",
                DegenerateEmbeddingWarning,
                stacklevel=2,
            )

        k = min(DIMENSIONS, self.n)
        coords = np.zeros((self.n, DIMENSIONS))
        coords[:, :k] = eigvecs[:, :k] * np.sqrt(np.clip(eigvals[:k], 0.0, None))

        scale = self._scale_factor(coords, scaling, target_radius)
        return Embedding(coords * scale, eigvals, negative_fraction, degenerate, scale)

    def _scale_factor(self, coords: np.ndarray, scaling: ScalingMethod,
                      target_radius: Optional[float]) -> float:
        if scaling is ScalingMethod.RADIUS_OF_GYRATION:
            target = (target_radius if target_radius is not None
                      else radius_of_gyration_from_distances(self.distances))
            measured = radius_of_gyration(coords)
        else:
            target = self._params["backbone.ca_distance"]
            steps = np.linalg.norm(np.diff(coords, axis=0), axis=1)
            measured = float(steps.mean()) if len(steps) else 0.0

        if measured <= 0:
            warnings.warn(
                f"Cannot rescale a collapsed embedding ({scaling.name}); "
                f"coordinates left unscaled",
                DegenerateEmbeddingWarning,
                stacklevel=3,
            )
            return 1.0
        return float(target / measured)
