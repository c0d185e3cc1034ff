"""Distance bounds: single ranges, sparse restraint sets, all-pairs matrices.

Three levels of the same information:

* :class:`Bound` — one ``[lower, upper]`` range for a point pair.
* :class:`BoundsMatrix` — a *sparse* symmetric set of bounds keyed by
  unordered pair; this is what a contact map turns into.
* :class:`DenseBounds` — bounds for *all* pairs as two ``(n, n)``
  arrays; this is what triangle smoothing produces and what sampling
  and metrization consume.

A sparse set is built once and not mutated afterwards: inference and
sampling always work on copies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from .errors import MatrixIndexError, MatrixShapeError
from .sparse import SparseMatrix

__all__ = [
    "Bound",
    "BoundsMatrix",
    "DenseBounds",
    "ViolationCounts",
]

Pair = Tuple[int, int]


# ═══════════════════════════════════════════════════════════════════
# Bound
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Bound:
    """A feasible distance range ``lower ≤ d ≤ upper``.

    ``lower == upper`` represents an exact (observed) distance.
    """

    lower: float
    upper: float

    def __post_init__(self):
        if not (math.isfinite(self.lower) and math.isfinite(self.upper)):
            raise ValueError(
                f"Bounds must be finite, got [{self.lower}, {self.upper}]")
        if self.lower < 0:
            raise ValueError(f"Lower bound must be non-negative, got {self.lower}")
        if self.lower > self.upper:
            raise ValueError(
                f"Lower bound {self.lower} exceeds upper bound {self.upper}")

    @classmethod
    def exact(cls, distance: float) -> "Bound":
        return cls(distance, distance)

    @property
    def is_exact(self) -> bool:
        return self.lower == self.upper

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def contains(self, distance: float, tol: float = 0.0) -> bool:
        return self.lower - tol <= distance <= self.upper + tol

    def __str__(self) -> str:
        return f"[{self.lower:.2f}, {self.upper:.2f}]"


@dataclass(frozen=True)
class ViolationCounts:
    """Number of distances below their lower / above their upper bound."""

    lower: int = 0
    upper: int = 0

    @property
    def total(self) -> int:
        return self.lower + self.upper

    def __add__(self, other: "ViolationCounts") -> "ViolationCounts":
        return ViolationCounts(self.lower + other.lower, self.upper + other.upper)


def _count_violations(distances: np.ndarray, rows: np.ndarray, cols: np.ndarray,
                      lower: np.ndarray, upper: np.ndarray,
                      tol: float) -> ViolationCounts:
    d = np.asarray(distances, dtype=float)[rows, cols]
    return ViolationCounts(
        lower=int(np.count_nonzero(d < lower - tol)),
        upper=int(np.count_nonzero(d > upper + tol)),
    )


# ═══════════════════════════════════════════════════════════════════
# BoundsMatrix — sparse symmetric restraint set
# ═══════════════════════════════════════════════════════════════════

class BoundsMatrix:
    """Sparse symmetric matrix of :class:`Bound` over ``n`` points.

    Storing ``(i, j)`` implies ``(j, i)``: pairs are kept under the key
    ``(min(i, j), max(i, j))``.  The diagonal cannot be set.

    Parameters
    ----------
    n : int
        Number of points (conformation size).
    bounds : dict[(int, int), Bound], optional
        Initial bounds.
    """

    def __init__(self, n: int, bounds: Optional[Dict[Pair, Bound]] = None):
        if n <= 0:
            raise MatrixShapeError(f"Conformation size must be positive, got {n}")
        self._n = int(n)
        self._bounds: Dict[Pair, Bound] = {}
        if bounds:
            for (i, j), b in bounds.items():
                self.set(i, j, b)

    @property
    def n(self) -> int:
        return self._n

    def _key(self, i: int, j: int) -> Pair:
        if not (0 <= i < self._n and 0 <= j < self._n):
            raise MatrixIndexError(
                f"Pair ({i}, {j}) outside conformation of size {self._n}")
        if i == j:
            raise MatrixIndexError(f"Diagonal pair ({i}, {i}) cannot carry a bound")
        return (i, j) if i < j else (j, i)

    # ── access ──────────────────────────────────────────────────

    def get(self, i: int, j: int) -> Optional[Bound]:
        """Bound for ``(i, j)``, or ``None`` if the pair is unconstrained."""
        return self._bounds.get(self._key(i, j))

    def __getitem__(self, index: Pair) -> Bound:
        return self._bounds[self._key(*index)]

    def __contains__(self, index: Pair) -> bool:
        i, j = index
        return self._key(i, j) in self._bounds

    def __len__(self) -> int:
        return len(self._bounds)

    def __iter__(self) -> Iterator[Pair]:
        return iter(self.pairs())

    def set(self, i: int, j: int,
            bound: Union[Bound, Tuple[float, float]]) -> None:
        """Store a bound for ``(i, j)`` (and thereby ``(j, i)``)."""
        if not isinstance(bound, Bound):
            bound = Bound(*bound)
        self._bounds[self._key(i, j)] = bound

    def remove(self, i: int, j: int) -> None:
        self._bounds.pop(self._key(i, j), None)

    def pairs(self) -> List[Pair]:
        """Stored pairs ``(i, j)`` with ``i < j``, sorted."""
        return sorted(self._bounds)

    def items(self) -> List[Tuple[Pair, Bound]]:
        return sorted(self._bounds.items())

    def copy(self) -> "BoundsMatrix":
        return BoundsMatrix(self._n, dict(self._bounds))

    def max_upper(self) -> float:
        """Largest stored upper bound (0 for an empty matrix)."""
        return max((b.upper for b in self._bounds.values()), default=0.0)

    # ── derived ─────────────────────────────────────────────────

    def add_backbone(self, distance: float) -> "BoundsMatrix":
        """Fix every adjacent pair ``(i, i+1)`` to *distance*.  Returns self."""
        for i in range(self._n - 1):
            self.set(i, i + 1, Bound.exact(distance))
        return self

    def _overlay(self, value) -> SparseMatrix:
        m = SparseMatrix(self._n)
        for (i, j), b in self._bounds.items():
            m.set_symmetric(i, j, value(b))
        return m

    def lower_matrix(self) -> SparseMatrix:
        """Symmetric sparse matrix of lower bounds (zeros are not stored)."""
        return self._overlay(lambda b: b.lower)

    def upper_matrix(self) -> SparseMatrix:
        """Symmetric sparse matrix of upper bounds."""
        return self._overlay(lambda b: b.upper)

    def contact_matrix(self) -> SparseMatrix:
        """Symmetric 0/1 indicator of constrained pairs."""
        return self._overlay(lambda b: 1.0)

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """``(lower, upper)`` as ``(n, n)`` arrays, NaN where unconstrained."""
        lower = np.full((self._n, self._n), np.nan)
        upper = np.full((self._n, self._n), np.nan)
        np.fill_diagonal(lower, 0.0)
        np.fill_diagonal(upper, 0.0)
        for (i, j), b in self._bounds.items():
            lower[i, j] = lower[j, i] = b.lower
            upper[i, j] = upper[j, i] = b.upper
        return lower, upper

    def count_violations(self, distances: np.ndarray,
                         tol: float = 0.0) -> ViolationCounts:
        """Count stored pairs whose distance falls outside the bound."""
        if not self._bounds:
            return ViolationCounts()
        keys = list(self._bounds)
        rows = np.array([i for i, _ in keys])
        cols = np.array([j for _, j in keys])
        lower = np.array([self._bounds[k].lower for k in keys])
        upper = np.array([self._bounds[k].upper for k in keys])
        return _count_violations(distances, rows, cols, lower, upper, tol)

    def __repr__(self) -> str:
        return f"BoundsMatrix(n={self._n}, {len(self._bounds)} bounds)"


# ═══════════════════════════════════════════════════════════════════
# DenseBounds — all-pairs bounds
# ═══════════════════════════════════════════════════════════════════

class DenseBounds:
    """Bounds for every pair, as symmetric ``(n, n)`` lower / upper arrays.

    The diagonal is zero in both arrays.
    """

    def __init__(self, lower: np.ndarray, upper: np.ndarray):
        lower = np.array(lower, dtype=float)
        upper = np.array(upper, dtype=float)
        if lower.ndim != 2 or lower.shape[0] != lower.shape[1]:
            raise MatrixShapeError(f"Bounds must be square, got {lower.shape}")
        if lower.shape != upper.shape:
            raise MatrixShapeError(
                f"Lower {lower.shape} and upper {upper.shape} shapes differ")
        self.lower = lower
        self.upper = upper

    @property
    def n(self) -> int:
        return self.lower.shape[0]

    def __getitem__(self, index: Pair) -> Bound:
        i, j = index
        return Bound(float(self.lower[i, j]), float(self.upper[i, j]))

    def copy(self) -> "DenseBounds":
        return DenseBounds(self.lower.copy(), self.upper.copy())

    def count_violations(self, distances: np.ndarray,
                         tol: float = 0.0) -> ViolationCounts:
        """Count pairs ``i < j`` whose distance falls outside its bound."""
        rows, cols = np.triu_indices(self.n, k=1)
        return _count_violations(distances, rows, cols,
                                 self.lower[rows, cols], self.upper[rows, cols], tol)

    def triangle_violations(self, tol: float = 1e-6) -> int:
        """Number of ``(i, j, k)`` triples breaking the smoothed invariants.

        Checks ``u_ij ≤ u_ik + u_kj`` and ``l_ij ≥ l_ik − u_kj`` for every
        pivot ``k``; zero for any matrix returned by triangle smoothing.
        """
        L, U = self.lower, self.upper
        count = 0
        for k in range(self.n):
            upper_bad = U > U[:, k, None] + U[None, k, :] + tol
            lower_bad = L < L[:, k, None] - U[None, k, :] - tol
            count += int(np.count_nonzero(upper_bad | lower_bad))
        return count

    def mean_width(self) -> float:
        """Average ``upper − lower`` over pairs ``i < j``."""
        rows, cols = np.triu_indices(self.n, k=1)
        if rows.size == 0:
            return 0.0
        return float(np.mean(self.upper[rows, cols] - self.lower[rows, cols]))

    def to_bounds_matrix(self) -> BoundsMatrix:
        out = BoundsMatrix(self.n)
        for i, j in zip(*np.triu_indices(self.n, k=1)):
            out.set(int(i), int(j), self[int(i), int(j)])
        return out

    def __repr__(self) -> str:
        return f"DenseBounds(n={self.n}, mean_width={self.mean_width():.2f})"
