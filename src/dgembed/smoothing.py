"""Triangle-inequality bound smoothing, sampling and metrization.

Given a sparse set of distance restraints, infer the tightest bounds for
*all* pairs consistent with the triangle inequality, then draw concrete
distance matrices from them.

Smoothing
---------
For every pivot ``k`` the whole matrix is relaxed at once::

    u_ij ← min(u_ij, u_ik + u_kj)
    l_ij ← max(l_ij, l_ik − u_kj, l_jk − u_ik)

One sweep over all pivots is O(n³); sweeps repeat until nothing changes.
A lower bound that crosses its upper bound by more than the tolerance
means the restraints are contradictory and raises
:class:`~dgembed.errors.InfeasibleBoundsError`.

Sampling
--------
* :func:`sample_distances` — every pair drawn uniformly and independently
  from its range.  Fast; the result need not be metric.
* :func:`metrize_distances` — pairs visited in random order, each one
  drawn from its *current* range, fixed, and propagated before the next
  draw.  Every drawn distance lies within the smoothed (and therefore the
  original) bounds.

References
----------
Havel, Kuntz & Crippen (1983) Bull. Math. Biol. 45:665.
Kuszewski, Nilges & Brünger (1992) J. Biomol. NMR 2:33 (partial metrization).
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Optional, Tuple

import numpy as np

from .bounds import BoundsMatrix, DenseBounds
from .errors import InfeasibleBoundsError, SmoothingConvergenceError
from .parameters import DEFAULT_PARAMETERS, ParameterRegistry

logger = logging.getLogger(__name__)

__all__ = [
    "BoundsSmoother",
    "smooth_bounds",
    "infer_all_bounds",
    "initial_bound_arrays",
    "sample_distances",
    "metrize_distances",
]


# ═══════════════════════════════════════════════════════════════════
# Pivot relaxation
# ═══════════════════════════════════════════════════════════════════

def _raise_crossing(L: np.ndarray, U: np.ndarray, bad: np.ndarray) -> None:
    i, j = np.argwhere(np.triu(bad, k=1))[0]
    raise InfeasibleBoundsError(int(i), int(j), float(L[i, j]), float(U[i, j]))


def _relax_pivot(L: np.ndarray, U: np.ndarray, k: int, tolerance: float,
                 change_epsilon: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Relax every pair through pivot *k*.

    Returns the new ``(L, U)`` and a boolean mask of the rows that changed.
    """
    U_new = np.minimum(U, U[:, k, None] + U[None, k, :])
    A = L[:, k, None] - U_new[None, k, :]          # l_ik − u_kj
    L_new = np.maximum(L, np.maximum(A, A.T))

    bad = L_new > U_new + tolerance
    if bad.any():
        _raise_crossing(L_new, U_new, bad)
    L_new = np.minimum(L_new, U_new)

    changed = ((np.abs(U_new - U) > change_epsilon)
               | (np.abs(L_new - L) > change_epsilon)).any(axis=1)
    return L_new, U_new, changed


def smooth_bounds(
    lower: np.ndarray,
    upper: np.ndarray,
    tolerance: float = 1e-4,
    max_passes: int = 100,
    change_epsilon: float = 1e-9,
) -> Tuple[np.ndarray, np.ndarray]:
    """Tighten all-pairs bounds to a triangle-inequality fixed point.

    Parameters
    ----------
    lower, upper : ndarray, shape (n, n)
        Symmetric initial bounds with zero diagonal.  Not modified.
    tolerance : float
        Crossings ``lower − upper`` up to this size are resolved by setting
        ``lower := upper``; larger ones are infeasible.
    max_passes : int
        Maximum number of full sweeps over all pivots.
    change_epsilon : float
        Changes not larger than this do not count as progress.

    Returns
    -------
    (lower, upper) : tuple of ndarray
        The smoothed bounds (new arrays).

    Raises
    ------
    InfeasibleBoundsError
        If a lower bound exceeds its upper bound beyond *tolerance*.
    SmoothingConvergenceError
        If bounds were still changing after *max_passes* sweeps.
    """
    L = np.array(lower, dtype=float)
    U = np.array(upper, dtype=float)
    n = L.shape[0]

    bad = L > U + tolerance
    if bad.any():
        _raise_crossing(L, U, bad)
    L = np.minimum(L, U)

    for pass_no in range(1, int(max_passes) + 1):
        changed_any = False
        for k in range(n):
            L, U, changed = _relax_pivot(L, U, k, tolerance, change_epsilon)
            changed_any = changed_any or bool(changed.any())
        if not changed_any:
            logger.debug("Smoothing of %d points converged after %d pass(es)",
                         n, pass_no)
            return L, U
    raise SmoothingConvergenceError(int(max_passes))


def _propagate(L: np.ndarray, U: np.ndarray, pivots: Iterable[int],
               tolerance: float, change_epsilon: float,
               max_relaxations: int) -> Tuple[np.ndarray, np.ndarray]:
    """Restore the fixed point after a local change.

    Only pivots whose row changed can tighten anything, so a worklist of
    such pivots is relaxed until it is empty.
    """
    queue = deque(pivots)
    queued = set(queue)
    count = 0
    while queue:
        k = queue.popleft()
        queued.discard(k)
        count += 1
        if count > max_relaxations:
            raise SmoothingConvergenceError(count // max(L.shape[0], 1))
        L, U, changed = _relax_pivot(L, U, k, tolerance, change_epsilon)
        for r in np.flatnonzero(changed):
            r = int(r)
            if r not in queued:
                queue.append(r)
                queued.add(r)
    return L, U


# ═══════════════════════════════════════════════════════════════════
# Initial bounds
# ═══════════════════════════════════════════════════════════════════

def initial_bound_arrays(
    bounds: BoundsMatrix,
    parameters: Optional[ParameterRegistry] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Dense ``(lower, upper)`` arrays with unknown pairs opened up.

    Unknown pairs get the hard-sphere floor as lower bound and a ceiling
    of ``(n − 1) × largest known upper bound`` (the extent of a fully
    stretched chain of the longest restraint) as upper bound.
    """
    params = parameters or DEFAULT_PARAMETERS
    n = bounds.n
    floor = params["bounds.hard_sphere_ca"]
    longest = bounds.max_upper() or params["backbone.ca_distance"]
    ceiling = max((n - 1) * longest, floor)

    lower, upper = bounds.to_arrays()
    unknown = np.isnan(lower)
    lower[unknown] = floor
    upper[unknown] = ceiling
    return lower, upper


def infer_all_bounds(
    bounds: BoundsMatrix,
    parameters: Optional[ParameterRegistry] = None,
) -> DenseBounds:
    """Smooth a sparse restraint set into bounds for all pairs."""
    params = parameters or DEFAULT_PARAMETERS
    lower, upper = initial_bound_arrays(bounds, params)
    L, U = smooth_bounds(
        lower, upper,
        tolerance=params["smoothing.tolerance"],
        max_passes=int(params["smoothing.max_passes"]),
        change_epsilon=params["smoothing.change_epsilon"],
    )
    return DenseBounds(L, U)


# ═══════════════════════════════════════════════════════════════════
# Sampling
# ═══════════════════════════════════════════════════════════════════

def _symmetric_from_upper(values: np.ndarray) -> np.ndarray:
    upper = np.triu(values, k=1)
    return upper + upper.T


def sample_distances(dense: DenseBounds,
                     rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Draw every distance independently and uniformly from its bounds."""
    rng = rng if rng is not None else np.random.default_rng()
    n = dense.n
    draws = dense.lower + rng.random((n, n)) * (dense.upper - dense.lower)
    return _symmetric_from_upper(draws)


def metrize_distances(
    dense: DenseBounds,
    rng: Optional[np.random.Generator] = None,
    n_roots: Optional[int] = None,
    parameters: Optional[ParameterRegistry] = None,
) -> np.ndarray:
    """Draw a distance matrix by metrization.

    Parameters
    ----------
    dense : DenseBounds
        Smoothed all-pairs bounds.  Not modified; a working copy is used.
    rng : numpy.random.Generator, optional
    n_roots : int, optional
        Partial metrization: only pairs touching ``n_roots`` randomly
        chosen points are fixed and propagated, the remaining pairs are
        drawn independently from the resulting bounds.  ``None`` fixes
        every pair.
    parameters : ParameterRegistry, optional

    Returns
    -------
    ndarray, shape (n, n)
        Symmetric distance matrix with zero diagonal.
    """
    params = parameters or DEFAULT_PARAMETERS
    rng = rng if rng is not None else np.random.default_rng()
    tolerance = params["smoothing.tolerance"]
    change_epsilon = params["smoothing.change_epsilon"]

    work = dense.copy()
    L, U = work.lower, work.upper
    n = work.n
    max_relaxations = int(params["smoothing.max_passes"]) * max(n, 1)

    rows, cols = np.triu_indices(n, k=1)
    if n_roots is not None:
        if n_roots < 0:
            raise ValueError(f"n_roots must be >= 0, got {n_roots}")
        roots = np.zeros(n, dtype=bool)
        roots[rng.choice(n, size=min(int(n_roots), n), replace=False)] = True
        touches = roots[rows] | roots[cols]
        rows, cols = rows[touches], cols[touches]

    for idx in rng.permutation(len(rows)):
        a, b = int(rows[idx]), int(cols[idx])
        lo, hi = L[a, b], U[a, b]
        d = lo + rng.random() * (hi - lo)
        L[a, b] = L[b, a] = U[a, b] = U[b, a] = d
        L, U = _propagate(L, U, (a, b), tolerance, change_epsilon,
                          max_relaxations)

    if n_roots is None:
        return _symmetric_from_upper(U)
    return sample_distances(DenseBounds(L, U), rng)


# ═══════════════════════════════════════════════════════════════════
# BoundsSmoother
# ═══════════════════════════════════════════════════════════════════

class BoundsSmoother:
    """Bound inference for one sparse restraint set.

    The restraint set is borrowed read-only.  The smoothed all-pairs
    bounds are computed once, on first use, and handed out as copies.

    Parameters
    ----------
    bounds : BoundsMatrix
        Sparse restraints (backbone restraints already included).
    parameters : ParameterRegistry, optional

    Examples
    --------
    >>> smoother = BoundsSmoother(graph.to_bounds())
    >>> dense = smoother.bounds_all_pairs()
    >>> D = smoother.metrize(np.random.default_rng(0))
    """

    def __init__(self, bounds: BoundsMatrix,
                 parameters: Optional[ParameterRegistry] = None):
        self._bounds = bounds
        self._params = parameters or DEFAULT_PARAMETERS
        self._dense: Optional[DenseBounds] = None

    @property
    def bounds(self) -> BoundsMatrix:
        return self._bounds

    @property
    def n(self) -> int:
        return self._bounds.n

    def bounds_all_pairs(self) -> DenseBounds:
        """Smoothed bounds for every pair (a fresh copy on each call)."""
        if self._dense is None:
            logger.info("Smoothing %d restraints over %d points",
                        len(self._bounds), self._bounds.n)
            self._dense = infer_all_bounds(self._bounds, self._params)
        return self._dense.copy()

    def sample(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Independently sampled distance matrix."""
        self.bounds_all_pairs()
        return sample_distances(self._dense, rng)

    def metrize(self, rng: Optional[np.random.Generator] = None,
                n_roots: Optional[int] = None) -> np.ndarray:
        """Metrized distance matrix (see :func:`metrize_distances`)."""
        self.bounds_all_pairs()
        return metrize_distances(self._dense, rng, n_roots, self._params)

    def __repr__(self) -> str:
        state = "smoothed" if self._dense is not None else "pending"
        return f"BoundsSmoother(n={self.n}, {len(self._bounds)} restraints, {state})"
