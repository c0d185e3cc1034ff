"""Information content of a restraint subset.

Both scores smooth the subset into all-pairs bounds and measure how far
the inferred upper bounds sit above the truth.  Adding true information
can only tighten upper bounds, so neither score increases as more true
contacts are added.

* :func:`score_contact_error` — ``Σ max(0, u'_ij − u_ij) / n`` over the
  pairs of the full contact map (backbone included).
* :func:`score_distance_error` — ``2·√(Σ (u'_ij − d_ij)²) / (n(n−1))``
  over pairs with a non-zero reference distance and ``u'_ij > d_ij``.

No randomness and no I/O: equal inputs give bit-identical scores.  The
random-subset helpers supply the baseline a selected subset should beat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

import numpy as np

from .bounds import BoundsMatrix, DenseBounds
from .contacts import ContactGraph
from .parameters import DEFAULT_PARAMETERS, ParameterRegistry
from .smoothing import infer_all_bounds

logger = logging.getLogger(__name__)

__all__ = [
    "score_contact_error",
    "score_distance_error",
    "sample_contact_subset",
    "random_subset",
    "random_subset_statistics",
    "mean_and_standard_error",
    "SubsetStatistics",
]

Restraints = Union[BoundsMatrix, ContactGraph, DenseBounds]


def _inferred(subset: Restraints, parameters: ParameterRegistry) -> DenseBounds:
    if isinstance(subset, DenseBounds):
        return subset
    if isinstance(subset, ContactGraph):
        subset = subset.to_bounds(parameters)
    return infer_all_bounds(subset, parameters)


# ═══════════════════════════════════════════════════════════════════
# Scores
# ═══════════════════════════════════════════════════════════════════

def score_contact_error(
    subset: Restraints,
    full: Union[ContactGraph, BoundsMatrix],
    parameters: Optional[ParameterRegistry] = None,
) -> float:
    """Mean excess of inferred upper bounds over the full contact map.

    Parameters
    ----------
    subset : BoundsMatrix, ContactGraph or DenseBounds
        Restraints to evaluate (already-smoothed bounds are used as is).
    full : ContactGraph or BoundsMatrix
        Reference contact map; a graph is converted with backbone
        restraints included.
    parameters : ParameterRegistry, optional

    Returns
    -------
    float
        ``Σ max(0, inferred_upper − full_upper) / n``.
    """
    params = parameters or DEFAULT_PARAMETERS
    full_bounds = full.to_bounds(params) if isinstance(full, ContactGraph) else full
    dense = _inferred(subset, params)
    if dense.n != full_bounds.n:
        raise ValueError(
            f"Subset covers {dense.n} points but the full map {full_bounds.n}")

    pairs = full_bounds.pairs()
    if not pairs:
        return 0.0
    rows = np.array([i for i, _ in pairs])
    cols = np.array([j for _, j in pairs])
    reference = np.array([full_bounds[p].upper for p in pairs])
    excess = np.maximum(0.0, dense.upper[rows, cols] - reference)
    return float(excess.sum() / full_bounds.n)


def score_distance_error(
    subset: Restraints,
    full_distances: np.ndarray,
    parameters: Optional[ParameterRegistry] = None,
) -> float:
    """Normalised root squared excess of inferred upper bounds over true distances.

    Pairs whose reference distance is 0 are ignored.
    """
    params = parameters or DEFAULT_PARAMETERS
    full = np.asarray(full_distances, dtype=float)
    dense = _inferred(subset, params)
    n = full.shape[0]
    if full.shape != (dense.n, dense.n):
        raise ValueError(
            f"Reference distances {full.shape} do not match {dense.n} points")
    if n < 2:
        return 0.0

    rows, cols = np.triu_indices(n, k=1)
    ref = full[rows, cols]
    upper = dense.upper[rows, cols]
    mask = (ref != 0.0) & (upper > ref)
    error = np.sqrt(np.sum((upper[mask] - ref[mask]) ** 2))
    return float(2.0 * error / (n * (n - 1)))


# ═══════════════════════════════════════════════════════════════════
# Random subsets
# ═══════════════════════════════════════════════════════════════════

def sample_contact_subset(
    graph: ContactGraph,
    n_contacts: int,
    rng: Optional[np.random.Generator] = None,
    parameters: Optional[ParameterRegistry] = None,
) -> ContactGraph:
    """Draw *n_contacts* long-range contacts of *graph* without replacement.

    Only contacts with ``j − i ≥ 1 + distiller.diagonals_to_skip`` are
    eligible; backbone restraints are added when the subgraph is turned
    into bounds.

    Raises
    ------
    ValueError
        If more contacts are requested than are eligible.
    """
    params = parameters or DEFAULT_PARAMETERS
    rng = rng if rng is not None else np.random.default_rng()
    skip = int(params["distiller.diagonals_to_skip"])
    candidates = graph.pairs(min_separation=skip + 1)
    if not 0 <= n_contacts <= len(candidates):
        raise ValueError(
            f"Cannot sample {n_contacts} contacts from {len(candidates)} eligible")
    chosen = rng.choice(len(candidates), size=n_contacts, replace=False)
    return graph.subgraph(candidates[int(k)] for k in chosen)


def random_subset(
    graph: ContactGraph,
    fraction: float,
    rng: Optional[np.random.Generator] = None,
    parameters: Optional[ParameterRegistry] = None,
) -> BoundsMatrix:
    """Restraints from a random *fraction* of the eligible contacts."""
    if not 0.0 <= fraction <= 1.0:
        raise ValueError(f"fraction must be in [0, 1], got {fraction}")
    params = parameters or DEFAULT_PARAMETERS
    skip = int(params["distiller.diagonals_to_skip"])
    eligible = len(graph.pairs(min_separation=skip + 1))
    sub = sample_contact_subset(graph, int(eligible * fraction), rng, params)
    return sub.to_bounds(params)


def mean_and_standard_error(values) -> Tuple[float, float]:
    """Mean and ``√(Σ(x − x̄)² / (n(n − 1)))`` (0 for fewer than 2 values)."""
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        raise ValueError("Need at least one value")
    mean = float(x.mean())
    if x.size < 2:
        return mean, 0.0
    return mean, float(np.sqrt(np.sum((x - mean) ** 2) / (x.size * (x.size - 1))))


@dataclass
class SubsetStatistics:
    """Score distribution over random subsets of one size."""

    mean: float
    standard_error: float
    fraction: float
    values: List[float] = field(default_factory=list)

    @property
    def runs(self) -> int:
        return len(self.values)


def random_subset_statistics(
    graph: ContactGraph,
    fraction: float,
    runs: int = 10,
    rng: Optional[np.random.Generator] = None,
    distances: Optional[np.ndarray] = None,
    parameters: Optional[ParameterRegistry] = None,
) -> SubsetStatistics:
    """Score *runs* random subsets of the same size.

    With *distances* the distance error is used, otherwise the contact
    error against *graph* itself.
    """
    if runs < 1:
        raise ValueError(f"runs must be >= 1, got {runs}")
    params = parameters or DEFAULT_PARAMETERS
    rng = rng if rng is not None else np.random.default_rng()
    full_bounds = graph.to_bounds(params)

    values = []
    for _ in range(runs):
        subset = random_subset(graph, fraction, rng, params)
        if distances is None:
            values.append(score_contact_error(subset, full_bounds, params))
        else:
            values.append(score_distance_error(subset, distances, params))
    mean, stderr = mean_and_standard_error(values)
    logger.info("Random subsets (%.0f%%, %d runs): %.4f ± %.4f",
                100 * fraction, runs, mean, stderr)
    return SubsetStatistics(mean, stderr, fraction, values)
