"""Reconstruction of 3-D models from a contact graph.

Each model is one independent run of::

    shared smoothed bounds → sample / metrize → classical scaling

The sparse restraints and the smoothed all-pairs bounds are computed once
per :meth:`Reconstructor.reconstruct` call and never mutated; every model
works on its own copy with its own random stream, spawned from one
:class:`numpy.random.SeedSequence`.  Runs are therefore reproducible for a
given seed whether they execute in-process or on a worker pool.

Usage
-----
>>> from dgembed import ContactGraph, Reconstructor, ReconstructionConfig
>>> rec = Reconstructor(graph)
>>> result = rec.reconstruct(ReconstructionConfig(num_models=5, seed=1))
>>> result.models[0].coords.shape        # (n, 3)
"""

from __future__ import annotations

import logging
import multiprocessing
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .bounds import Bound, BoundsMatrix, DenseBounds, ViolationCounts
from .contacts import ContactGraph
from .embedding import Embedder, Embedding, ScalingMethod
from .errors import RestraintViolationError
from .parameters import DEFAULT_PARAMETERS, ParameterRegistry
from .smoothing import BoundsSmoother, metrize_distances, sample_distances

logger = logging.getLogger(__name__)

__all__ = [
    "ReconstructionConfig",
    "Model",
    "ReconstructionResult",
    "Reconstructor",
]


# ═══════════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReconstructionConfig:
    """Per-run settings.

    Attributes
    ----------
    num_models : int
        Number of independent models (≥ 1).
    metrize : bool
        Metrization (True) or independent sampling (False).
    scaling : ScalingMethod
        Embedding scale policy.
    seed : int, optional
        Root seed; ``None`` draws fresh entropy.
    n_workers : int
        Worker processes; 1 runs models in-process.
    n_roots : int, optional
        Partial metrization with this many roots (metrize only).
    target_radius : float, optional
        Radius of gyration to scale to (``RADIUS_OF_GYRATION`` only).
    """

    num_models: int = 1
    metrize: bool = True
    scaling: ScalingMethod = ScalingMethod.RADIUS_OF_GYRATION
    seed: Optional[int] = None
    n_workers: int = 1
    n_roots: Optional[int] = None
    target_radius: Optional[float] = None

    def __post_init__(self):
        if self.num_models < 1:
            raise ValueError(f"num_models must be >= 1, got {self.num_models}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")
        if self.n_roots is not None and self.n_roots < 0:
            raise ValueError(f"n_roots must be >= 0, got {self.n_roots}")
        object.__setattr__(self, "scaling", ScalingMethod(self.scaling))


# ═══════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════

@dataclass
class Model:
    """One reconstructed coordinate set.

    Violation counts compare the *embedded* distances with the sparse
    restraints and with the smoothed all-pairs bounds.
    """

    index: int
    coords: np.ndarray
    sampled_distances: np.ndarray
    embedding: Embedding
    restraint_violations: ViolationCounts
    bound_violations: ViolationCounts
    seed: Optional[Tuple[int, ...]] = None

    @property
    def n(self) -> int:
        return len(self.coords)


@dataclass
class ReconstructionResult:
    """Models plus the bounds they were drawn from."""

    models: List[Model]
    initial_bounds: BoundsMatrix
    bounds_all_pairs: DenseBounds
    config: ReconstructionConfig
    info: Dict[str, float] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self):
        return iter(self.models)

    def coordinates(self) -> List[np.ndarray]:
        return [m.coords for m in self.models]

    def best_model(self) -> Model:
        """Model with fewest restraint violations (ties → lowest index)."""
        return min(self.models, key=lambda m: (m.restraint_violations.total,
                                               m.bound_violations.total,
                                               m.index))

    def violation_table(self) -> List[Dict[str, int]]:
        """One row of violation counts per model."""
        return [
            {
                "model": m.index,
                "restraint_lower": m.restraint_violations.lower,
                "restraint_upper": m.restraint_violations.upper,
                "bound_lower": m.bound_violations.lower,
                "bound_upper": m.bound_violations.upper,
                "degenerate": int(m.embedding.degenerate),
            }
            for m in self.models
        ]

    def summary(self) -> str:
        mode = "metrized" if self.config.metrize else "sampled"
        lines = [
            f"Reconstruction: {len(self.models)} {mode} models, "
            f"n={self.initial_bounds.n}, {len(self.initial_bounds)} restraints",
        ]
        for row in self.violation_table():
            lines.append(
                f"  model {row['model']:3d}: restraints "
                f"{row['restraint_lower']:4d}↓ {row['restraint_upper']:4d}↑  "
                f"all-pairs {row['bound_lower']:5d}↓ {row['bound_upper']:5d}↑"
                + ("  (degenerate)" if row["degenerate"] else ""))
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════════
# Per-model worker
# ═══════════════════════════════════════════════════════════════════

def _run_model(args) -> Model:
    """Build one model.  Module level so it can be sent to a worker pool."""
    index, seed_seq, initial, dense, config, params = args
    rng = np.random.default_rng(seed_seq)
    if config.metrize:
        D = metrize_distances(dense, rng, config.n_roots, params)
    else:
        D = sample_distances(dense, rng)

    embedding = Embedder(D, params).embed(config.scaling, config.target_radius)
    embedded = embedding.distances()
    tol = params["violations.tolerance"]
    return Model(
        index=index,
        coords=embedding.coords,
        sampled_distances=D,
        embedding=embedding,
        restraint_violations=initial.count_violations(embedded, tol),
        bound_violations=dense.count_violations(embedded, tol),
        seed=tuple(seed_seq.spawn_key),
    )


# ═══════════════════════════════════════════════════════════════════
# Reconstructor
# ═══════════════════════════════════════════════════════════════════

class Reconstructor:
    """Produce independent 3-D models for one restraint set.

    Parameters
    ----------
    source : ContactGraph or BoundsMatrix
        A contact graph (converted with :meth:`ContactGraph.to_bounds`,
        which adds backbone restraints), or explicit restraints.  For
        explicit restraints, every adjacent pair that is not already an
        exact distance is fixed to the backbone spacing; the caller's
        matrix is not modified.
    parameters : ParameterRegistry, optional
    """

    def __init__(self, source: Union[ContactGraph, BoundsMatrix],
                 parameters: Optional[ParameterRegistry] = None):
        self._params = parameters or DEFAULT_PARAMETERS
        if isinstance(source, ContactGraph):
            self.graph: Optional[ContactGraph] = source
            self.bounds = source.to_bounds(self._params)
        elif isinstance(source, BoundsMatrix):
            self.graph = None
            self.bounds = source.copy()
            backbone = Bound.exact(self._params["backbone.ca_distance"])
            for i in range(self.bounds.n - 1):
                current = self.bounds.get(i, i + 1)
                # observed (exact) distances survive, ranges do not
                if current is None or not current.is_exact:
                    self.bounds.set(i, i + 1, backbone)
        else:
            raise TypeError(
                f"Expected ContactGraph or BoundsMatrix, got {type(source).__name__}")
        self._smoother = BoundsSmoother(self.bounds, self._params)

    @property
    def n(self) -> int:
        return self.bounds.n

    def bounds_all_pairs(self) -> DenseBounds:
        return self._smoother.bounds_all_pairs()

    def reconstruct(self, config: Optional[ReconstructionConfig] = None,
                    strict: bool = False, verbose: bool = False
                    ) -> ReconstructionResult:
        """Run ``config.num_models`` independent reconstructions.

        Parameters
        ----------
        config : ReconstructionConfig, optional
        strict : bool
            Raise if any model's embedded distances violate a restraint.
        verbose : bool
            Print one progress line per model.

        Raises
        ------
        InfeasibleBoundsError
            If the restraints contradict the triangle inequality.
        RestraintViolationError
            Only with ``strict=True``.
        """
        config = config or ReconstructionConfig()
        dense = self.bounds_all_pairs()
        seeds = np.random.SeedSequence(config.seed).spawn(config.num_models)
        jobs = [(i, seeds[i], self.bounds, dense, config, self._params)
                for i in range(config.num_models)]

        logger.info("Reconstructing %d model(s) of %d points (%s, %d worker(s))",
                    config.num_models, self.n,
                    "metrize" if config.metrize else "sample", config.n_workers)

        if config.n_workers > 1 and config.num_models > 1:
            with multiprocessing.Pool(min(config.n_workers, config.num_models)) as pool:
                models = pool.map(_run_model, jobs)
        else:
            models = []
            for job in jobs:
                models.append(_run_model(job))
                if verbose:
                    m = models[-1]
                    print(f"  [{m.index + 1}/{config.num_models}] "
                          f"restraint violations {m.restraint_violations.total}")

        for m in models:
            logger.debug("Model %d: restraint violations %s, bound violations %s",
                         m.index, m.restraint_violations, m.bound_violations)
            if strict and m.restraint_violations.total:
                raise RestraintViolationError(
                    m.index, m.restraint_violations.lower,
                    m.restraint_violations.upper)

        return ReconstructionResult(
            models=models,
            initial_bounds=self.bounds.copy(),
            bounds_all_pairs=dense,
            config=config,
            info={"mean_bound_width": dense.mean_width()},
        )

    def __repr__(self) -> str:
        return f"Reconstructor(n={self.n}, {len(self.bounds)} restraints)"
