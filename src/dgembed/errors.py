"""Exception and warning types.

Three families, one per layer of the engine:

* **sparse layer** — shape and index errors raised immediately by
  :class:`~dgembed.sparse.SparseMatrix` and
  :class:`~dgembed.bounds.BoundsMatrix`.
* **bound inference** — an infeasible restraint set, or a smoothing loop
  that hit its pass cap without reaching a fixed point.
* **embedding / reconstruction** — a degenerate (far from Euclidean)
  distance matrix is *warned* about, never raised; restraint violations
  are only raised when the caller asks for strict reconstruction.
"""

from __future__ import annotations

__all__ = [
    "DistanceGeometryError",
    "SparseMatrixError",
    "MatrixShapeError",
    "MatrixIndexError",
    "InfeasibleBoundsError",
    "SmoothingConvergenceError",
    "RestraintViolationError",
    "DegenerateEmbeddingWarning",
]


class DistanceGeometryError(Exception):
    """Base class for all errors raised by dgembed."""


# ── sparse layer ─────────────────────────────────────────────────

class SparseMatrixError(DistanceGeometryError):
    """Base class for sparse matrix errors."""


class MatrixShapeError(SparseMatrixError, ValueError):
    """Operands have incompatible dimensions."""


class MatrixIndexError(SparseMatrixError, IndexError):
    """An index is negative or outside the matrix dimensions."""


# ── bound inference ──────────────────────────────────────────────

class InfeasibleBoundsError(DistanceGeometryError, ValueError):
    """The triangle inequality forced a lower bound above its upper bound.

    Attributes
    ----------
    i, j : int
        The offending pair (``i < j``).
    lower, upper : float
        The crossed bounds at the moment the contradiction was found.
    """

    def __init__(self, i: int, j: int, lower: float, upper: float):
        self.i = i
        self.j = j
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Infeasible restraints: lower bound {lower:.4f} for pair "
            f"({i}, {j}) exceeds upper bound {upper:.4f}")


class SmoothingConvergenceError(DistanceGeometryError, RuntimeError):
    """Triangle smoothing was still tightening bounds at the pass cap."""

    def __init__(self, passes: int):
        self.passes = passes
        super().__init__(
            f"Triangle smoothing did not reach a fixed point "
            f"after {passes} passes")


# ── reconstruction ───────────────────────────────────────────────

class RestraintViolationError(DistanceGeometryError):
    """A strict reconstruction produced a model that violates restraints."""

    def __init__(self, model_index: int, lower: int, upper: int):
        self.model_index = model_index
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Model {model_index} violates {lower} lower and "
            f"{upper} upper restraints")


class DegenerateEmbeddingWarning(UserWarning):
    """The distance matrix carries significant negative eigenvalue mass."""
