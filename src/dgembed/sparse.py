"""Dictionary-of-keys sparse matrix.

A general-purpose sparse real matrix indexed by ``(row, column)``.  It is
the algebraic substrate for the bounds layer (lower-bound, upper-bound and
contact-indicator overlays of a :class:`~dgembed.bounds.BoundsMatrix`)
and for contact counting (powers of a contact indicator matrix count
walks between residues).

Absent entries are implicitly zero and explicit zeros are never stored,
so every operation costs time proportional to the number of stored
entries rather than to ``rows × cols``.

Row and column lookup sets are maintained on every mutation, so they are
always consistent with the stored entries and can be used at any time.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, FrozenSet, Iterator, Optional, Set, Tuple

import numpy as np
import scipy.sparse

from .errors import MatrixIndexError, MatrixShapeError

__all__ = ["SparseMatrix"]

Pair = Tuple[int, int]


class SparseMatrix:
    """Sparse ``n_rows × n_cols`` matrix of floats.

    Parameters
    ----------
    n_rows : int
        Row dimension (> 0).
    n_cols : int, optional
        Column dimension.  Defaults to ``n_rows`` (square).
    entries : dict[(int, int), float], optional
        Initial entries.  Zeros are dropped.

    Raises
    ------
    MatrixShapeError
        If a dimension is not positive.
    MatrixIndexError
        If an initial entry lies outside the dimensions.
    """

    def __init__(self, n_rows: int, n_cols: Optional[int] = None,
                 entries: Optional[Dict[Pair, float]] = None):
        n_cols = n_rows if n_cols is None else n_cols
        if n_rows <= 0 or n_cols <= 0:
            raise MatrixShapeError(
                f"Dimensions must be positive, got {n_rows}x{n_cols}")
        self._shape = (int(n_rows), int(n_cols))
        self._data: Dict[Pair, float] = {}
        self._rows: Dict[int, Set[Pair]] = defaultdict(set)
        self._cols: Dict[int, Set[Pair]] = defaultdict(set)
        if entries:
            for (i, j), value in entries.items():
                self.set(i, j, value)

    # ── constructors ────────────────────────────────────────────

    @classmethod
    def identity(cls, n: int) -> "SparseMatrix":
        """The ``n × n`` identity matrix."""
        return cls(n, n, {(i, i): 1.0 for i in range(n)})

    @classmethod
    def from_dense(cls, array) -> "SparseMatrix":
        """Build from a 2-D array, keeping only the non-zero entries."""
        a = np.asarray(array, dtype=float)
        if a.ndim != 2:
            raise MatrixShapeError(f"Expected a 2-D array, got {a.ndim}-D")
        rows, cols = np.nonzero(a)
        return cls(a.shape[0], a.shape[1],
                   {(int(i), int(j)): float(a[i, j]) for i, j in zip(rows, cols)})

    @classmethod
    def from_scipy(cls, matrix) -> "SparseMatrix":
        """Build from any ``scipy.sparse`` matrix."""
        coo = scipy.sparse.coo_matrix(matrix)
        out = cls(coo.shape[0], coo.shape[1])
        for i, j, v in zip(coo.row, coo.col, coo.data):
            # duplicate COO entries are summed, as scipy does
            out.set(int(i), int(j), out.get(int(i), int(j)) + float(v))
        return out

    # ── shape & access ──────────────────────────────────────────

    @property
    def shape(self) -> Tuple[int, int]:
        return self._shape

    @property
    def n_rows(self) -> int:
        return self._shape[0]

    @property
    def n_cols(self) -> int:
        return self._shape[1]

    @property
    def is_square(self) -> bool:
        return self._shape[0] == self._shape[1]

    @property
    def nnz(self) -> int:
        """Number of stored (non-zero) entries."""
        return len(self._data)

    def _check_index(self, i: int, j: int) -> None:
        if not (0 <= i < self._shape[0] and 0 <= j < self._shape[1]):
            raise MatrixIndexError(
                f"Index ({i}, {j}) outside matrix of shape {self._shape}")

    def get(self, i: int, j: int, default: float = 0.0) -> float:
        """Entry ``(i, j)``, or *default* when absent."""
        self._check_index(i, j)
        return self._data.get((i, j), default)

    def __getitem__(self, index: Pair) -> float:
        i, j = index
        return self.get(i, j)

    def __setitem__(self, index: Pair, value: float) -> None:
        i, j = index
        self.set(i, j, value)

    def __contains__(self, index: Pair) -> bool:
        return tuple(index) in self._data

    def set(self, i: int, j: int, value: float) -> None:
        """Store ``value`` at ``(i, j)``; a zero removes the entry."""
        self._check_index(i, j)
        value = float(value)
        if value == 0.0:
            self._discard((i, j))
            return
        self._data[(i, j)] = value
        self._rows[i].add((i, j))
        self._cols[j].add((i, j))

    def set_symmetric(self, i: int, j: int, value: float) -> None:
        """Store ``value`` at both ``(i, j)`` and ``(j, i)``."""
        self.set(i, j, value)
        self.set(j, i, value)

    def remove(self, i: int, j: int) -> None:
        """Remove entry ``(i, j)`` (no-op if absent)."""
        self._check_index(i, j)
        self._discard((i, j))

    def _discard(self, pair: Pair) -> None:
        if self._data.pop(pair, None) is None:
            return
        i, j = pair
        self._rows[i].discard(pair)
        if not self._rows[i]:
            del self._rows[i]
        self._cols[j].discard(pair)
        if not self._cols[j]:
            del self._cols[j]

    def items(self) -> Iterator[Tuple[Pair, float]]:
        return iter(self._data.items())

    def pairs(self) -> FrozenSet[Pair]:
        """All stored index pairs."""
        return frozenset(self._data)

    def row_pairs(self, i: int) -> FrozenSet[Pair]:
        """Stored index pairs in row *i*."""
        if not 0 <= i < self._shape[0]:
            raise MatrixIndexError(f"Row {i} outside matrix of shape {self._shape}")
        return frozenset(self._rows.get(i, ()))

    def column_pairs(self, j: int) -> FrozenSet[Pair]:
        """Stored index pairs in column *j*."""
        if not 0 <= j < self._shape[1]:
            raise MatrixIndexError(f"Column {j} outside matrix of shape {self._shape}")
        return frozenset(self._cols.get(j, ()))

    def copy(self) -> "SparseMatrix":
        return SparseMatrix(self._shape[0], self._shape[1], dict(self._data))

    # ── algebra ─────────────────────────────────────────────────

    def add(self, other: "SparseMatrix") -> "SparseMatrix":
        """Element-wise sum ``self + other``."""
        if self._shape != other._shape:
            raise MatrixShapeError(
                f"Cannot add {self._shape} and {other._shape} matrices")
        out = self.copy()
        for (i, j), v in other._data.items():
            out.set(i, j, out._data.get((i, j), 0.0) + v)
        return out

    def subtract(self, other: "SparseMatrix") -> "SparseMatrix":
        """Element-wise difference ``self - other``."""
        return self.add(other.scalar_multiply(-1.0))

    def scalar_multiply(self, scalar: float) -> "SparseMatrix":
        out = SparseMatrix(*self._shape)
        for (i, j), v in self._data.items():
            out.set(i, j, v * scalar)
        return out

    def multiply(self, other: "SparseMatrix") -> "SparseMatrix":
        """Matrix product ``self @ other``.

        Only stored entries are visited: each ``(i, k)`` of *self* is
        combined with the entries of row ``k`` of *other*.
        """
        if self._shape[1] != other._shape[0]:
            raise MatrixShapeError(
                f"Cannot multiply {self._shape} by {other._shape}: "
                f"inner dimensions differ")
        acc: Dict[Pair, float] = defaultdict(float)
        for (i, k), v in self._data.items():
            for (_, j) in other._rows.get(k, ()):
                acc[(i, j)] += v * other._data[(k, j)]
        return SparseMatrix(self._shape[0], other._shape[1], acc)

    def transpose(self) -> "SparseMatrix":
        return SparseMatrix(self._shape[1], self._shape[0],
                            {(j, i): v for (i, j), v in self._data.items()})

    def pow(self, exponent: int) -> "SparseMatrix":
        """Integer matrix power by repeated squaring; ``pow(0)`` is the identity.

        Raises
        ------
        MatrixShapeError
            If the matrix is not square.
        ValueError
            If *exponent* is negative.
        """
        if not self.is_square:
            raise MatrixShapeError(
                f"Only square matrices can be raised to a power, got {self._shape}")
        if exponent < 0:
            raise ValueError(f"Exponent must be >= 0, got {exponent}")
        result = SparseMatrix.identity(self._shape[0])
        base = self.copy()
        while exponent:
            if exponent & 1:
                result = result.multiply(base)
            exponent >>= 1
            if exponent:
                base = base.multiply(base)
        return result

    def inner_product(self, other: "SparseMatrix") -> float:
        """Frobenius inner product ``Σ self[i,j]·other[i,j]``."""
        small, large = (self, other) if self.nnz <= other.nnz else (other, self)
        return float(sum(v * large._data.get(p, 0.0)
                         for p, v in small._data.items()))

    __add__ = add
    __sub__ = subtract
    __matmul__ = multiply

    def __mul__(self, scalar: float) -> "SparseMatrix":
        return self.scalar_multiply(scalar)

    __rmul__ = __mul__

    def __neg__(self) -> "SparseMatrix":
        return self.scalar_multiply(-1.0)

    # ── norms & comparisons ─────────────────────────────────────

    def norm_1(self) -> float:
        """Maximum absolute column sum (0 for an empty matrix)."""
        return max((sum(abs(self._data[p]) for p in pairs)
                    for pairs in self._cols.values()), default=0.0)

    def norm_infinity(self) -> float:
        """Maximum absolute row sum (0 for an empty matrix)."""
        return max((sum(abs(self._data[p]) for p in pairs)
                    for pairs in self._rows.values()), default=0.0)

    def norm_frobenius(self) -> float:
        return math.sqrt(sum(v * v for v in self._data.values()))

    def max(self) -> float:
        """Largest stored value (0 for an empty matrix)."""
        return max(self._data.values(), default=0.0)

    def min(self) -> float:
        """Smallest stored value (0 for an empty matrix)."""
        return min(self._data.values(), default=0.0)

    def equals(self, other: "SparseMatrix", tol: float = 0.0) -> bool:
        """True when shapes agree and ``‖self − other‖_F ≤ tol``."""
        if self._shape != other._shape:
            return False
        return self.subtract(other).norm_frobenius() <= tol

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SparseMatrix):
            return NotImplemented
        return self.equals(other)

    def is_symmetric(self) -> bool:
        if not self.is_square:
            return False
        return all(self._data.get((j, i)) == v
                   for (i, j), v in self._data.items())

    # ── conversion ──────────────────────────────────────────────

    def to_dense(self) -> np.ndarray:
        out = np.zeros(self._shape)
        for (i, j), v in self._data.items():
            out[i, j] = v
        return out

    def to_scipy(self) -> scipy.sparse.coo_matrix:
        if not self._data:
            return scipy.sparse.coo_matrix(self._shape)
        rows = [i for i, _ in self._data]
        cols = [j for _, j in self._data]
        vals = list(self._data.values())
        return scipy.sparse.coo_matrix((vals, (rows, cols)), shape=self._shape)

    def __repr__(self) -> str:
        return f"SparseMatrix({self._shape[0]}x{self._shape[1]}, nnz={self.nnz})"
