"""Contact graphs and their conversion to distance restraints.

A :class:`ContactGraph` is the sparse set of residue pairs found within a
distance cutoff of each other (a residue interaction graph).  It is the
primary input of reconstruction: every contact becomes a
:class:`~dgembed.bounds.Bound` whose upper limit is the cutoff and whose
lower limit is the hard-sphere distance of the contact type.

Contact types
-------------
* single atom — ``"Ca"``, ``"Cb"``, ``"Cg"``, ``"C"``, ``"N"``, ``"O"``
* backbone centroid — ``"BB"``
* crossed — ``"Ca/Cb"`` etc.; bounds are the average of both sides

Hard-sphere lower bounds are 2.8 Å for Cα-like types and 2.6 Å (the
hydrogen-bond length) for other single atoms.  For ``"BB"`` the upper
bound is extended by the backbone diameter of gyration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Tuple

import numpy as np
from scipy.spatial.distance import pdist, squareform

from .bounds import Bound, BoundsMatrix
from .parameters import DEFAULT_PARAMETERS, ParameterRegistry

__all__ = [
    "ContactGraph",
    "THREE_LETTER",
    "split_contact_type",
    "is_single_atom_contact_type",
    "lower_bound_distance",
    "upper_bound_extension",
]

Pair = Tuple[int, int]

THREE_LETTER = {
    "A": "ALA", "C": "CYS", "D": "ASP", "E": "GLU", "F": "PHE",
    "G": "GLY", "H": "HIS", "I": "ILE", "K": "LYS", "L": "LEU",
    "M": "MET", "N": "ASN", "P": "PRO", "Q": "GLN", "R": "ARG",
    "S": "SER", "T": "THR", "V": "VAL", "W": "TRP", "Y": "TYR",
}

_SINGLE_ATOM_TYPES = frozenset({"Ca", "Cb", "Cg", "C", "N", "O"})
_CA_LIKE_TYPES = frozenset({"Ca", "C", "BB"})


# ═══════════════════════════════════════════════════════════════════
# Contact-type constants
# ═══════════════════════════════════════════════════════════════════

def split_contact_type(contact_type: str) -> Tuple[str, str]:
    """``"Ca/Cb"`` → ``("Ca", "Cb")``; ``"Ca"`` → ``("Ca", "Ca")``."""
    if "/" in contact_type:
        i_ct, j_ct = contact_type.split("/", 1)
        return i_ct, j_ct
    return contact_type, contact_type


def is_single_atom_contact_type(contact_type: str) -> bool:
    return all(ct in _SINGLE_ATOM_TYPES for ct in split_contact_type(contact_type))


def _check_supported(ct: str) -> None:
    if ct not in _SINGLE_ATOM_TYPES and ct != "BB":
        raise ValueError(
            f"Contact type {ct!r} is not valid for reconstruction; "
            f"expected one of {sorted(_SINGLE_ATOM_TYPES | {'BB'})}")


def lower_bound_distance(contact_type: str, aa1: str = "", aa2: str = "",
                         parameters: Optional[ParameterRegistry] = None) -> float:
    """Hard-sphere lower bound for a contact of this type between two residues.

    The residue types are accepted for residue-pair specific contact
    types; none of the supported types depend on them.
    """
    params = parameters or DEFAULT_PARAMETERS
    _check_supported(contact_type)
    if contact_type in _CA_LIKE_TYPES:
        return params["bounds.hard_sphere_ca"]
    return params["bounds.hard_sphere_default"]


def upper_bound_extension(contact_type: str, aa1: str = "", aa2: str = "",
                          parameters: Optional[ParameterRegistry] = None) -> float:
    """Amount added to the cutoff to get the contact's upper bound."""
    params = parameters or DEFAULT_PARAMETERS
    _check_supported(contact_type)
    if contact_type == "BB":
        return params["bounds.bb_diameter_gyration"]
    return 0.0


# ═══════════════════════════════════════════════════════════════════
# ContactGraph
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ContactGraph:
    """Residue contact graph of a single chain.

    Attributes
    ----------
    sequence : str
        One-letter sequence; its length is the conformation size.
    contacts : frozenset of (int, int)
        0-based residue index pairs ``(i, j)`` with ``i < j``.
    cutoff : float
        Distance cutoff (Å) used to define the contacts.
    contact_type : str
        Atom type the contacts refer to (default ``"Ca"``).
    """

    sequence: str
    contacts: FrozenSet[Pair] = field(default_factory=frozenset)
    cutoff: float = 8.0
    contact_type: str = "Ca"

    def __post_init__(self):
        n = len(self.sequence)
        if n == 0:
            raise ValueError("Contact graph needs a non-empty sequence")
        normalised = set()
        for i, j in self.contacts:
            i, j = int(i), int(j)
            if i == j:
                raise ValueError(f"Self contact ({i}, {j}) is not allowed")
            if not (0 <= i < n and 0 <= j < n):
                raise ValueError(
                    f"Contact ({i}, {j}) outside sequence of length {n}")
            normalised.add((min(i, j), max(i, j)))
        object.__setattr__(self, "contacts", frozenset(normalised))

    # ── constructors ────────────────────────────────────────────

    @classmethod
    def from_coordinates(cls, coords: np.ndarray, cutoff: float = 8.0,
                         sequence: Optional[str] = None,
                         contact_type: str = "Ca") -> "ContactGraph":
        """Contacts between all pairs of points within *cutoff*."""
        coords = np.asarray(coords, dtype=float)
        n = len(coords)
        if sequence is None:
            sequence = "X" * n
        if len(sequence) != n:
            raise ValueError(
                f"Sequence length {len(sequence)} differs from {n} coordinates")
        dmat = squareform(pdist(coords)) if n > 1 else np.zeros((1, 1))
        rows, cols = np.nonzero(np.triu(dmat <= cutoff, k=1))
        contacts = frozenset((int(i), int(j)) for i, j in zip(rows, cols))
        return cls(sequence, contacts, cutoff, contact_type)

    # ── properties ──────────────────────────────────────────────

    @property
    def full_length(self) -> int:
        return len(self.sequence)

    @property
    def edge_count(self) -> int:
        return len(self.contacts)

    def residue_type(self, i: int) -> str:
        """Three-letter residue type at index *i* (``"UNK"`` if unknown)."""
        return THREE_LETTER.get(self.sequence[i].upper(), "UNK")

    def pairs(self, min_separation: int = 1) -> List[Pair]:
        """Sorted contacts with sequence separation ``j - i >= min_separation``."""
        return sorted(p for p in self.contacts if p[1] - p[0] >= min_separation)

    def subgraph(self, pairs: Iterable[Pair]) -> "ContactGraph":
        """A graph on the same chain containing only *pairs*."""
        return ContactGraph(self.sequence, frozenset(pairs),
                            self.cutoff, self.contact_type)

    # ── conversion to restraints ────────────────────────────────

    def to_bounds(self, parameters: Optional[ParameterRegistry] = None
                  ) -> BoundsMatrix:
        """Distance restraints for reconstruction.

        Each contact with sequence separation > 1 becomes
        ``[hard-sphere lower bound, cutoff + extension]``; then every
        adjacent pair is fixed to the backbone Cα spacing.
        """
        params = parameters or DEFAULT_PARAMETERS
        i_ct, j_ct = split_contact_type(self.contact_type)
        _check_supported(i_ct)
        _check_supported(j_ct)

        bounds = BoundsMatrix(self.full_length)
        for i, j in self.contacts:
            if j <= i + 1:
                continue  # first diagonal comes from the backbone restraints
            aa_i, aa_j = self.residue_type(i), self.residue_type(j)
            dist_min = (lower_bound_distance(i_ct, aa_i, aa_j, params)
                        + lower_bound_distance(j_ct, aa_i, aa_j, params)) / 2
            dist_max = (upper_bound_extension(i_ct, aa_i, aa_j, params) / 2
                        + upper_bound_extension(j_ct, aa_i, aa_j, params) / 2
                        + self.cutoff)
            bounds.set(i, j, Bound(dist_min, dist_max))
        bounds.add_backbone(params["backbone.ca_distance"])
        return bounds

    def to_exact_bounds(self, distances: np.ndarray) -> BoundsMatrix:
        """Restraints fixing every contact to its observed distance."""
        distances = np.asarray(distances, dtype=float)
        if distances.shape != (self.full_length, self.full_length):
            raise ValueError(
                f"Distance matrix shape {distances.shape} does not match "
                f"sequence length {self.full_length}")
        bounds = BoundsMatrix(self.full_length)
        for i, j in self.contacts:
            bounds.set(i, j, Bound.exact(float(distances[i, j])))
        return bounds

    def __repr__(self) -> str:
        return (f"ContactGraph(n={self.full_length}, contacts={self.edge_count}, "
                f"{self.contact_type}, cutoff={self.cutoff})")
