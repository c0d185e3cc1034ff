"""Geometry constants and numerical tolerances.

All tunable numbers of the engine live in one read-only
:class:`ParameterRegistry` keyed ``"<section>.<name>"``.  Components
(contact conversion, smoothing, embedding, reconstruction, scoring and the
distiller) take ``parameters=`` and fall back to :data:`DEFAULT_PARAMETERS`.

>>> from dgembed.parameters import DEFAULT_PARAMETERS
>>> DEFAULT_PARAMETERS["backbone.ca_distance"]
3.8
>>> coarse = DEFAULT_PARAMETERS.replace({"smoothing.tolerance": 1e-3}, name="coarse")
>>> coarse.diff(DEFAULT_PARAMETERS)
{'smoothing.tolerance': (0.001, 0.0001)}
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Dict, Iterator, Optional, Tuple

__all__ = [
    "ParameterRegistry",
    "DEFAULT_PARAMETERS",
]


# ═══════════════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════════════

class ParameterRegistry(Mapping):
    """Read-only ``section.name → float`` mapping.

    Parameters
    ----------
    values : mapping of str to float
        Copied on construction.
    name : str
        Label shown in ``repr`` (``"default"``, ``"coarse"``, ...).

    Notes
    -----
    Item assignment raises ``TypeError``; derive variants with
    :meth:`replace`.
    """

    def __init__(self, values: Mapping, *, name: str = "custom"):
        self._values = MappingProxyType(
            {str(k): float(v) for k, v in values.items()})
        self.name = name

    def __getitem__(self, key: str) -> float:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __setitem__(self, key, value):
        raise TypeError(
            f"ParameterRegistry {self.name!r} is immutable; "
            f"use replace({{{key!r}: ...}})")

    def __repr__(self) -> str:
        return f"ParameterRegistry({self.name!r}, {len(self)} keys)"

    def to_dict(self) -> Dict[str, float]:
        return dict(self._values)

    # mappingproxy cannot be pickled; worker pools need the registry
    def __getstate__(self):
        return {"values": dict(self._values), "name": self.name}

    def __setstate__(self, state):
        self._values = MappingProxyType(state["values"])
        self.name = state["name"]

    # ── derived registries ──────────────────────────────────────

    def replace(self, overrides: Mapping,
                name: Optional[str] = None) -> "ParameterRegistry":
        """Copy with some values changed.

        Raises
        ------
        KeyError
            For a key this registry does not define.
        """
        unknown = sorted(set(overrides) - set(self._values))
        if unknown:
            raise KeyError(f"Unknown parameter key(s) {unknown}; "
                           f"sections are {list(self.sections)}")
        merged = {**self._values, **overrides}
        return ParameterRegistry(merged, name=name or f"{self.name}+")

    def diff(self, other: Mapping) -> Dict[str, Tuple[Optional[float], Optional[float]]]:
        """``{key: (mine, theirs)}`` for every key whose value differs."""
        keys = sorted(set(self) | set(other))
        return {k: (self.get(k), other.get(k))
                for k in keys if self.get(k) != other.get(k)}

    # ── sections ────────────────────────────────────────────────

    def section(self, prefix: str) -> Dict[str, float]:
        """Values under ``prefix.``, keyed by the name without the prefix."""
        head = prefix + "."
        return {k[len(head):]: v for k, v in self._values.items()
                if k.startswith(head)}

    @property
    def sections(self) -> Tuple[str, ...]:
        return tuple(sorted({k.partition(".")[0] for k in self._values}))


# ═══════════════════════════════════════════════════════════════════
# Defaults
# ═══════════════════════════════════════════════════════════════════

DEFAULT_PARAMETERS = ParameterRegistry({
    # consecutive Cα spacing (Å), used as an exact backbone restraint
    "backbone.ca_distance": 3.8,

    # contact → restraint conversion (Å)
    "bounds.hard_sphere_ca": 2.8,          # Cα, C and BB contacts
    "bounds.hard_sphere_default": 2.6,     # other single atoms
    "bounds.bb_diameter_gyration": 4.6,    # added to a BB contact's cutoff

    # triangle smoothing
    "smoothing.tolerance": 1e-4,           # largest lower/upper crossing clamped
    "smoothing.max_passes": 100,
    "smoothing.change_epsilon": 1e-9,

    # classical scaling: allowed |Σλ<0| / Σ|λ|
    "embedding.negative_mass_tolerance": 0.05,

    "violations.tolerance": 1e-6,

    # sampled contacts need j - i > diagonals_to_skip
    "distiller.diagonals_to_skip": 4,
}, name="default")
