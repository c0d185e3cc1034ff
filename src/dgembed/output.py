"""Serialisation of results and structures.

* JSON — :func:`result_to_json` turns a
  :class:`~dgembed.reconstruction.ReconstructionResult` into plain
  Python types (numpy scalars/arrays converted by :func:`to_builtin`).
* PDB — :func:`write_ca_pdb` writes a Cα-only trace, one ``MODEL`` block
  per coordinate set.
* Contact graph files — tab-separated ``i j`` lines (1-based) under
  ``#SEQUENCE`` / ``#CT`` / ``#CUTOFF`` headers.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np

from .contacts import THREE_LETTER, ContactGraph

__all__ = [
    "to_builtin",
    "model_to_dict",
    "result_to_dict",
    "result_to_json",
    "write_ca_pdb",
    "write_graph_file",
    "read_graph_file",
]

PathLike = Union[str, Path]


def to_builtin(obj: Any) -> Any:
    """Recursively convert numpy values, enums and dataclasses to native types."""
    if isinstance(obj, dict):
        return {(k if isinstance(k, str) else str(k)): to_builtin(v)
                for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_builtin(v) for v in obj]
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return to_builtin(asdict(obj))
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


# ═══════════════════════════════════════════════════════════════════
# JSON
# ═══════════════════════════════════════════════════════════════════

def model_to_dict(model, include_distances: bool = False) -> Dict[str, Any]:
    d = {
        "index": model.index,
        "coords": model.coords,
        "restraint_violations": {"lower": model.restraint_violations.lower,
                                 "upper": model.restraint_violations.upper},
        "bound_violations": {"lower": model.bound_violations.lower,
                             "upper": model.bound_violations.upper},
        "degenerate": model.embedding.degenerate,
        "negative_fraction": model.embedding.negative_fraction,
        "scale": model.embedding.scale,
        "seed": model.seed,
    }
    if include_distances:
        d["sampled_distances"] = model.sampled_distances
    return to_builtin(d)


def result_to_dict(result, include_distances: bool = False) -> Dict[str, Any]:
    """Serialise a reconstruction result to a JSON-compatible dict."""
    return to_builtin({
        "n": result.initial_bounds.n,
        "config": result.config,
        "restraints": [[i, j, b.lower, b.upper]
                       for (i, j), b in result.initial_bounds.items()],
        "info": result.info,
        "models": [model_to_dict(m, include_distances) for m in result.models],
    })


def result_to_json(result, include_distances: bool = False,
                   indent: Optional[int] = 2) -> str:
    return json.dumps(result_to_dict(result, include_distances), indent=indent)


# ═══════════════════════════════════════════════════════════════════
# PDB
# ═══════════════════════════════════════════════════════════════════

def _ca_atom_lines(coords: np.ndarray, sequence: str) -> List[str]:
    lines = []
    for i, (x, y, z) in enumerate(np.asarray(coords, dtype=float)):
        aa_3 = THREE_LETTER.get(sequence[i].upper(), "UNK")
        lines.append(
            f"ATOM  {i+1:5d}  CA  {aa_3} A{i+1:4d}    "
            f"{x:8.3f}{y:8.3f}{z:8.3f}  1.00  0.00           C")
    return lines


def write_ca_pdb(path: PathLike, coords: Union[np.ndarray, Iterable[np.ndarray]],
                 sequence: Optional[str] = None,
                 model: Optional[int] = None) -> None:
    """Write one or more Cα traces as a PDB file.

    Parameters
    ----------
    path : str or Path
    coords : ndarray (n, 3) or iterable of them
        A single trace, or several written as consecutive ``MODEL`` blocks.
    sequence : str, optional
        One-letter sequence; unknown residues are written as ``UNK``.
    model : int, optional
        Model number for a single trace (1-based); omitted → no
        ``MODEL`` record.
    """
    if isinstance(coords, np.ndarray) and coords.ndim == 2:
        traces = [coords]
        numbers = [model]
    else:
        traces = [np.asarray(c) for c in coords]
        numbers = list(range(1, len(traces) + 1))

    lines = []
    for trace, number in zip(traces, numbers):
        seq = sequence if sequence is not None else "X" * len(trace)
        if len(seq) != len(trace):
            raise ValueError(
                f"Sequence length {len(seq)} differs from {len(trace)} coordinates")
        if number is not None:
            lines.append(f"MODEL     {number:4d}")
        lines.extend(_ca_atom_lines(trace, seq))
        lines.append("TER")
        if number is not None:
            lines.append("ENDMDL")
    lines.append("END")
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")


# ═══════════════════════════════════════════════════════════════════
# Contact graph files
# ═══════════════════════════════════════════════════════════════════

def write_graph_file(path: PathLike, graph: ContactGraph) -> None:
    lines = [
        f"#SEQUENCE: {graph.sequence}",
        f"#CT: {graph.contact_type}",
        f"#CUTOFF: {graph.cutoff}",
    ]
    lines.extend(f"{i + 1}\t{j + 1}" for i, j in graph.pairs())
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")


def read_graph_file(path: PathLike) -> ContactGraph:
    """Read a contact graph file written by :func:`write_graph_file`.

    Extra columns after ``i j`` (e.g. weights) are ignored.

    Raises
    ------
    ValueError
        If the ``#SEQUENCE`` header is missing or a line is malformed.
    """
    headers: Dict[str, str] = {}
    contacts = set()
    for lineno, line in enumerate(
            Path(path).read_text(encoding="utf-8").splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        if line.startswith("#"):
            if ":" in line:
                key, value = line[1:].split(":", 1)
                headers[key.strip().upper()] = value.strip()
            continue
        parts = line.split()
        try:
            i, j = int(parts[0]) - 1, int(parts[1]) - 1
        except (IndexError, ValueError):
            raise ValueError(f"{path}:{lineno}: expected 'i j', got {line!r}")
        contacts.add((i, j))

    if "SEQUENCE" not in headers:
        raise ValueError(f"{path}: missing #SEQUENCE header")
    return ContactGraph(
        sequence=headers["SEQUENCE"],
        contacts=frozenset(contacts),
        cutoff=float(headers.get("CUTOFF", 8.0)),
        contact_type=headers.get("CT", "Ca"),
    )
