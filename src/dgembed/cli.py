"""``dgembed`` command line.

Sub-commands
------------
reconstruct
    Build 3-D models from a contact map and write them as PDB / JSON.
score
    Contact and distance error of a contact subset against the full map.
distill
    Random-sampling search for informative contact subsets.

Contacts come from a graph file (``--graph``), or are computed from a
structure (``--cif`` local mmCIF, ``--pdb`` RCSB id) at ``--cutoff``.

Examples
--------
::

    dgembed reconstruct --pdb 1BXY --chain A --models 5 --out-pdb models.pdb
    dgembed score --pdb 1BXY --chain A --subset subset.graph --random 20
    dgembed distill --pdb 1BXY --chain A --samples 1000 --percent 5 --out-prefix 1bxyA
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Tuple

import numpy as np

from .benchmark import benchmark_reconstruction
from .contacts import ContactGraph
from .distiller import SCORE_FORMAT, Distiller
from .embedding import ScalingMethod, distance_matrix
from .errors import DistanceGeometryError
from .fetch import fetch_ca_trace, load_ca_trace
from .output import read_graph_file, result_to_json, write_ca_pdb
from .reconstruction import ReconstructionConfig, Reconstructor
from .scoring import (random_subset_statistics, score_contact_error,
                      score_distance_error)

logger = logging.getLogger(__name__)


# ── input ───────────────────────────────────────────────────────

def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--graph", help="contact graph file")
    src.add_argument("--cif", help="local mmCIF file")
    src.add_argument("--pdb", help="PDB id to fetch from RCSB")
    parser.add_argument("--chain", default=None, help="chain (label_asym_id)")
    parser.add_argument("--cutoff", type=float, default=8.0,
                        help="contact cutoff in Å (default 8.0)")


def _load_source(args) -> Tuple[ContactGraph, Optional[np.ndarray]]:
    """Contact graph and, when a structure was given, its Cα coordinates."""
    if args.graph:
        return read_graph_file(args.graph), None
    if args.cif:
        coords, seq = load_ca_trace(args.cif, args.chain)
        where = args.cif
    else:
        coords, seq = fetch_ca_trace(args.pdb, args.chain)
        where = f"RCSB {args.pdb}"
    if coords is None:
        raise SystemExit(f"No Cα atoms found in {where} (chain {args.chain})")
    logger.info("Loaded %d residues from %s", len(coords), where)
    return ContactGraph.from_coordinates(coords, args.cutoff, seq), coords


# ── sub-commands ────────────────────────────────────────────────

def cmd_reconstruct(args) -> int:
    graph, coords = _load_source(args)
    config = ReconstructionConfig(
        num_models=args.models,
        metrize=not args.sample,
        scaling=ScalingMethod(args.scaling),
        seed=args.seed,
        n_workers=args.workers,
        n_roots=args.roots,
    )
    if args.benchmark:
        if coords is None:
            raise SystemExit("--benchmark needs --cif or --pdb")
        report = benchmark_reconstruction(coords, graph.sequence, args.cutoff, config)
        print(report.summary())
        return 0

    result = Reconstructor(graph).reconstruct(config, strict=args.strict,
                                              verbose=args.verbose)
    print(result.summary())
    if args.out_pdb:
        write_ca_pdb(args.out_pdb, result.coordinates(), graph.sequence)
        print(f"Wrote {len(result)} model(s) to {args.out_pdb}")
    if args.json:
        with open(args.json, "w") as fh:
            fh.write(result_to_json(result))
        print(f"Wrote {args.json}")
    return 0


def cmd_score(args) -> int:
    graph, coords = _load_source(args)
    subset = read_graph_file(args.subset)
    if subset.full_length != graph.full_length:
        raise SystemExit(
            f"Subset has {subset.full_length} residues, full map {graph.full_length}")

    cm_error = score_contact_error(subset, graph)
    print(f"contacts: {subset.edge_count}/{graph.edge_count}")
    print(f"CM error: {SCORE_FORMAT % cm_error}")
    distances = distance_matrix(coords) if coords is not None else None
    if distances is not None:
        print(f"DM error: {SCORE_FORMAT % score_distance_error(subset, distances)}")

    if args.random:
        eligible = len(Distiller(graph).eligible_pairs)
        fraction = min(1.0, len(Distiller(subset).eligible_pairs) / max(eligible, 1))
        rng = np.random.default_rng(args.seed)
        stats = random_subset_statistics(graph, fraction, args.random, rng)
        print(f"random CM error: {SCORE_FORMAT % stats.mean} "
              f"± {SCORE_FORMAT % stats.standard_error} ({stats.runs} runs)")
        if distances is not None:
            stats = random_subset_statistics(graph, fraction, args.random, rng,
                                             distances=distances)
            print(f"random DM error: {SCORE_FORMAT % stats.mean} "
                  f"± {SCORE_FORMAT % stats.standard_error} ({stats.runs} runs)")
    return 0


def cmd_distill(args) -> int:
    graph, _ = _load_source(args)
    print(f"Total contacts: {graph.edge_count}")
    distiller = Distiller(graph)
    distiller.distill(args.samples, args.percent / 100.0,
                      np.random.default_rng(args.seed), verbose=args.verbose)
    if args.out_prefix:
        edges = f"{args.out_prefix}_{args.starting_id}.subsets"
        scores = f"{args.out_prefix}_{args.starting_id}.scores"
        distiller.write_tables(edges, scores, args.starting_id)
        print(f"Wrote {edges} and {scores}")
    print(f"Max error: {SCORE_FORMAT % distiller.worst().score}")
    print(f"Min error: {SCORE_FORMAT % distiller.best().score}")
    if args.percentile:
        freqs = distiller.contact_frequencies(args.percentile / 100.0)
        for (i, j), f in sorted(freqs.items(), key=lambda kv: -kv[1])[:args.top]:
            print(f"  {i + 1:4d} {j + 1:4d}  {f:.2f}")
    return 0


# ── entry point ─────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dgembed",
        description="Distance-geometry reconstruction of protein Cα traces "
                    "from contact maps.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log progress (INFO level)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("reconstruct", help="build 3-D models from contacts")
    _add_source_arguments(p)
    p.add_argument("-n", "--models", type=int, default=1)
    p.add_argument("--sample", action="store_true",
                   help="independent sampling instead of metrization")
    p.add_argument("--scaling", choices=[m.value for m in ScalingMethod],
                   default=ScalingMethod.RADIUS_OF_GYRATION.value)
    p.add_argument("--roots", type=int, default=None,
                   help="partial metrization with this many roots")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--workers", type=int, default=1)
    p.add_argument("--strict", action="store_true",
                   help="fail if a model violates a restraint")
    p.add_argument("--out-pdb", default=None)
    p.add_argument("--json", default=None)
    p.add_argument("--benchmark", action="store_true",
                   help="compare models with the input structure")
    p.set_defaults(func=cmd_reconstruct)

    p = sub.add_parser("score", help="score a contact subset")
    _add_source_arguments(p)
    p.add_argument("--subset", required=True, help="subset contact graph file")
    p.add_argument("--random", type=int, default=0,
                   help="also score this many random subsets of equal size")
    p.add_argument("--seed", type=int, default=None)
    p.set_defaults(func=cmd_score)

    p = sub.add_parser("distill", help="sample and rank contact subsets")
    _add_source_arguments(p)
    p.add_argument("--samples", type=int, default=100)
    p.add_argument("--percent", type=float, default=5.0,
                   help="subset size as percent of eligible contacts")
    p.add_argument("--out-prefix", default=None)
    p.add_argument("--starting-id", type=int, default=0)
    p.add_argument("--percentile", type=float, default=None,
                   help="print contact frequencies of the best PERCENTILE%% subsets")
    p.add_argument("--top", type=int, default=20)
    p.add_argument("--seed", type=int, default=None)
    p.set_defaults(func=cmd_distill)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (DistanceGeometryError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
