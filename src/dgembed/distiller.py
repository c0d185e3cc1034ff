"""Distiller — search for informative contact subsets by random sampling.

Draws many random subsets of a contact map's long-range contacts, scores
each with :func:`~dgembed.scoring.score_contact_error` against the full
map, and keeps them sorted from most to least informative.  The best
subsets can be merged into a weighted consensus (how often each contact
appears among them) or written out as two tab-separated tables linked by
a subset id::

    <prefix>.subsets    id <TAB> i+1 <TAB> j+1     (1-based residues)
    <prefix>.scores     id <TAB> score             (%9.4f)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .contacts import ContactGraph
from .parameters import DEFAULT_PARAMETERS, ParameterRegistry
from .scoring import sample_contact_subset, score_contact_error

logger = logging.getLogger(__name__)

__all__ = ["Distiller", "SubsetScore", "SCORE_FORMAT"]

Pair = Tuple[int, int]

SCORE_FORMAT = "%9.4f"


@dataclass(frozen=True, order=True)
class SubsetScore:
    """A sampled contact subset and its contact error (lower is better)."""

    score: float
    pairs: Tuple[Pair, ...]

    @property
    def size(self) -> int:
        return len(self.pairs)


class Distiller:
    """Random-sampling search over subsets of one contact graph.

    Parameters
    ----------
    graph : ContactGraph
        The full contact map.
    parameters : ParameterRegistry, optional
    """

    def __init__(self, graph: ContactGraph,
                 parameters: Optional[ParameterRegistry] = None):
        self.graph = graph
        self._params = parameters or DEFAULT_PARAMETERS
        self._full_bounds = graph.to_bounds(self._params)
        self.scores: List[SubsetScore] = []

    @property
    def eligible_pairs(self) -> List[Pair]:
        """Contacts far enough from the diagonal to be sampled."""
        skip = int(self._params["distiller.diagonals_to_skip"])
        return self.graph.pairs(min_separation=skip + 1)

    def sample_subset(self, n_contacts: int,
                      rng: Optional[np.random.Generator] = None) -> ContactGraph:
        """A random subgraph of *n_contacts* eligible contacts."""
        return sample_contact_subset(self.graph, n_contacts, rng, self._params)

    def distill(self, n_samples: int, fraction: float,
                rng: Optional[np.random.Generator] = None,
                verbose: bool = False) -> List[SubsetScore]:
        """Sample and score *n_samples* subsets of ``fraction`` × eligible contacts.

        Results accumulate across calls and are kept sorted by score.
        """
        if n_samples < 1:
            raise ValueError(f"n_samples must be >= 1, got {n_samples}")
        if not 0.0 <= fraction <= 1.0:
            raise ValueError(f"fraction must be in [0, 1], got {fraction}")
        rng = rng if rng is not None else np.random.default_rng()
        n_contacts = int(len(self.eligible_pairs) * fraction)
        skip = int(self._params["distiller.diagonals_to_skip"])
        logger.info("Sampling %d subsets of %d contacts, sequence separation above %d",
                    n_samples, n_contacts, skip)

        for s in range(n_samples):
            sub = self.sample_subset(n_contacts, rng)
            score = score_contact_error(sub.to_bounds(self._params),
                                        self._full_bounds, self._params)
            self.scores.append(SubsetScore(score, tuple(sub.pairs())))
            if verbose and (s + 1) % 100 == 0:
                print(f"  {s + 1}/{n_samples} subsets scored")

        self.scores.sort()
        logger.info("Min error %s, max error %s",
                    SCORE_FORMAT % self.best().score,
                    SCORE_FORMAT % self.worst().score)
        return self.scores

    def best(self) -> SubsetScore:
        if not self.scores:
            raise RuntimeError("No subsets sampled yet; call distill() first")
        return self.scores[0]

    def worst(self) -> SubsetScore:
        if not self.scores:
            raise RuntimeError("No subsets sampled yet; call distill() first")
        return self.scores[-1]

    def contact_frequencies(self, percentile: float) -> Dict[Pair, float]:
        """Fraction of the best ``percentile`` subsets containing each contact.

        Parameters
        ----------
        percentile : float
            Share of sampled subsets to merge, in (0, 1].

        Returns
        -------
        dict[(int, int), float]
            Contact → occurrence frequency in ``(0, 1]``.
        """
        if not 0.0 < percentile <= 1.0:
            raise ValueError(f"percentile must be in (0, 1], got {percentile}")
        n_best = int(len(self.scores) * percentile)
        if n_best == 0:
            return {}
        best = self.scores[:n_best]
        logger.info("Average error of the best %d subsets: %s", n_best,
                    SCORE_FORMAT % (sum(s.score for s in best) / n_best))

        counts: Dict[Pair, int] = {}
        for s in best:
            for p in s.pairs:
                counts[p] = counts.get(p, 0) + 1
        return {p: c / n_best for p, c in sorted(counts.items())}

    def consensus_graph(self, percentile: float,
                        min_frequency: float = 0.5) -> ContactGraph:
        """Contacts occurring in at least *min_frequency* of the best subsets."""
        freqs = self.contact_frequencies(percentile)
        return self.graph.subgraph(p for p, f in freqs.items() if f >= min_frequency)

    def write_tables(self, edges_path: Union[str, Path],
                     scores_path: Union[str, Path],
                     starting_id: int = 0) -> None:
        """Write every sampled subset and its score as linked tables."""
        with open(edges_path, "w") as fe, open(scores_path, "w") as fs:
            for sid, s in enumerate(self.scores, start=starting_id):
                fs.write(f"{sid}\t{SCORE_FORMAT % s.score}\n")
                for i, j in s.pairs:
                    fe.write(f"{sid}\t{i + 1}\t{j + 1}\n")
        logger.info("Wrote %d subsets to %s and %s",
                    len(self.scores), edges_path, scores_path)
