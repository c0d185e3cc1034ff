"""Tests for the random-sampling Distiller."""

import numpy as np
import pytest

from dgembed.contacts import ContactGraph
from dgembed.distiller import SCORE_FORMAT, Distiller, SubsetScore


@pytest.fixture
def graph():
    t = np.radians(100.0) * np.arange(18)
    coords = np.column_stack([2.3 * np.cos(t), 2.3 * np.sin(t), 1.5 * np.arange(18)])
    return ContactGraph.from_coordinates(coords, cutoff=12.0)


@pytest.fixture
def distilled(graph):
    d = Distiller(graph)
    d.distill(20, 0.25, rng=np.random.default_rng(0))
    return d


# ═══════════════════════════════════════════════════════════════════
# Sampling
# ═══════════════════════════════════════════════════════════════════

class TestDistill:

    def test_eligible_pairs(self, graph):
        d = Distiller(graph)
        assert d.eligible_pairs
        assert all(j - i >= 5 for i, j in d.eligible_pairs)

    def test_sorted_scores(self, distilled):
        scores = [s.score for s in distilled.scores]
        assert len(scores) == 20
        assert scores == sorted(scores)
        assert distilled.best().score <= distilled.worst().score

    def test_subset_size(self, distilled):
        n = int(len(distilled.eligible_pairs) * 0.25)
        assert all(s.size == n for s in distilled.scores)

    def test_results_accumulate(self, distilled):
        distilled.distill(5, 0.5, rng=np.random.default_rng(1))
        assert len(distilled.scores) == 25
        scores = [s.score for s in distilled.scores]
        assert scores == sorted(scores)

    def test_reproducible(self, graph):
        a = Distiller(graph).distill(5, 0.3, rng=np.random.default_rng(7))
        b = Distiller(graph).distill(5, 0.3, rng=np.random.default_rng(7))
        assert a == b

    def test_empty_best(self, graph):
        with pytest.raises(RuntimeError):
            Distiller(graph).best()
        with pytest.raises(RuntimeError):
            Distiller(graph).worst()

    @pytest.mark.parametrize("n_samples, fraction", [(0, 0.5), (3, -0.1), (3, 1.1)])
    def test_bad_arguments(self, graph, n_samples, fraction):
        with pytest.raises(ValueError):
            Distiller(graph).distill(n_samples, fraction)

    def test_subset_score_ordering(self):
        a = SubsetScore(0.5, ((0, 6),))
        b = SubsetScore(1.5, ((0, 5),))
        assert a < b
        assert sorted([b, a]) == [a, b]


# ═══════════════════════════════════════════════════════════════════
# Consensus
# ═══════════════════════════════════════════════════════════════════

class TestConsensus:

    def test_frequencies(self, distilled):
        freqs = distilled.contact_frequencies(0.5)
        assert freqs
        assert all(0.0 < f <= 1.0 for f in freqs.values())
        best = distilled.scores[:10]
        for pair, f in freqs.items():
            assert f == pytest.approx(sum(pair in s.pairs for s in best) / 10)

    def test_small_percentile(self, distilled):
        assert distilled.contact_frequencies(0.01) == {}

    def test_bad_percentile(self, distilled):
        with pytest.raises(ValueError):
            distilled.contact_frequencies(0.0)

    def test_consensus_graph(self, distilled, graph):
        consensus = distilled.consensus_graph(0.5, min_frequency=0.0)
        assert consensus.contacts == set(distilled.contact_frequencies(0.5))
        assert consensus.contacts <= graph.contacts
        strict = distilled.consensus_graph(0.5, min_frequency=1.0)
        assert strict.contacts <= consensus.contacts


# ═══════════════════════════════════════════════════════════════════
# Output tables
# ═══════════════════════════════════════════════════════════════════

class TestWriteTables:

    def test_tables(self, distilled, tmp_path):
        edges = tmp_path / "run.subsets"
        scores = tmp_path / "run.scores"
        distilled.write_tables(edges, scores, starting_id=100)

        score_lines = scores.read_text().splitlines()
        assert len(score_lines) == 20
        first_id, first_score = score_lines[0].split("\t")
        assert first_id == "100"
        assert first_score == SCORE_FORMAT % distilled.best().score
        assert len(first_score) == 9

        edge_lines = edges.read_text().splitlines()
        assert len(edge_lines) == sum(s.size for s in distilled.scores)
        sid, i, j = edge_lines[0].split("\t")
        assert sid == "100"
        assert (int(i) - 1, int(j) - 1) in distilled.best().pairs
