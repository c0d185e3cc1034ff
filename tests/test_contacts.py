"""Tests for ContactGraph and contact-type bound constants."""

import numpy as np
import pytest

from dgembed.bounds import Bound
from dgembed.contacts import (
    ContactGraph, is_single_atom_contact_type, lower_bound_distance,
    split_contact_type, upper_bound_extension,
)


@pytest.fixture
def helix_coords():
    """Ideal α-helix Cα trace (rise 1.5 Å, 100° per residue, radius 2.3 Å)."""
    t = np.radians(100.0) * np.arange(12)
    return np.column_stack([2.3 * np.cos(t), 2.3 * np.sin(t), 1.5 * np.arange(12)])


# ═══════════════════════════════════════════════════════════════════
# Contact types
# ═══════════════════════════════════════════════════════════════════

class TestContactTypes:

    def test_split(self):
        assert split_contact_type("Ca") == ("Ca", "Ca")
        assert split_contact_type("Ca/Cb") == ("Ca", "Cb")

    def test_single_atom(self):
        assert is_single_atom_contact_type("Ca")
        assert is_single_atom_contact_type("Cb/Cg")
        assert not is_single_atom_contact_type("BB")
        assert not is_single_atom_contact_type("SC")

    def test_lower_bounds(self):
        assert lower_bound_distance("Ca") == 2.8
        assert lower_bound_distance("C") == 2.8
        assert lower_bound_distance("BB") == 2.8
        assert lower_bound_distance("Cb", "ALA", "GLY") == 2.6

    def test_upper_extensions(self):
        assert upper_bound_extension("Ca") == 0.0
        assert upper_bound_extension("BB") == 4.6

    def test_unsupported_type(self):
        with pytest.raises(ValueError, match="not valid for reconstruction"):
            lower_bound_distance("SC")


# ═══════════════════════════════════════════════════════════════════
# ContactGraph
# ═══════════════════════════════════════════════════════════════════

class TestContactGraph:

    def test_contacts_normalised(self):
        g = ContactGraph("AAAAA", frozenset({(3, 0), (1, 4)}))
        assert g.contacts == {(0, 3), (1, 4)}
        assert g.edge_count == 2
        assert g.full_length == 5

    def test_invalid_contacts(self):
        with pytest.raises(ValueError):
            ContactGraph("AAA", frozenset({(1, 1)}))
        with pytest.raises(ValueError):
            ContactGraph("AAA", frozenset({(0, 3)}))
        with pytest.raises(ValueError):
            ContactGraph("")

    def test_pairs_by_separation(self):
        g = ContactGraph("A" * 8, frozenset({(0, 1), (0, 3), (2, 7)}))
        assert g.pairs() == [(0, 1), (0, 3), (2, 7)]
        assert g.pairs(min_separation=3) == [(0, 3), (2, 7)]
        assert g.pairs(min_separation=5) == [(2, 7)]

    def test_residue_type(self):
        g = ContactGraph("AGX")
        assert g.residue_type(0) == "ALA"
        assert g.residue_type(1) == "GLY"
        assert g.residue_type(2) == "UNK"

    def test_from_coordinates(self, helix_coords):
        g = ContactGraph.from_coordinates(helix_coords, cutoff=8.0)
        assert g.full_length == 12
        assert g.sequence == "X" * 12
        d = np.linalg.norm(helix_coords[:, None] - helix_coords[None], axis=-1)
        for i, j in g.contacts:
            assert d[i, j] <= 8.0
        assert (0, 1) in g.contacts
        assert (0, 11) not in g.contacts

    def test_from_coordinates_sequence_length(self, helix_coords):
        with pytest.raises(ValueError):
            ContactGraph.from_coordinates(helix_coords, sequence="AAA")

    def test_subgraph(self):
        g = ContactGraph("A" * 6, frozenset({(0, 3), (1, 5)}), cutoff=9.0)
        sub = g.subgraph([(0, 3)])
        assert sub.contacts == {(0, 3)}
        assert sub.cutoff == 9.0
        assert sub.sequence == g.sequence


class TestGraphToBounds:

    def test_contact_bound_and_backbone(self):
        g = ContactGraph("AAAAA", frozenset({(0, 4), (1, 2)}), cutoff=8.0)
        b = g.to_bounds()
        assert b[0, 4] == Bound(2.8, 8.0)
        # adjacent contact is replaced by the backbone restraint
        assert b[1, 2] == Bound.exact(3.8)
        assert len(b) == 5

    def test_crossed_type_averages(self):
        g = ContactGraph("AAAAA", frozenset({(0, 3)}), cutoff=8.0,
                         contact_type="Ca/Cb")
        b = g.to_bounds()
        assert b[0, 3].lower == pytest.approx((2.8 + 2.6) / 2)
        assert b[0, 3].upper == 8.0

    def test_bb_extension(self):
        g = ContactGraph("AAAAA", frozenset({(0, 3)}), cutoff=8.0,
                         contact_type="BB")
        assert g.to_bounds()[0, 3].upper == pytest.approx(8.0 + 4.6)

    def test_unsupported_type(self):
        g = ContactGraph("AAAA", frozenset({(0, 3)}), contact_type="SC")
        with pytest.raises(ValueError):
            g.to_bounds()

    def test_to_exact_bounds(self, helix_coords):
        g = ContactGraph.from_coordinates(helix_coords, cutoff=6.0)
        d = np.linalg.norm(helix_coords[:, None] - helix_coords[None], axis=-1)
        b = g.to_exact_bounds(d)
        assert len(b) == g.edge_count
        for (i, j), bound in b.items():
            assert bound.is_exact
            assert bound.lower == pytest.approx(d[i, j])

    def test_to_exact_bounds_shape(self):
        with pytest.raises(ValueError):
            ContactGraph("AAA").to_exact_bounds(np.zeros((2, 2)))
