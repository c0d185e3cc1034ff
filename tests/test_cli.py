"""Tests for the ``dgembed`` command line (offline, graph-file input)."""

import json

import numpy as np
import pytest

from dgembed.cli import build_parser, main
from dgembed.contacts import ContactGraph
from dgembed.errors import InfeasibleBoundsError
from dgembed.output import write_graph_file
from dgembed.reconstruction import Reconstructor


@pytest.fixture
def helix_graph():
    t = np.radians(100.0) * np.arange(16)
    coords = np.column_stack([2.3 * np.cos(t), 2.3 * np.sin(t), 1.5 * np.arange(16)])
    return ContactGraph.from_coordinates(coords, cutoff=12.0, sequence="A" * 16)


@pytest.fixture
def graph_file(tmp_path, helix_graph):
    path = tmp_path / "helix.graph"
    write_graph_file(path, helix_graph)
    return path


@pytest.fixture
def subset_file(tmp_path, helix_graph):
    path = tmp_path / "subset.graph"
    write_graph_file(path, helix_graph.subgraph(helix_graph.pairs(min_separation=5)[:6]))
    return path


class TestParser:

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_source_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["reconstruct"])

    def test_sources_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["reconstruct", "--graph", "a", "--pdb", "1abc"])

    def test_defaults(self):
        args = build_parser().parse_args(["reconstruct", "--graph", "g"])
        assert args.models == 1
        assert args.scaling == "rg"
        assert not args.sample


class TestReconstructCommand:

    def test_writes_outputs(self, graph_file, tmp_path, capsys):
        pdb = tmp_path / "out.pdb"
        js = tmp_path / "out.json"
        rc = main(["reconstruct", "--graph", str(graph_file), "-n", "2",
                   "--seed", "1", "--out-pdb", str(pdb), "--json", str(js)])
        assert rc == 0
        out = capsys.readouterr().out
        assert "Reconstruction: 2 metrized models" in out
        assert pdb.read_text().count("ENDMDL") == 2
        assert len(json.loads(js.read_text())["models"]) == 2

    def test_sampling_and_ca_scaling(self, graph_file, capsys):
        rc = main(["reconstruct", "--graph", str(graph_file), "--sample",
                   "--scaling", "ca", "--seed", "2"])
        assert rc == 0
        assert "sampled" in capsys.readouterr().out

    def test_benchmark_needs_structure(self, graph_file):
        with pytest.raises(SystemExit):
            main(["reconstruct", "--graph", str(graph_file), "--benchmark"])

    def test_geometry_error_reported(self, graph_file, monkeypatch, capsys):
        def infeasible(self, *args, **kwargs):
            raise InfeasibleBoundsError(0, 7, 9.0, 5.0)

        monkeypatch.setattr(Reconstructor, "reconstruct", infeasible)
        rc = main(["reconstruct", "--graph", str(graph_file), "--seed", "0"])
        assert rc == 1
        assert "error:" in capsys.readouterr().err


    @pytest.mark.parametrize("content", [
        "#SEQUENCE: AAAA\n1 x\n",
        "1\t3\n",
        "#SEQUENCE: AAAA\n1\t9\n",
    ])
    def test_bad_graph_file_reported(self, tmp_path, capsys, content):
        path = tmp_path / "bad.graph"
        path.write_text(content)
        rc = main(["reconstruct", "--graph", str(path)])
        assert rc == 1
        assert capsys.readouterr().err.startswith("error:")


class TestScoreCommand:

    def test_score(self, graph_file, subset_file, capsys):
        rc = main(["score", "--graph", str(graph_file), "--subset", str(subset_file),
                   "--random", "3", "--seed", "0"])
        assert rc == 0
        out = capsys.readouterr().out
        assert "CM error:" in out
        assert "random CM error:" in out
        assert "DM error" not in out

    def test_length_mismatch(self, graph_file, tmp_path):
        path = tmp_path / "short.graph"
        path.write_text("#SEQUENCE: AAAA\n1\t4\n")
        with pytest.raises(SystemExit):
            main(["score", "--graph", str(graph_file), "--subset", str(path)])


class TestDistillCommand:

    def test_distill(self, graph_file, tmp_path, capsys):
        prefix = tmp_path / "run"
        rc = main(["distill", "--graph", str(graph_file), "--samples", "10",
                   "--percent", "30", "--seed", "3", "--out-prefix", str(prefix),
                   "--starting-id", "5", "--percentile", "50", "--top", "3"])
        assert rc == 0
        out = capsys.readouterr().out
        assert "Min error:" in out and "Max error:" in out
        scores = (tmp_path / "run_5.scores").read_text().splitlines()
        assert len(scores) == 10
        assert scores[0].startswith("5\t")
        assert (tmp_path / "run_5.subsets").exists()
