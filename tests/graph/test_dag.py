"""Tests for causal graph hydration and traversal."""

from __future__ import annotations

import logging
import time

import pytest

from causalcore.config import GraphConfig
from causalcore.errors import GraphTooLarge, InvalidClaim, MalformedGraph
from causalcore.graph import CausalEdge, CausalGraph, DagSpec, EdgeSign, NodeKind


class TestHydration:
    """Graph construction and validation."""

    def test_hydrate_accepts_names_dicts_and_edge_aliases(self):
        graph = CausalGraph.hydrate(
            ["A", {"name": "B", "kind": "latent"}, {"id": "C"}],
            [{"from": "A", "to": "B"}, {"source": "B", "target": "C", "sign": "-"}],
        )

        assert graph.node_names == ["A", "B", "C"]
        assert graph.node("B").kind == NodeKind.LATENT
        assert graph.edges_between("B", "C")[0].sign == EdgeSign.NEGATIVE
        assert len(graph) == 3

    def test_cycle_rejected(self):
        with pytest.raises(MalformedGraph, match="cycle"):
            CausalGraph.hydrate(
                ["A", "B", "C"],
                [
                    {"from": "A", "to": "B"},
                    {"from": "B", "to": "C"},
                    {"from": "C", "to": "A"},
                ],
            )

    def test_dangling_edge_rejected(self):
        with pytest.raises(MalformedGraph) as exc_info:
            CausalGraph.hydrate(["A"], [{"from": "A", "to": "Ghost"}])

        assert exc_info.value.details["node"] == "Ghost"

    def test_duplicate_node_rejected(self):
        with pytest.raises(MalformedGraph, match="Duplicate node"):
            CausalGraph.hydrate(["A", "A"], [])

    def test_self_loop_rejected(self):
        with pytest.raises(MalformedGraph):
            CausalGraph.hydrate(["A"], [{"from": "A", "to": "A"}])

    def test_identical_duplicate_edge_rejected(self):
        edge = {"from": "A", "to": "B", "sign": "positive"}
        with pytest.raises(MalformedGraph, match="Duplicate edge"):
            CausalGraph.hydrate(["A", "B"], [edge, dict(edge)])

    def test_parallel_edges_with_different_metadata_kept(self):
        graph = CausalGraph.hydrate(
            ["A", "B"],
            [
                {"from": "A", "to": "B", "sign": "positive"},
                {"from": "A", "to": "B", "sign": "negative"},
            ],
        )

        assert len(graph.edges_between("A", "B")) == 2
        assert graph.children("A") == ["B"]

    def test_too_many_nodes(self):
        with pytest.raises(GraphTooLarge) as exc_info:
            CausalGraph.hydrate(["A", "B", "C"], [], GraphConfig(max_nodes=2))

        assert isinstance(exc_info.value, MalformedGraph)
        assert exc_info.value.details == {"node_count": 3, "maximum": 2}

    def test_from_spec_rejects_non_mapping(self):
        with pytest.raises(MalformedGraph):
            CausalGraph.from_spec(["A", "B"])

    def test_from_spec_round_trip(self, confounded_graph):
        spec = confounded_graph.to_spec()

        assert spec["edges"][0]["from"] == "Confounder"
        rebuilt = CausalGraph.from_spec(DagSpec.model_validate(spec))
        assert rebuilt.node_names == confounded_graph.node_names
        assert len(rebuilt.edges) == 3


class TestLookup:
    def test_resolve_is_case_and_punctuation_insensitive(self, confounded_graph):
        assert confounded_graph.resolve("treatment") == "Treatment"
        assert confounded_graph.resolve(" Out-come ") == "Outcome"
        assert confounded_graph.resolve("Weather") is None
        assert "outcome" in confounded_graph

    def test_require_unknown_raises_invalid_claim(self, confounded_graph):
        with pytest.raises(InvalidClaim):
            confounded_graph.require("Weather")


class TestTraversal:
    def test_topological_order(self, chain_graph):
        assert chain_graph.topological_order() == ["A", "B", "C"]

    def test_ancestors_and_descendants(self, confounded_graph):
        assert confounded_graph.ancestors_of("Outcome") == {"Confounder", "Treatment"}
        assert confounded_graph.descendants_of("Confounder") == {"Treatment", "Outcome"}
        assert confounded_graph.ancestors_avoiding("Outcome", ["Treatment"]) == {"Confounder"}

    def test_mediators(self, chain_graph):
        assert chain_graph.mediators("A", "C") == {"B"}
        assert chain_graph.has_path("A", "C")
        assert not chain_graph.has_path("C", "A")

    def test_exogenous_roots(self):
        graph = CausalGraph.hydrate(
            ["A", {"name": "U", "kind": "exogenous"}, "B"],
            [{"from": "A", "to": "B"}, {"from": "B", "to": "U"}],
        )
        assert graph.exogenous_roots() == ["A", "U"]

    def test_paths_between_respects_cap(self):
        middle = ["B1", "B2", "B3"]
        edges = [{"from": "A", "to": name} for name in middle]
        edges += [{"from": name, "to": "C"} for name in middle]
        graph = CausalGraph.hydrate(["A", *middle, "C"], edges)

        assert len(list(graph.paths_between("A", "C"))) == 3
        assert len(list(graph.paths_between("A", "C", max_paths=2))) == 2

    def test_no_path_yields_nothing(self, chain_graph):
        assert list(chain_graph.paths_between("C", "A")) == []


def test_d_separation_by_conditioning_on_mediator(chain_graph):
    unconditioned = chain_graph.check_d_separation("A", "C")
    conditioned = chain_graph.check_d_separation("A", "C", ["B"])

    assert not unconditioned.d_separated
    assert unconditioned.active_paths == [["A", "B", "C"]]
    assert conditioned.d_separated


def test_edge_strength_is_clamped():
    assert CausalEdge(source="A", target="B", strength=5.0).effective_strength == 2.0
    assert CausalEdge(source="A", target="B", strength=0.0).effective_strength == 0.1
    assert CausalEdge(source="A", target="B").effective_strength == 1.0


def complete_dag(size: int) -> tuple:
    names = [f"N{index}" for index in range(size)]
    edges = [
        {"from": names[i], "to": names[j]} for i in range(size) for j in range(i + 1, size)
    ]
    return names, edges


class TestUndirectedSearchBounds:
    """d-separation search stays bounded on dense graphs."""

    def test_unreachable_target_returns_immediately(self):
        names, edges = complete_dag(30)
        graph = CausalGraph.hydrate([*names, "Y"], edges)

        started = time.perf_counter()
        result = graph.check_d_separation("N0", "Y")

        assert time.perf_counter() - started < 1.0
        assert result.d_separated
        assert result.active_paths == []

    def test_exploration_budget_stops_dense_search(self, caplog):
        names, edges = complete_dag(30)
        config = GraphConfig(max_paths_per_query=1_000_000, max_explored_paths=500)
        graph = CausalGraph.hydrate(names, edges, config)

        with caplog.at_level(logging.WARNING, logger="causalcore.graph.dag"):
            started = time.perf_counter()
            result = graph.check_d_separation("N0", "N29")

        assert time.perf_counter() - started < 1.0
        assert len(result.active_paths) < 500
        assert "stopped after exploring 500 partial paths" in caplog.text
