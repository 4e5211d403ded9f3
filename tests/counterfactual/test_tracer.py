"""Tests for counterfactual tracing and Rung 1/2 queries."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from causalcore.config import CounterfactualConfig
from causalcore.counterfactual import (
    ComputationMethod,
    Intervention,
    ModelRef,
    Uncertainty,
    build_trace_ref,
    query_association,
    query_intervention,
    sanitize_observed_world,
    trace_counterfactual,
)
from causalcore.errors import InvalidClaim
from causalcore.graph import CausalGraph


@pytest.fixture
def negative_graph() -> CausalGraph:
    return CausalGraph.hydrate(
        ["Price", "Demand"],
        [{"from": "Price", "to": "Demand", "sign": "-", "mechanism": "substitution"}],
    )


class TestTraceCounterfactual:
    """do(X = x) propagation and trace contents."""

    def test_direct_effect_shifts_outcome(self, confounded_graph):
        trace = trace_counterfactual(
            confounded_graph,
            Intervention(variable="Treatment", value=1.0),
            "Outcome",
            observed_world={"Treatment": 0.0, "Outcome": 10.0},
        )

        assert trace.result.actual_outcome == 10.0
        assert trace.result.counterfactual_outcome == 11.0
        assert trace.result.delta == 1.0
        assert trace.computation.affected_paths == ["Treatment -> Outcome"]
        assert trace.computation.method == ComputationMethod.DETERMINISTIC_GRAPH_DIFF
        assert trace.has_mechanism_path

    def test_intervening_at_observed_value_changes_nothing(self, confounded_graph):
        trace = trace_counterfactual(
            confounded_graph,
            Intervention(variable="Treatment", value=3.0),
            "Outcome",
            observed_world={"Treatment": 3.0, "Outcome": 4.0},
        )

        assert trace.result.delta == 0.0
        assert trace.result.counterfactual_outcome == trace.result.actual_outcome

    def test_negative_edge_flips_sign(self, negative_graph):
        trace = trace_counterfactual(
            negative_graph, Intervention(variable="Price", value=2.0), "Demand"
        )

        assert trace.result.delta == -2.0
        assert trace.computation.uncertainty == Uncertainty.LOW

    def test_undeclared_mechanism_is_medium_uncertainty(self, confounded_graph):
        trace = trace_counterfactual(
            confounded_graph, Intervention(variable="Treatment", value=1.0), "Outcome"
        )
        assert trace.computation.uncertainty == Uncertainty.MEDIUM

    def test_no_path_is_high_uncertainty_and_zero_delta(self, confounded_graph):
        trace = trace_counterfactual(
            confounded_graph,
            Intervention(variable="Outcome", value=5.0),
            "Treatment",
            observed_world={"Treatment": 2.0},
        )

        assert trace.result.delta == 0.0
        assert trace.result.counterfactual_outcome == 2.0
        assert trace.computation.uncertainty == Uncertainty.HIGH
        assert not trace.has_mechanism_path

    def test_chain_propagates_through_mediator(self, chain_graph):
        trace = trace_counterfactual(chain_graph, Intervention(variable="A", value=2.0), "C")

        assert trace.result.delta == 2.0
        assert trace.computation.affected_paths == ["A -> B -> C"]

    def test_parallel_edges_each_contribute(self):
        graph = CausalGraph.hydrate(
            ["X", "Y"],
            [
                {"from": "X", "to": "Y", "sign": "positive"},
                {"from": "X", "to": "Y", "sign": "negative"},
            ],
        )
        trace = trace_counterfactual(graph, Intervention(variable="X", value=1.0), "Y")

        assert trace.result.delta == 0.0

    def test_sensitivity_scales_effect(self, chain_graph):
        trace = trace_counterfactual(
            chain_graph,
            Intervention(variable="A", value=1.0),
            "C",
            config=CounterfactualConfig(sensitivity=0.5),
        )
        assert trace.result.delta == 0.25

    def test_names_resolve_and_ids_default(self, confounded_graph):
        trace = trace_counterfactual(
            confounded_graph, Intervention(variable="treatment", value=1.0), "OUTCOME"
        )

        assert trace.query.intervention.variable == "Treatment"
        assert trace.query.outcome == "Outcome"
        assert trace.model_ref == ModelRef(model_key="inline", version="inline")
        assert trace.trace_id

    def test_trace_is_frozen(self, confounded_graph):
        trace = trace_counterfactual(
            confounded_graph,
            Intervention(variable="Treatment", value=1.0),
            "Outcome",
            trace_id="trace-1",
        )
        with pytest.raises(ValidationError):
            trace.trace_id = "other"

    def test_trace_serializes_camel_case(self, confounded_graph):
        trace = trace_counterfactual(
            confounded_graph,
            Intervention(variable="Treatment", value=1.0),
            "Outcome",
            model_ref=ModelRef(model_key="demo", version="v3"),
            assumptions=["No selection bias", " "],
            trace_id="trace-1",
        )
        payload = trace.model_dump(mode="json", by_alias=True)

        assert payload["traceId"] == "trace-1"
        assert payload["modelRef"] == {"modelKey": "demo", "version": "v3"}
        assert payload["result"]["counterfactualOutcome"] == 1.0
        assert payload["assumptions"] == ["No selection bias"]


class TestInvalidQueries:
    def test_unknown_variable(self, confounded_graph):
        with pytest.raises(InvalidClaim):
            trace_counterfactual(
                confounded_graph, Intervention(variable="Weather", value=1.0), "Outcome"
            )

    def test_same_variable_and_outcome(self, confounded_graph):
        with pytest.raises(InvalidClaim):
            trace_counterfactual(
                confounded_graph, Intervention(variable="Outcome", value=1.0), "outcome"
            )

    def test_non_finite_value(self, confounded_graph):
        with pytest.raises(InvalidClaim):
            trace_counterfactual(
                confounded_graph,
                Intervention(variable="Treatment", value=math.inf),
                "Outcome",
            )


def test_sanitize_observed_world_drops_bad_values():
    cleaned = sanitize_observed_world(
        {"A": 1, " B ": 2.5, "": 3.0, "C": True, "D": math.nan, "E": "7"}
    )
    assert cleaned == {"A": 1.0, "B": 2.5}


def test_trace_ref_points_at_retrieval_path(confounded_graph):
    trace = trace_counterfactual(
        confounded_graph,
        Intervention(variable="Treatment", value=1.0),
        "Outcome",
        trace_id="abc",
    )
    ref = build_trace_ref(trace, persisted=True)

    assert ref.retrieval_path == "/scm/counterfactual-traces/abc"
    assert ref.persisted is True
    assert ref.uncertainty == trace.computation.uncertainty


def test_query_association(confounded_graph):
    result = query_association(confounded_graph, "Treatment", "Outcome", {"Treatment": 2.0})

    assert result.estimand == "P(Outcome | Treatment)"
    assert result.value == 2.0
    assert result.path == ["Treatment", "Outcome"]
    assert "Observational" in result.note


def test_query_association_without_path_is_zero(chain_graph):
    result = query_association(chain_graph, "C", "A", {"C": 4.0})

    assert result.value == 0.0
    assert result.path == []


def test_query_intervention(confounded_graph):
    result = query_intervention(
        confounded_graph,
        "Treatment",
        3.0,
        "Outcome",
        baseline={"Treatment": 1.0, "Outcome": 5.0},
    )

    assert result.estimand == "P(Outcome | do(Treatment=3.0))"
    assert result.baseline_outcome == 5.0
    assert result.delta == 2.0
    assert result.intervened_outcome == 7.0
    assert result.affected_nodes == ["Outcome"]
