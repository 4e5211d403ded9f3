"""Tests for the causal disagreement engine."""

from __future__ import annotations

import pytest

from causalcore.alignment import OntologyVariable, VariableOntology
from causalcore.disagreement import (
    AtomType,
    DisagreementEngine,
    InlineSCMSpec,
    ModelReference,
    Severity,
)
from causalcore.errors import InvalidClaim, ModelNotFound


def inline(nodes, edges, **extra) -> InlineSCMSpec:
    return InlineSCMSpec.model_validate({"dag": {"nodes": nodes, "edges": edges}, **extra})


def atom_facts(report):
    return [(atom.type, atom.severity, atom.left_value, atom.right_value) for atom in report.atoms]


@pytest.fixture
def engine(registry) -> DisagreementEngine:
    return DisagreementEngine(registry=registry)


class TestRegistryComparison:
    """smoking@v1 vs smoking@v2 differ only in the sign of Tar -> Cancer."""

    def test_identical_versions_have_no_atoms(self, engine):
        report = engine.compare(
            ModelReference(model_key="smoking", version="v1"),
            ModelReference(model_key="smoking", version="v1"),
            outcome_var="Cancer",
        )

        assert report.atoms == []
        assert report.score == 0.0
        assert report.summary.startswith("No material causal disagreement")
        assert report.alignment_quality.coverage == 1.0

    def test_sign_flip_is_high_severity(self, engine):
        report = engine.compare(
            ModelReference(model_key="smoking", version="v1"),
            ModelReference(model_key="smoking", version="v2"),
            outcome_var="Cancer",
        )

        assert atom_facts(report) == [
            (AtomType.EDGE_SIGN, Severity.HIGH, "positive", "negative"),
        ]
        atom = report.atoms[0]
        assert atom.locus_key == "edge:Tar->Cancer"
        assert report.score == 0.25
        assert report.left_ref.label() == "smoking@v1"
        assert report.right_ref.label() == "smoking@v2"

    def test_intervention_diff_adds_counterfactual_atom(self, engine):
        report = engine.compare(
            ModelReference(model_key="smoking", version="v1"),
            ModelReference(model_key="smoking", version="v2"),
            outcome_var="Cancer",
            interventions=["Smoking"],
        )

        counterfactual = [atom for atom in report.atoms if atom.type == AtomType.COUNTERFACTUAL]
        assert len(counterfactual) == 1
        assert counterfactual[0].variable == "Smoking"
        assert counterfactual[0].severity == Severity.MEDIUM
        assert counterfactual[0].left_value == "1.0000"
        assert counterfactual[0].right_value == "-1.0000"
        assert report.score == 0.375

    def test_swapping_sides_mirrors_values(self, engine):
        v1 = ModelReference(model_key="smoking", version="v1")
        v2 = ModelReference(model_key="smoking", version="v2")

        forward = engine.compare(v1, v2, outcome_var="Cancer", interventions=["Smoking"])
        backward = engine.compare(v2, v1, outcome_var="Cancer", interventions=["Smoking"])

        assert backward.score == forward.score
        assert atom_facts(backward) == atom_facts(forward.swapped())
        assert [atom.epistemic_weight for atom in backward.atoms] == [
            atom.epistemic_weight for atom in forward.atoms
        ]

    def test_unknown_model_raises(self, engine):
        with pytest.raises(ModelNotFound):
            engine.compare(
                ModelReference(model_key="smoking"),
                ModelReference(model_key="weather"),
                outcome_var="Cancer",
            )


class TestInlineComparison:
    def test_reversed_edge_is_one_direction_atom(self):
        left = inline(["X", "Y", "Z"], [{"from": "X", "to": "Y"}, {"from": "Y", "to": "Z"}])
        right = inline(["X", "Y", "Z"], [{"from": "Y", "to": "X"}, {"from": "Y", "to": "Z"}])

        report = DisagreementEngine().compare(left, right, outcome_var="Z")

        assert atom_facts(report) == [
            (AtomType.EDGE_DIRECTION, Severity.HIGH, "X -> Y", "Y -> X"),
        ]
        assert report.score == pytest.approx(0.3333)

    def test_missing_edge_is_presence_atom(self):
        nodes = ["X", "Y", "P", "Q"]
        left = inline(nodes, [{"from": "X", "to": "Y"}, {"from": "P", "to": "Q"}])
        right = inline(nodes, [{"from": "X", "to": "Y"}])

        report = DisagreementEngine().compare(left, right, outcome_var="Y")

        assert atom_facts(report) == [
            (AtomType.EDGE_PRESENCE, Severity.LOW, "present", "absent"),
        ]
        assert report.score == 0.1

    def test_confounder_and_assumption_divergence(self, smoking_dag_factory):
        dag = smoking_dag_factory()
        left = InlineSCMSpec(
            dag=dag,
            confounders=["Genetics"],
            assumptions=["Tar fully mediates smoking"],
        )
        right = InlineSCMSpec(dag=dag)

        report = DisagreementEngine().compare(left, right, outcome_var="Cancer")
        by_type = {atom.type: atom for atom in report.atoms}

        confounder = by_type[AtomType.CONFOUNDER]
        assert confounder.severity == Severity.HIGH
        assert (confounder.left_value, confounder.right_value) == ("tracked", "not tracked")

        assumption = by_type[AtomType.ASSUMPTION]
        assert assumption.variable == "Tar"
        assert assumption.severity == Severity.HIGH
        assert assumption.right_value == "missing"

    def test_intervention_path_in_one_model_only(self):
        left = inline(["X", "Y"], [{"from": "X", "to": "Y"}])
        right = inline(["X", "Y"], [])

        report = DisagreementEngine().compare(left, right, outcome_var="Y", interventions=["X"])
        intervention = [atom for atom in report.atoms if atom.type == AtomType.INTERVENTION]

        assert len(intervention) == 1
        assert intervention[0].right_value == "no mechanism path"

    def test_aliases_align_through_ontology(self):
        ontology = VariableOntology(
            [
                OntologyVariable(canonical_name="Smoking", aliases=["tobacco_use"]),
                OntologyVariable(canonical_name="Cancer"),
            ]
        )
        left = inline(["tobacco_use", "Cancer"], [{"from": "tobacco_use", "to": "Cancer"}])
        right = inline(["Smoking", "Cancer"], [{"from": "Smoking", "to": "Cancer"}])

        report = DisagreementEngine(ontology=ontology).compare(left, right, outcome_var="Cancer")

        assert report.atoms == []
        assert report.unknown_variables == []

    def test_spelling_variants_report_same_locus_either_way(self):
        left = inline(
            ["smoking", "Cancer"], [{"from": "smoking", "to": "Cancer", "sign": "positive"}]
        )
        right = inline(
            ["Smoking", "Cancer"], [{"from": "Smoking", "to": "Cancer", "sign": "negative"}]
        )
        engine = DisagreementEngine()

        forward = engine.compare(left, right, outcome_var="Cancer", interventions=["smoking"])
        backward = engine.compare(right, left, outcome_var="Cancer", interventions=["Smoking"])

        forward_loci = [atom.locus_key for atom in forward.atoms]
        assert forward_loci == [atom.locus_key for atom in backward.atoms]
        assert "edge:Smoking->Cancer" in forward_loci
        assert forward.outcome_var == backward.outcome_var == "Cancer"

    def test_low_alignment_coverage_adds_high_atom(self):
        ontology = VariableOntology([OntologyVariable(canonical_name="Y")])
        left = inline(["X", "Y"], [{"from": "X", "to": "Y"}])
        right = inline(["X", "Y"], [{"from": "X", "to": "Y"}])

        report = DisagreementEngine(ontology=ontology).compare(left, right, outcome_var="Y")

        assert report.unknown_variables == ["X"]
        assert report.alignment_quality.below_threshold
        assert atom_facts(report) == [(AtomType.ASSUMPTION, Severity.HIGH, "50%", ">=90%")]

    def test_cross_domain_raises_threshold(self):
        left = inline(["X", "Y"], [{"from": "X", "to": "Y"}], domain="biology")
        right = inline(["X", "Y"], [{"from": "X", "to": "Y"}], domain="economics")

        report = DisagreementEngine().compare(left, right, outcome_var="Y")

        assert report.alignment_quality.cross_domain
        assert report.alignment_quality.threshold == 0.95

    def test_unknown_intervention_is_skipped(self):
        spec = inline(["X", "Y"], [{"from": "X", "to": "Y"}])

        report = DisagreementEngine().compare(spec, spec, outcome_var="Y", interventions=["Weather"])

        assert "Weather" in report.unknown_variables
        assert report.atoms == []

    def test_epistemic_weights_never_exceed_one(self, smoking_dag_factory):
        left = InlineSCMSpec(dag=smoking_dag_factory(), confounders=["Genetics"])
        right = InlineSCMSpec(dag=smoking_dag_factory("negative"))

        report = DisagreementEngine().compare(left, right, outcome_var="Cancer", interventions=["Smoking"])

        for atom in report.atoms:
            weight = atom.epistemic_weight
            assert weight.data_grounded + weight.mechanism_grounded + weight.assumption_grounded <= 1.0


class TestInvalidComparisons:
    def test_blank_outcome(self):
        spec = inline(["X", "Y"], [])
        with pytest.raises(InvalidClaim):
            DisagreementEngine().compare(spec, spec, outcome_var=" ")

    def test_outcome_missing_from_both(self):
        spec = inline(["X", "Y"], [])
        with pytest.raises(InvalidClaim):
            DisagreementEngine().compare(spec, spec, outcome_var="Z")

    def test_registry_reference_without_registry(self):
        spec = inline(["X", "Y"], [])
        with pytest.raises(InvalidClaim):
            DisagreementEngine().compare(ModelReference(model_key="smoking"), spec, outcome_var="Y")
