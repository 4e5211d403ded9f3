"""SCM reasoning CLI commands.

Provides commands for:
- Checking identifiability of an interventional claim (identify)
- Tracing a counterfactual through a graph (trace)
- Diffing two model versions (compare)
- Guarded promotion of a candidate version (promote)
- Failure autopsy against a model (autopsy)
- Listing registered models (models)
- Verifying the audit trail (audit-verify)

Graph arguments accept a JSON file holding either ``{"nodes", "edges"}`` or a
full version record (``dag``, ``assumptions``, ``confounders``,
``validation``). Model arguments accept ``model_key`` or
``model_key@version`` resolved through the workspace registry.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from causalcore.alignment import VariableOntology
from causalcore.autopsy import AutopsyEngine, FailureEvent
from causalcore.configuration.settings import DEFAULT_CONFIG_PATH, Settings, resolve_settings
from causalcore.counterfactual import Intervention, ModelRef, build_trace_ref, trace_counterfactual
from causalcore.disagreement import (
    ComparisonSide,
    DisagreementEngine,
    DisagreementReport,
    InlineSCMSpec,
    ModelReference,
)
from causalcore.errors import CausalCoreError, InvalidClaim, PersistenceFailure, handle_error
from causalcore.governance import PromotionGate, PromotionOverride, PromotionService
from causalcore.graph import CausalGraph
from causalcore.identifiability import evaluate_intervention_gate
from causalcore.persistence import AuditLogger, AuditTrailSink, persist_best_effort
from causalcore.registry import InMemoryModelRegistry, declarations_to_strings

logger = logging.getLogger(__name__)

console = Console()
scm_app = typer.Typer(help="Structural causal model reasoning commands")


# ---------------------------------------------------------------------------
# Workspace helpers
# ---------------------------------------------------------------------------


def _settings(config_path: Path) -> Settings:
    """Settings from disk (defaults when absent) with environment overrides."""
    return resolve_settings(config_path)


def _registry(settings: Settings, registry_dir: Optional[Path]) -> InMemoryModelRegistry:
    return InMemoryModelRegistry.from_directory(
        registry_dir or settings.workspace.resolved_registry_dir
    )


def _sink(settings: Settings, audit_dir: Optional[Path]) -> Optional[AuditTrailSink]:
    """Audit sink for the workspace, or None when auditing is off or unusable."""
    if not settings.audit.enabled:
        return None
    directory = audit_dir or settings.workspace.resolved_audit_dir
    try:
        audit_logger = AuditLogger(
            output_dir=directory,
            retention_days=settings.audit.retention_days,
            max_bytes=settings.audit.max_log_bytes,
        )
    except OSError as exc:
        failure = PersistenceFailure(
            f"Audit trail unavailable at {directory}: {exc}",
            details={"audit_dir": str(directory), "error_type": type(exc).__name__},
        )
        logger.warning(f"[{failure.code}] {failure.message}")
        return None
    return AuditTrailSink(audit_logger)


def _ontology(settings: Settings, ontology_path: Optional[Path]) -> Optional[VariableOntology]:
    path = ontology_path or settings.workspace.ontology_path
    return VariableOntology.from_json(path) if path else None


def _load_inline(path: Path, model_key: Optional[str] = None) -> InlineSCMSpec:
    try:
        payload = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidClaim(f"Cannot read graph file {path}: {exc}") from exc
    if isinstance(payload, dict) and "nodes" in payload and "dag" not in payload:
        payload = {"dag": payload}
    try:
        spec = InlineSCMSpec.model_validate(payload)
    except ValidationError as exc:
        raise InvalidClaim(f"Invalid graph file {path}: {exc}") from exc
    if model_key and spec.model_key == "inline":
        spec = spec.model_copy(update={"model_key": model_key})
    return spec


def _parse_side(value: str) -> ComparisonSide:
    if Path(value).is_file():
        return _load_inline(Path(value), model_key=Path(value).stem)
    key, _, version = value.partition("@")
    return ModelReference(model_key=key.strip(), version=version.strip() or None)


def _parse_assignment(value: str) -> Tuple[str, float]:
    name, sep, raw = value.partition("=")
    if not sep or not name.strip():
        raise typer.BadParameter(f"Expected NAME=VALUE, got '{value}'")
    try:
        return name.strip(), float(raw)
    except ValueError as exc:
        raise typer.BadParameter(f"Value for '{name}' is not a number: '{raw}'") from exc


def _fail(error: Exception, output_json: bool) -> None:
    if output_json:
        payload = error.to_dict() if isinstance(error, CausalCoreError) else {"message": str(error)}
        typer.echo(json.dumps({"success": False, "error": payload}))
    else:
        console.print(f"[red]Error:[/red] {handle_error(error)}")
    raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@scm_app.command("identify")
def identify(
    graph_file: Path = typer.Argument(..., help="Graph JSON file"),
    treatment: str = typer.Option(..., "--treatment", "-t", help="Treatment variable"),
    outcome: str = typer.Option(..., "--outcome", "-o", help="Outcome variable"),
    adjust: List[str] = typer.Option([], "--adjust", "-a", help="Controlled variable (repeatable)"),
    known: List[str] = typer.Option([], "--known", "-k", help="Known confounder (repeatable)"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Decide the strongest claim class a treatment -> outcome claim may use.

    Examples:
        causalcore scm identify graph.json -t Treatment -o Outcome --known Confounder
    """
    try:
        spec = _load_inline(graph_file)
        graph = CausalGraph.from_spec(spec.dag)
    except CausalCoreError as exc:
        _fail(exc, output_json)
        return

    result = evaluate_intervention_gate(graph, treatment, outcome, adjust, known)
    if output_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    identifiability = result.identifiability
    color = {"intervention_supported": "green", "intervention_inferred": "yellow"}.get(
        result.allowed_output_class.value, "red"
    )
    console.print(
        Panel(
            f"[bold {color}]{result.allowed_output_class.value}[/bold {color}]\n{result.rationale}",
            title=f"{treatment} -> {outcome}",
        )
    )
    table = Table(show_header=True)
    table.add_column("Required confounder")
    table.add_column("Controlled")
    missing = set(identifiability.missing_confounders)
    for name in identifiability.required_confounders:
        table.add_row(name, "no" if name in missing else "yes")
    console.print(table)
    console.print(identifiability.note)


@scm_app.command("trace")
def trace(
    graph_file: Path = typer.Argument(..., help="Graph JSON file"),
    intervene: str = typer.Option(..., "--do", help="Intervention as NAME=VALUE"),
    outcome: str = typer.Option(..., "--outcome", "-o", help="Outcome variable"),
    observed: List[str] = typer.Option([], "--observed", help="Observed value NAME=VALUE (repeatable)"),
    record: bool = typer.Option(True, "--record/--no-record", help="Write the trace to the audit trail"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Config file"),
    audit_dir: Optional[Path] = typer.Option(None, help="Override audit trail directory"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Trace do(NAME=VALUE) through a graph to an outcome.

    Examples:
        causalcore scm trace graph.json --do Treatment=1 -o Outcome --observed Outcome=10
    """
    variable, value = _parse_assignment(intervene)
    observed_world = dict(_parse_assignment(item) for item in observed)
    try:
        settings = _settings(config_path)
        spec = _load_inline(graph_file, model_key=graph_file.stem)
        engine_config = settings.engine_config()
        graph = CausalGraph.from_spec(spec.dag, engine_config.graph)
        result = trace_counterfactual(
            graph,
            Intervention(variable=variable, value=value),
            outcome,
            observed_world=observed_world,
            model_ref=ModelRef(model_key=spec.model_key, version=spec.version),
            assumptions=declarations_to_strings(spec.assumptions),
            config=engine_config.counterfactual,
        )
    except CausalCoreError as exc:
        _fail(exc, output_json)
        return

    persisted = False
    sink = _sink(settings, audit_dir) if record else None
    if sink is not None:
        persisted = persist_best_effort(sink.record_trace, result, description="counterfactual trace")
    ref = build_trace_ref(result, persisted)

    if output_json:
        typer.echo(
            json.dumps(
                {
                    "trace": result.model_dump(mode="json", by_alias=True),
                    "traceRef": ref.model_dump(mode="json", by_alias=True),
                },
                indent=2,
            )
        )
        return

    table = Table(title=f"do({variable}={value}) -> {outcome}")
    table.add_column("Actual")
    table.add_column("Counterfactual")
    table.add_column("Delta")
    table.add_column("Uncertainty")
    table.add_row(
        str(result.result.actual_outcome),
        str(result.result.counterfactual_outcome),
        str(result.result.delta),
        result.computation.uncertainty.value,
    )
    console.print(table)
    for path in result.computation.affected_paths:
        console.print(f"  {path}")
    if not result.computation.affected_paths:
        console.print("[yellow]No mechanism path from intervention to outcome.[/yellow]")
    console.print(f"Trace: {ref.retrieval_path} ({'persisted' if persisted else 'not persisted'})")


@scm_app.command("compare")
def compare(
    left: str = typer.Argument(..., help="Graph JSON file or model_key[@version]"),
    right: str = typer.Argument(..., help="Graph JSON file or model_key[@version]"),
    outcome: str = typer.Option(..., "--outcome", "-o", help="Outcome variable"),
    intervention: List[str] = typer.Option([], "--intervention", "-i", help="Intervention variable (repeatable)"),
    ontology_path: Optional[Path] = typer.Option(None, "--ontology", help="Variable ontology JSON"),
    registry_dir: Optional[Path] = typer.Option(None, help="Override model registry directory"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Config file"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Explain where two SCM versions disagree.

    Examples:
        causalcore scm compare smoking@v1 smoking@v2 -o Cancer -i Smoking
        causalcore scm compare left.json right.json -o Outcome --json
    """
    try:
        settings = _settings(config_path)
        engine_config = settings.engine_config()
        engine = DisagreementEngine(
            registry=_registry(settings, registry_dir),
            ontology=_ontology(settings, ontology_path),
            config=engine_config.disagreement,
            graph_config=engine_config.graph,
            counterfactual_config=engine_config.counterfactual,
        )
        report = engine.compare(
            _parse_side(left), _parse_side(right), outcome_var=outcome, interventions=intervention
        )
    except CausalCoreError as exc:
        _fail(exc, output_json)
        return

    if output_json:
        typer.echo(report.model_dump_json(indent=2))
        return
    _print_report(report)


@scm_app.command("promote")
def promote(
    model_key: str = typer.Argument(..., help="Registry model key"),
    candidate: str = typer.Argument(..., help="Candidate version label"),
    outcome: str = typer.Option(..., "--outcome", "-o", help="Outcome variable for the disagreement audit"),
    baseline: Optional[str] = typer.Option(None, "--baseline", help="Baseline version (current if omitted)"),
    intervention: List[str] = typer.Option([], "--intervention", "-i", help="Intervention variable (repeatable)"),
    approved_by: Optional[str] = typer.Option(None, "--approved-by", help="Override approver"),
    rationale: Optional[str] = typer.Option(None, "--rationale", help="Override rationale"),
    acknowledge: List[str] = typer.Option([], "--ack", help="Acknowledged locus, e.g. edge:A->B (repeatable)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Evaluate without recording or promoting"),
    registry_dir: Optional[Path] = typer.Option(None, help="Override model registry directory"),
    audit_dir: Optional[Path] = typer.Option(None, help="Override audit trail directory"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Config file"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Promote a candidate version through the governance gate.

    Examples:
        causalcore scm promote smoking v2 -o Cancer --dry-run
        causalcore scm promote smoking v2 -o Cancer --approved-by alice \\
            --rationale "Reviewed Smoking->Cancer sign change with the data team"
    """
    override = None
    if approved_by or rationale:
        override = PromotionOverride(
            approved_by=approved_by, rationale=rationale or "", acknowledged_atoms=acknowledge
        )

    try:
        settings = _settings(config_path)
        engine_config = settings.engine_config()
        registry = _registry(settings, registry_dir)
        service = PromotionService(
            registry,
            engine=DisagreementEngine(
                registry=registry,
                ontology=_ontology(settings, None),
                config=engine_config.disagreement,
                graph_config=engine_config.graph,
                counterfactual_config=engine_config.counterfactual,
            ),
            gate=PromotionGate(engine_config.promotion),
            sink=_sink(settings, audit_dir),
        )
        outcome_record = service.promote(
            model_key,
            candidate,
            outcome_var=outcome,
            baseline_version=baseline,
            interventions=intervention,
            override=override,
            dry_run=dry_run,
        )
    except CausalCoreError as exc:
        _fail(exc, output_json)
        return

    if output_json:
        typer.echo(outcome_record.model_dump_json(indent=2))
    else:
        decision = outcome_record.decision
        _print_report(outcome_record.report)
        status = "[green]ALLOWED[/green]" if decision.allowed else "[red]BLOCKED[/red]"
        console.print(
            Panel(
                f"{status}{' (dry run)' if dry_run else ''}\n{decision.reason}",
                title=f"{model_key}: {outcome_record.baseline_version} -> {outcome_record.candidate_version}",
            )
        )
        if decision.requires_manual_override and not decision.allowed:
            console.print("[yellow]Provide --approved-by and --rationale to override.[/yellow]")
        if outcome_record.promoted:
            console.print(f"[green]Current version is now {outcome_record.candidate_version}[/green]")

    if outcome_record.decision.blocked:
        raise typer.Exit(code=2)


@scm_app.command("autopsy")
def autopsy(
    model: Optional[str] = typer.Option(None, "--model", "-m", help="model_key[@version]"),
    domain: Optional[str] = typer.Option(None, "--domain", help="Use the current model of this domain"),
    graph_file: Optional[Path] = typer.Option(None, "--graph", help="Graph JSON file instead of the registry"),
    outcome: Optional[str] = typer.Option(None, "--outcome", "-o", help="Failed outcome variable"),
    action: List[str] = typer.Option([], "--action", help="Observed action (repeatable)"),
    symptom: List[str] = typer.Option([], "--symptom", help="Observed symptom (repeatable)"),
    registry_dir: Optional[Path] = typer.Option(None, help="Override model registry directory"),
    audit_dir: Optional[Path] = typer.Option(None, help="Override audit trail directory"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Config file"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Explain a failure: root causes, failed assumptions, prevention plan.

    Examples:
        causalcore scm autopsy --graph chain.json -o C
        causalcore scm autopsy --model launch@v3 --action "skipped load test"
    """
    failure = FailureEvent(
        observed_outcome=outcome, observed_actions=action, observed_symptoms=symptom
    )
    try:
        settings = _settings(config_path)
        engine_config = settings.engine_config()
        engine = AutopsyEngine(engine_config.autopsy, sink=_sink(settings, audit_dir))
        if graph_file is not None:
            spec = _load_inline(graph_file, model_key=graph_file.stem)
            report = engine.run(
                CausalGraph.from_spec(spec.dag, engine_config.graph),
                failure,
                model_ref=ModelRef(model_key=spec.model_key, version=spec.version),
                assumptions=declarations_to_strings(spec.assumptions),
            )
        else:
            key, _, version = (model or "").partition("@")
            report = engine.run_for_model(
                _registry(settings, registry_dir),
                failure,
                model_key=key.strip() or None,
                domain=domain,
                version=version.strip() or None,
                graph_config=engine_config.graph,
            )
    except CausalCoreError as exc:
        _fail(exc, output_json)
        return

    if output_json:
        typer.echo(report.model_dump_json(indent=2))
        return

    table = Table(title=f"Necessity scores for {report.outcome}")
    table.add_column("Factor")
    table.add_column("Score", justify="right")
    table.add_column("Root cause")
    roots = set(report.root_causes)
    for item in report.necessity_scores:
        table.add_row(item.factor, f"{item.score:.3f}", "yes" if item.factor in roots else "")
    console.print(table)
    if report.failed_assumptions:
        console.print("[bold]Failed assumptions[/bold]")
        for item in report.failed_assumptions:
            console.print(f"  - {item}")
    console.print("[bold]Prevention plan[/bold]")
    for index, step in enumerate(report.prevention_plan, start=1):
        console.print(f"  {index}. {step}")


@scm_app.command("models")
def list_models(
    registry_dir: Optional[Path] = typer.Option(None, help="Override model registry directory"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Config file"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List registered models and their current versions."""
    try:
        registry = _registry(_settings(config_path), registry_dir)
    except CausalCoreError as exc:
        _fail(exc, output_json)
        return

    rows = []
    for model in registry.list_models():
        versions = registry.list_versions(model.model_key)
        current = next((item.version for item in versions if item.is_current), None)
        rows.append(
            {
                "modelKey": model.model_key,
                "domain": model.domain,
                "status": model.status.value,
                "currentVersion": current,
                "versions": [item.version for item in versions],
            }
        )

    if output_json:
        typer.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="SCM models")
    table.add_column("Model")
    table.add_column("Domain")
    table.add_column("Status")
    table.add_column("Current")
    table.add_column("Versions")
    for row in rows:
        table.add_row(
            row["modelKey"],
            row["domain"],
            row["status"],
            row["currentVersion"] or "-",
            ", ".join(row["versions"]),
        )
    console.print(table)


@scm_app.command("audit-verify")
def audit_verify(
    audit_dir: Optional[Path] = typer.Option(None, help="Override audit trail directory"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Config file"),
) -> None:
    """Verify the hash chain of the audit trail."""
    try:
        settings = _settings(config_path)
        audit_logger = AuditLogger(output_dir=audit_dir or settings.workspace.resolved_audit_dir)
    except CausalCoreError as exc:
        _fail(exc, output_json=False)
    except OSError as exc:
        _fail(PersistenceFailure(f"Audit trail unavailable: {exc}"), output_json=False)
    if audit_logger.verify():
        console.print("[green]Audit chain intact[/green]")
        return
    console.print("[red]Audit chain verification failed[/red]")
    raise typer.Exit(code=1)


def _print_report(report: DisagreementReport) -> None:
    quality = report.alignment_quality
    console.print(
        Panel(
            f"{report.summary}\n"
            f"Alignment coverage {quality.coverage} (threshold {quality.threshold}"
            f"{', cross-domain' if quality.cross_domain else ''})",
            title=f"Disagreement score {report.score}",
        )
    )
    if not report.atoms:
        return
    table = Table(show_header=True)
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Locus")
    table.add_column("Left")
    table.add_column("Right")
    colors = {"high": "red", "medium": "yellow", "low": "dim"}
    for atom in report.atoms:
        severity = atom.severity.value
        table.add_row(
            f"[{colors[severity]}]{severity}[/{colors[severity]}]",
            atom.type.value,
            atom.locus_key or "-",
            atom.left_value,
            atom.right_value,
        )
    console.print(table)
    if report.unknown_variables:
        console.print(f"[yellow]Unknown variables:[/yellow] {', '.join(report.unknown_variables)}")
