"""
Scientific integrity status.

Three required checks gate every promotion:

- benchmark_sustained: the latest N completed full-suite benchmark runs all
  passed their compliance gate
- hypothesis_lifecycle_auditable: hypothesis events show a complete
  propose -> test -> falsify/retract loop with no malformed events
- deterministic_trace_provenance: enough recent counterfactual traces were
  computed deterministically

If any check fails, ``freeze_promotion`` is set.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol, runtime_checkable

from causalcore.counterfactual.models import ComputationMethod
from causalcore.governance.models import (
    BenchmarkCheck,
    BenchmarkRunSnapshot,
    ChecklistItem,
    HypothesisEventSnapshot,
    IntegrityCheckId,
    IntegrityChecks,
    IntegrityStatus,
    LifecycleCheck,
    TraceProvenanceCheck,
    TraceSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_FULL_SUITE_PASSES = 3
DEFAULT_MIN_DETERMINISTIC_TRACES = 3
DEFAULT_MIN_DETERMINISTIC_COVERAGE = 0.95

FULL_SUITE = "full_suite"


@runtime_checkable
class IntegrityService(Protocol):
    def get_status(self) -> IntegrityStatus:
        ...


class StaticIntegrityService:
    """Integrity service returning a fixed status."""

    def __init__(self, status: Optional[IntegrityStatus] = None):
        self._status = status or IntegrityStatus.passing()

    def get_status(self) -> IntegrityStatus:
        return self._status


def evaluate_scientific_integrity(
    benchmark_runs: Iterable[BenchmarkRunSnapshot],
    hypothesis_events: Iterable[HypothesisEventSnapshot],
    counterfactual_traces: Iterable[TraceSnapshot],
    required_full_suite_passes: int = DEFAULT_REQUIRED_FULL_SUITE_PASSES,
    minimum_deterministic_traces: int = DEFAULT_MIN_DETERMINISTIC_TRACES,
    minimum_deterministic_coverage: float = DEFAULT_MIN_DETERMINISTIC_COVERAGE,
) -> IntegrityStatus:
    """Build an IntegrityStatus from benchmark, lifecycle and trace snapshots."""
    required_runs = max(1, required_full_suite_passes)
    recent_runs = sorted(
        (
            run
            for run in benchmark_runs
            if run.suite_name == FULL_SUITE and run.status == "completed"
        ),
        key=lambda run: run.created_at,
        reverse=True,
    )[:required_runs]
    passed_runs = sum(1 for run in recent_runs if run.compliance_passed)
    benchmark_pass = len(recent_runs) >= required_runs and passed_runs == required_runs

    lifecycle = LifecycleCheck(passed=False)
    for event in hypothesis_events:
        state = (event.state or "").strip()
        if not (event.hypothesis_id or "").strip() or not (event.rationale or "").strip() or not state:
            lifecycle.malformed_events += 1
            continue
        if state in ("proposed", "tested", "falsified", "retracted"):
            setattr(lifecycle, state, getattr(lifecycle, state) + 1)
    lifecycle.passed = (
        lifecycle.malformed_events == 0
        and lifecycle.proposed > 0
        and lifecycle.tested > 0
        and lifecycle.falsified + lifecycle.retracted > 0
    )

    minimum_traces = max(1, minimum_deterministic_traces)
    traces = list(counterfactual_traces)
    deterministic = sum(
        1
        for trace in traces
        if (trace.computation_method or "").strip()
        == ComputationMethod.DETERMINISTIC_GRAPH_DIFF.value
    )
    coverage = deterministic / len(traces) if traces else 0.0
    trace_pass = deterministic >= minimum_traces and coverage >= minimum_deterministic_coverage

    checklist = [
        ChecklistItem(
            id=IntegrityCheckId.BENCHMARK_SUSTAINED,
            title="Sustained benchmark compliance",
            passed=benchmark_pass,
            reason=(
                f"Latest {required_runs} full-suite benchmark runs passed compliance gate."
                if benchmark_pass
                else f"Need {required_runs} consecutive full-suite compliance passes "
                f"(observed {passed_runs}/{required_runs})."
            ),
        ),
        ChecklistItem(
            id=IntegrityCheckId.HYPOTHESIS_LIFECYCLE_AUDITABLE,
            title="Auditable hypothesis lifecycle loop",
            passed=lifecycle.passed,
            reason=(
                "Observed propose -> test -> falsify/retract lifecycle evidence without malformed events."
                if lifecycle.passed
                else "Lifecycle evidence is incomplete or malformed; require proposed, tested, "
                "and falsified/retracted events."
            ),
        ),
        ChecklistItem(
            id=IntegrityCheckId.DETERMINISTIC_TRACE_PROVENANCE,
            title="Deterministic counterfactual trace provenance",
            passed=trace_pass,
            reason=(
                f"Deterministic trace coverage {round(coverage * 100)}% with {deterministic} recent traces."
                if trace_pass
                else f"Require >={round(minimum_deterministic_coverage * 100)}% deterministic trace "
                f"coverage and >={minimum_traces} recent deterministic traces."
            ),
        ),
    ]

    overall_pass = all(item.passed for item in checklist)
    if not overall_pass:
        failing = [item.id.value for item in checklist if not item.passed]
        logger.warning(f"Scientific integrity checks failing: {', '.join(failing)}")

    return IntegrityStatus(
        overall_pass=overall_pass,
        freeze_promotion=not overall_pass,
        checks=IntegrityChecks(
            benchmark_sustained=BenchmarkCheck(
                passed=benchmark_pass,
                required_runs=required_runs,
                observed_runs=len(recent_runs),
                passed_runs=passed_runs,
            ),
            hypothesis_lifecycle_auditable=lifecycle,
            deterministic_trace_provenance=TraceProvenanceCheck(
                passed=trace_pass,
                total_recent_traces=len(traces),
                deterministic_traces=deterministic,
                deterministic_coverage=round(coverage, 4),
                required_coverage=round(minimum_deterministic_coverage, 4),
                minimum_deterministic_traces=minimum_traces,
            ),
        ),
        checklist=checklist,
    )
