"""
SCM promotion workflow.

Resolves the baseline (current unless given) and candidate versions of a
model, compares them, runs the promotion gate under the current integrity
status, records the report and the decision, and flips the current version
when the gate allows it.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict

from causalcore.disagreement import DisagreementEngine, DisagreementReport, ModelReference
from causalcore.errors import InvalidClaim
from causalcore.governance.gate import PromotionGate
from causalcore.governance.integrity import IntegrityService, StaticIntegrityService
from causalcore.governance.models import IntegrityStatus, PromotionDecision, PromotionOverride
from causalcore.graph import normalize_token
from causalcore.identifiability import sanitize_list
from causalcore.persistence import PersistenceSink, persist_best_effort
from causalcore.registry import ModelRegistry

logger = logging.getLogger(__name__)


class PromotionOutcome(BaseModel):
    """Everything a promotion attempt produced."""

    model_key: str
    baseline_version: str
    candidate_version: str
    report: DisagreementReport
    decision: PromotionDecision
    integrity_status: IntegrityStatus
    promoted: bool = False
    persisted: bool = False
    dry_run: bool = False

    model_config = ConfigDict(protected_namespaces=())


class PromotionService:
    """Runs a guarded promotion against a registry.

    Example:
        >>> service = PromotionService(registry, DisagreementEngine(registry), PromotionGate())
        >>> outcome = service.promote("smoking", "v2", outcome_var="Cancer")
        >>> outcome.promoted
        False
    """

    def __init__(
        self,
        registry: ModelRegistry,
        engine: Optional[DisagreementEngine] = None,
        gate: Optional[PromotionGate] = None,
        integrity: Optional[IntegrityService] = None,
        sink: Optional[PersistenceSink] = None,
    ):
        self.registry = registry
        self.engine = engine or DisagreementEngine(registry=registry)
        self.gate = gate or PromotionGate()
        self.integrity = integrity or StaticIntegrityService()
        self.sink = sink

    def promote(
        self,
        model_key: str,
        candidate_version: str,
        outcome_var: str,
        baseline_version: Optional[str] = None,
        interventions: Sequence[str] = (),
        override: Optional[PromotionOverride] = None,
        dry_run: bool = False,
    ) -> PromotionOutcome:
        """Attempt to make ``candidate_version`` the current version.

        Args:
            model_key: Registry key of the model
            candidate_version: Version label to promote
            outcome_var: Outcome the disagreement audit is anchored on
            baseline_version: Version to compare against (current if omitted)
            interventions: Variables whose counterfactual effects are diffed
            override: Optional human override
            dry_run: Evaluate without recording or flipping anything

        Returns:
            PromotionOutcome

        Raises:
            InvalidClaim: Missing inputs or candidate equals baseline
            ModelNotFound: Unknown model or version
        """
        model_key = (model_key or "").strip()
        candidate_version = (candidate_version or "").strip()
        outcome_var = (outcome_var or "").strip()
        if not model_key:
            raise InvalidClaim("model_key is required")
        if not candidate_version:
            raise InvalidClaim("candidate_version is required")
        if not outcome_var:
            raise InvalidClaim("outcome_var is required for the pre-promotion disagreement audit")

        baseline = self.registry.get_model_version(model_key, (baseline_version or "").strip() or None)
        candidate = self.registry.get_model_version(model_key, candidate_version)
        if baseline.version.version == candidate.version.version:
            raise InvalidClaim("Candidate already equals baseline/current version.")

        report = self.engine.compare(
            ModelReference(model_key=model_key, version=baseline.version.version),
            ModelReference(model_key=model_key, version=candidate.version.version),
            outcome_var=outcome_var,
            interventions=sanitize_list(interventions),
        )

        cross_domain = normalize_token(baseline.model.domain) != normalize_token(
            candidate.model.domain
        )
        integrity_status = self.integrity.get_status()
        decision = self.gate.evaluate(
            report,
            cross_domain=cross_domain,
            override=override,
            integrity_status=integrity_status,
        )

        outcome = PromotionOutcome(
            model_key=model_key,
            baseline_version=baseline.version.version,
            candidate_version=candidate.version.version,
            report=report,
            decision=decision,
            integrity_status=integrity_status,
            dry_run=dry_run,
        )
        if dry_run:
            logger.info(
                f"Dry run for {model_key}: {baseline.version.version} -> "
                f"{candidate.version.version} {'allowed' if decision.allowed else 'blocked'}"
            )
            return outcome

        outcome.persisted = self._record(outcome, override)

        if decision.allowed:
            self.registry.set_current_version(candidate.model.model_id, candidate.version.version)
            outcome.promoted = True
            if self.sink is not None:
                persist_best_effort(
                    self.sink.record_version_flip,
                    model_key,
                    baseline.version.version,
                    candidate.version.version,
                    description="version flip",
                )
            logger.info(
                f"Promoted {model_key} from {baseline.version.version} to {candidate.version.version}"
            )

        return outcome

    def _record(self, outcome: PromotionOutcome, override: Optional[PromotionOverride]) -> bool:
        if self.sink is None:
            return False
        subject = f"{outcome.model_key}@{outcome.baseline_version}..{outcome.candidate_version}"
        report_saved = persist_best_effort(
            self.sink.record_report,
            outcome.report,
            subject,
            description="disagreement report",
        )
        audit_saved = persist_best_effort(
            self.sink.record_promotion_audit,
            outcome.decision.to_audit_record(
                outcome.model_key,
                outcome.baseline_version,
                outcome.candidate_version,
                override,
            ),
            description="promotion audit",
        )
        return report_saved and audit_saved
