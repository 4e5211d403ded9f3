"""Promotion governance models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from causalcore.counterfactual.models import ComputationMethod


class PromotionOverride(BaseModel):
    """Human sign-off allowing a promotion despite high-severity atoms.

    Valid only with a named approver and a rationale of at least
    ``min_rationale_length`` characters.
    """

    model_config = ConfigDict(populate_by_name=True)

    approved_by: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("approved_by", "approvedBy")
    )
    rationale: str = ""
    acknowledged_atoms: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("acknowledged_atoms", "acknowledgedAtoms"),
        description="Locus keys such as 'edge:A->B' or 'variable:X'",
    )

    def is_valid(self, min_rationale_length: int = 20) -> bool:
        approver = (self.approved_by or "").strip()
        return bool(approver) and len(self.rationale.strip()) >= min_rationale_length


class PromotionDecision(BaseModel):
    """Outcome of the promotion gate plus the facts an audit record needs."""

    allowed: bool
    blocked: bool
    reason: str
    requires_manual_override: bool = False
    override_used: bool = False
    integrity_frozen: bool = False
    high_severity_atoms: int = 0
    medium_severity_atoms: int = 0
    low_severity_atoms: int = 0
    unresolved_high_severity_atoms: int = 0
    acknowledged_atoms: List[str] = Field(default_factory=list)
    alignment_coverage: float = 0.0
    required_alignment_coverage: float = 0.0
    cross_domain: bool = False
    unknown_variables: List[str] = Field(default_factory=list)

    def to_audit_record(
        self,
        model_key: str,
        from_version: Optional[str],
        to_version: str,
        override: Optional[PromotionOverride] = None,
    ) -> Dict[str, Any]:
        """Flat payload describing this decision for the audit trail."""
        return {
            "model_key": model_key,
            "from_version": from_version,
            "to_version": to_version,
            "allowed": self.allowed,
            "reason": self.reason,
            "override_used": self.override_used,
            "override_approved_by": override.approved_by if override and self.override_used else None,
            "override_rationale": override.rationale if override and self.override_used else None,
            "integrity_frozen": self.integrity_frozen,
            "gate": self.model_dump(mode="json"),
        }


# ---------------------------------------------------------------------------
# Scientific integrity
# ---------------------------------------------------------------------------


class IntegrityCheckId(str, Enum):
    BENCHMARK_SUSTAINED = "benchmark_sustained"
    HYPOTHESIS_LIFECYCLE_AUDITABLE = "hypothesis_lifecycle_auditable"
    DETERMINISTIC_TRACE_PROVENANCE = "deterministic_trace_provenance"


class ChecklistItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: IntegrityCheckId
    title: str
    required: bool = True
    passed: bool = Field(..., validation_alias=AliasChoices("passed", "pass"))
    reason: str


class BenchmarkCheck(BaseModel):
    passed: bool
    required_runs: int
    observed_runs: int
    passed_runs: int


class LifecycleCheck(BaseModel):
    passed: bool
    proposed: int = 0
    tested: int = 0
    falsified: int = 0
    retracted: int = 0
    malformed_events: int = 0


class TraceProvenanceCheck(BaseModel):
    passed: bool
    total_recent_traces: int
    deterministic_traces: int
    deterministic_coverage: float
    required_coverage: float
    minimum_deterministic_traces: int


class IntegrityChecks(BaseModel):
    benchmark_sustained: BenchmarkCheck
    hypothesis_lifecycle_auditable: LifecycleCheck
    deterministic_trace_provenance: TraceProvenanceCheck


class IntegrityStatus(BaseModel):
    """Scientific integrity snapshot; ``freeze_promotion`` blocks every promotion."""

    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    overall_pass: bool
    freeze_promotion: bool
    checks: Optional[IntegrityChecks] = None
    checklist: List[ChecklistItem] = Field(default_factory=list)

    @classmethod
    def passing(cls) -> "IntegrityStatus":
        return cls(overall_pass=True, freeze_promotion=False)

    @classmethod
    def frozen(cls) -> "IntegrityStatus":
        return cls(overall_pass=False, freeze_promotion=True)


class BenchmarkRunSnapshot(BaseModel):
    created_at: datetime
    suite_name: str
    status: str
    results: Optional[Dict[str, Any]] = None

    @property
    def compliance_passed(self) -> bool:
        gate = (self.results or {}).get("complianceGate") or (self.results or {}).get("compliance_gate")
        return isinstance(gate, dict) and gate.get("passed") is True


class HypothesisEventSnapshot(BaseModel):
    hypothesis_id: Optional[str] = None
    state: Optional[str] = None
    rationale: Optional[str] = None
    event_timestamp: Optional[datetime] = None


class TraceSnapshot(BaseModel):
    computation_method: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("computation_method", mode="before")
    @classmethod
    def _coerce_method(cls, value: Any) -> Any:
        if isinstance(value, ComputationMethod):
            return value.value
        return value
