"""Audit event types and logging helpers for causal reasoning records.

Event Types:
- Trace events (counterfactual trace computed)
- Comparison events (disagreement report produced)
- Governance events (promotion allowed, blocked, frozen; current version flipped)
- Autopsy events (failure autopsy produced)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import uuid4

from causalcore.persistence.audit import AuditEvent, utcnow

if TYPE_CHECKING:
    from causalcore.persistence.audit import AuditLogger


class CausalAuditEvents:
    """Audit event type constants."""

    TRACE_RECORDED = "counterfactual_trace_recorded"
    REPORT_RECORDED = "disagreement_report_recorded"
    AUTOPSY_RECORDED = "autopsy_report_recorded"

    PROMOTION_ALLOWED = "promotion_allowed"
    PROMOTION_BLOCKED = "promotion_blocked"
    PROMOTION_FROZEN = "promotion_integrity_frozen"
    CURRENT_VERSION_SET = "current_version_set"


SOURCE = "causalcore"


def _record(
    audit_logger: "AuditLogger",
    *,
    action: str,
    status: str,
    subject: Optional[str],
    metadata: Dict[str, Any],
    actor: Optional[str] = None,
) -> Dict[str, object]:
    return audit_logger.record(
        AuditEvent(
            record_id=uuid4().hex,
            source=SOURCE,
            action=action,
            status=status,
            timestamp=utcnow(),
            subject=subject,
            actor=actor,
            metadata=metadata,
        )
    )


def log_trace_recorded(
    audit_logger: "AuditLogger", *, trace_id: str, trace: Dict[str, Any]
) -> Dict[str, object]:
    """Log a counterfactual trace.

    Args:
        audit_logger: Audit logger instance
        trace_id: Trace identifier, used as the record subject
        trace: Serialized CounterfactualTrace
    """
    return _record(
        audit_logger,
        action=CausalAuditEvents.TRACE_RECORDED,
        status="success",
        subject=trace_id,
        metadata={"trace": trace},
    )


def log_report_recorded(
    audit_logger: "AuditLogger", *, subject: str, report: Dict[str, Any]
) -> Dict[str, object]:
    return _record(
        audit_logger,
        action=CausalAuditEvents.REPORT_RECORDED,
        status="success",
        subject=subject,
        metadata={"report": report},
    )


def log_autopsy_recorded(
    audit_logger: "AuditLogger", *, subject: str, report: Dict[str, Any]
) -> Dict[str, object]:
    return _record(
        audit_logger,
        action=CausalAuditEvents.AUTOPSY_RECORDED,
        status="success",
        subject=subject,
        metadata={"autopsy": report},
    )


def log_promotion_decision(
    audit_logger: "AuditLogger", *, record: Dict[str, Any]
) -> Dict[str, object]:
    """Log a promotion gate decision.

    Args:
        audit_logger: Audit logger instance
        record: Output of ``PromotionDecision.to_audit_record``

    The action distinguishes allowed, blocked and integrity-frozen
    decisions; the override approver becomes the record actor.
    """
    if record.get("integrity_frozen"):
        action, status = CausalAuditEvents.PROMOTION_FROZEN, "blocked"
    elif record.get("allowed"):
        action, status = CausalAuditEvents.PROMOTION_ALLOWED, "allowed"
    else:
        action, status = CausalAuditEvents.PROMOTION_BLOCKED, "blocked"

    return _record(
        audit_logger,
        action=action,
        status=status,
        subject=str(record.get("model_key") or ""),
        actor=record.get("override_approved_by"),
        metadata=record,
    )


def log_current_version_set(
    audit_logger: "AuditLogger",
    *,
    model_key: str,
    from_version: Optional[str],
    to_version: str,
) -> Dict[str, object]:
    return _record(
        audit_logger,
        action=CausalAuditEvents.CURRENT_VERSION_SET,
        status="success",
        subject=model_key,
        metadata={"from_version": from_version, "to_version": to_version},
    )
