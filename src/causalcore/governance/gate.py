"""
SCM Promotion Gate.

Decides whether a candidate model version may become current, given the
disagreement report against the baseline, an optional human override and
the scientific integrity status. Decision order:

a. Integrity freeze blocks unconditionally.
b. High-severity atoms not acknowledged by a valid override block and
   require a manual override.
c. Cross-domain promotions need near-total variable alignment; a shortfall
   blocks even with an override.
d. Same-domain alignment shortfall requires a valid override.
e. Otherwise allow, recording whether the override was consumed.

The gate never touches the registry.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from causalcore.config import PromotionConfig
from causalcore.disagreement import DisagreementAtom, DisagreementReport, Severity
from causalcore.governance.models import (
    IntegrityStatus,
    PromotionDecision,
    PromotionOverride,
)
from causalcore.graph import normalize_token

logger = logging.getLogger(__name__)


class PromotionGate:
    """Policy gate over disagreement reports.

    Example:
        >>> gate = PromotionGate()
        >>> decision = gate.evaluate(report, cross_domain=False)
        >>> decision.blocked
        True
    """

    def __init__(self, config: Optional[PromotionConfig] = None):
        self.config = config or PromotionConfig()

    def evaluate(
        self,
        report: DisagreementReport,
        cross_domain: bool = False,
        override: Optional[PromotionOverride] = None,
        integrity_status: Optional[IntegrityStatus] = None,
    ) -> PromotionDecision:
        """Evaluate a promotion.

        Args:
            report: Disagreement report of baseline vs candidate
            cross_domain: Whether the promotion crosses domains (also read
                from the report's alignment quality)
            override: Optional human override
            integrity_status: Current scientific integrity status

        Returns:
            PromotionDecision
        """
        counts = report.count_by_severity()
        high_atoms = report.atoms_with_severity(Severity.HIGH)
        override_valid = override is not None and override.is_valid(
            self.config.min_override_rationale_length
        )

        acknowledged: List[str] = []
        if override_valid:
            acknowledged = [
                atom.locus_key
                for atom in high_atoms
                if atom.locus_key and _acknowledges(override, atom)
            ]
        acknowledged_set = set(acknowledged)
        unresolved = sum(
            1 for atom in high_atoms if not atom.locus_key or atom.locus_key not in acknowledged_set
        )

        cross_domain = cross_domain or report.alignment_quality.cross_domain
        required_coverage = (
            self.config.cross_domain_alignment_threshold
            if cross_domain
            else self.config.default_alignment_threshold
        )
        coverage = round(report.alignment_quality.coverage, 4)
        shortfall = coverage < required_coverage

        facts = dict(
            high_severity_atoms=counts[Severity.HIGH],
            medium_severity_atoms=counts[Severity.MEDIUM],
            low_severity_atoms=counts[Severity.LOW],
            unresolved_high_severity_atoms=unresolved,
            acknowledged_atoms=sorted(acknowledged_set),
            alignment_coverage=coverage,
            required_alignment_coverage=round(required_coverage, 4),
            cross_domain=cross_domain,
            unknown_variables=sorted(set(report.unknown_variables)),
        )

        if integrity_status is not None and integrity_status.freeze_promotion:
            return self._decide(
                allowed=False,
                reason=(
                    "Promotion frozen by scientific integrity gate: one or more "
                    "required checks are failing."
                ),
                integrity_frozen=True,
                **facts,
            )

        if unresolved > 0 and not override_valid:
            reasons = [f"{unresolved} unresolved high-severity disagreement atom(s)."]
            if shortfall:
                reasons.append(
                    f"Alignment coverage {coverage} is below required threshold {required_coverage}."
                )
            return self._decide(
                allowed=False,
                reason=f"Promotion blocked: {' '.join(reasons)}",
                requires_manual_override=True,
                **facts,
            )

        if cross_domain and shortfall:
            return self._decide(
                allowed=False,
                reason=(
                    f"Promotion blocked: cross-domain alignment coverage {coverage} is below "
                    f"required threshold {required_coverage}. Overrides cannot bypass this check."
                ),
                **facts,
            )

        if shortfall and not override_valid:
            return self._decide(
                allowed=False,
                reason=(
                    f"Promotion blocked: Alignment coverage {coverage} is below "
                    f"required threshold {required_coverage}."
                ),
                requires_manual_override=True,
                **facts,
            )

        override_used = override_valid and (bool(high_atoms) or shortfall)
        if override_used:
            reason = (
                "Promotion override accepted. High-severity disagreement risk remains "
                "and must be tracked in governance audit."
            )
        else:
            reason = "Promotion gate passed. No unresolved high-severity disagreement atoms detected."

        return self._decide(
            allowed=True,
            reason=reason,
            requires_manual_override=override_used,
            override_used=override_used,
            **facts,
        )

    @staticmethod
    def _decide(allowed: bool, reason: str, **fields) -> PromotionDecision:
        decision = PromotionDecision(allowed=allowed, blocked=not allowed, reason=reason, **fields)
        log = logger.info if allowed else logger.warning
        log(f"Promotion {'allowed' if allowed else 'blocked'}: {reason}")
        return decision


def _acknowledges(override: PromotionOverride, atom: DisagreementAtom) -> bool:
    """Listed by locus key, or every locus name is mentioned in the rationale."""
    listed = {item.strip().lower() for item in override.acknowledged_atoms}
    if atom.locus_key and atom.locus_key.lower() in listed:
        return True

    names = atom.locus_names
    if not names:
        return False
    rationale = normalize_token(override.rationale)
    return all(normalize_token(name) and normalize_token(name) in rationale for name in names)
