"""Engine Configuration Module.

Defines tunables for each reasoning engine:
- GraphConfig: Size and traversal caps for graph hydration
- CounterfactualConfig: Propagation sensitivity for the tracer
- DisagreementConfig: Severity weights and tolerances for model diffs
- PromotionConfig: Alignment thresholds and override rules
- AutopsyConfig: Necessity threshold for root-cause selection
- EngineConfig: Top-level aggregate

Path enumeration is worst-case exponential in branching factor, so the
graph caps are mandatory rather than advisory.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GraphConfig:
    """Configuration for graph hydration and traversal.

    Example:
        >>> config = GraphConfig(max_nodes=500, max_paths_per_query=1024)
    """

    max_nodes: int = 300
    """Reject graphs with more nodes than this. Default: 300."""

    max_paths_per_query: int = 256
    """Stop path enumeration after this many paths. Default: 256."""

    max_undirected_depth: int = 6
    """Depth cap for undirected path search (d-separation). Default: 6."""

    max_explored_paths: int = 10_000
    """Partial paths expanded before an undirected search stops. Default: 10000."""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_nodes < 1:
            raise ValueError("max_nodes must be positive")
        if self.max_paths_per_query < 1:
            raise ValueError("max_paths_per_query must be positive")
        if self.max_undirected_depth < 1:
            raise ValueError("max_undirected_depth must be positive")
        if self.max_explored_paths < 1:
            raise ValueError("max_explored_paths must be positive")


@dataclass
class CounterfactualConfig:
    """Configuration for deterministic counterfactual propagation."""

    sensitivity: float = 1.0
    """Per-edge scaling applied to a parent's delta. Default: 1.0."""

    precision: int = 4
    """Decimal places for reported outcomes. Default: 4."""

    def __post_init__(self) -> None:
        if self.sensitivity <= 0:
            raise ValueError("sensitivity must be positive")


@dataclass
class DisagreementConfig:
    """Configuration for the disagreement engine.

    Severity weights feed the aggregate report score; the score is the
    weighted atom count normalized by the number of aligned edge loci.
    """

    high_weight: float = 1.0
    """Score weight of a high-severity atom. Default: 1.0."""

    medium_weight: float = 0.5
    """Score weight of a medium-severity atom. Default: 0.5."""

    low_weight: float = 0.2
    """Score weight of a low-severity atom. Default: 0.2."""

    counterfactual_tolerance: float = 0.05
    """Minimum |delta difference| to report a counterfactual atom. Default: 0.05."""

    default_alignment_threshold: float = 0.9
    """Coverage expected for same-domain comparisons. Default: 0.9."""

    cross_domain_alignment_threshold: float = 0.95
    """Coverage expected for cross-domain comparisons. Default: 0.95."""

    default_evidence_weight: float = 0.55
    """Evidence score assumed when a version declares none. Default: 0.55."""

    def __post_init__(self) -> None:
        for name in ("high_weight", "medium_weight", "low_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if not 0.0 <= self.default_alignment_threshold <= 1.0:
            raise ValueError("default_alignment_threshold must be between 0.0 and 1.0")
        if not 0.0 <= self.cross_domain_alignment_threshold <= 1.0:
            raise ValueError("cross_domain_alignment_threshold must be between 0.0 and 1.0")


@dataclass
class PromotionConfig:
    """Configuration for the promotion governance gate."""

    default_alignment_threshold: float = 0.9
    """Same-domain coverage below this requires an override. Default: 0.9."""

    cross_domain_alignment_threshold: float = 0.95
    """Cross-domain coverage below this blocks unconditionally. Default: 0.95."""

    min_override_rationale_length: int = 20
    """Minimum override rationale length in characters. Default: 20."""


@dataclass
class AutopsyConfig:
    """Configuration for the autopsy engine."""

    necessity_threshold: float = 0.5
    """Minimum necessity score for a root cause. Default: 0.5."""

    outcome_hints: tuple = ("performance", "outcome", "failure", "risk", "harm")
    """Name fragments used to infer the outcome when none is declared."""

    def __post_init__(self) -> None:
        if not 0.0 <= self.necessity_threshold <= 1.0:
            raise ValueError("necessity_threshold must be between 0.0 and 1.0")


@dataclass
class EngineConfig:
    """Top-level engine configuration.

    Example:
        >>> config = EngineConfig(autopsy=AutopsyConfig(necessity_threshold=0.6))
        >>> engine = AutopsyEngine(config=config.autopsy)
    """

    graph: GraphConfig = field(default_factory=GraphConfig)
    counterfactual: CounterfactualConfig = field(default_factory=CounterfactualConfig)
    disagreement: DisagreementConfig = field(default_factory=DisagreementConfig)
    promotion: PromotionConfig = field(default_factory=PromotionConfig)
    autopsy: AutopsyConfig = field(default_factory=AutopsyConfig)
