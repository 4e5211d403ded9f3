"""Centralized error definitions for the causal reasoning core.

This module provides the error hierarchy shared by every engine, plus
helpers that turn errors into user-friendly text.

Usage:
    from causalcore.errors import (
        CausalCoreError,
        InvalidClaim,
        MalformedGraph,
        handle_error,
    )

    try:
        graph = CausalGraph.from_spec(spec)
    except CausalCoreError as e:
        print(handle_error(e))

Taxonomy:
- MalformedGraph: cycle, dangling edge, duplicate node. Fatal, never retried.
- InvalidClaim: missing treatment/outcome or other required fields. Caller error.
- AlignmentAmbiguous: variable could not be aligned. Non-fatal; engines
  record it as an unknown variable and continue in degraded mode.
- PersistenceFailure: an audit/persistence write failed. Never propagated
  out of a computation.

An integrity freeze is not an exception. It is a normal promotion decision.
"""

from __future__ import annotations

from causalcore.errors.user_messages import (
    format_error_for_user,
    get_recovery_suggestion,
    get_user_message,
)


# =============================================================================
# Base Error
# =============================================================================


class CausalCoreError(Exception):
    """Base exception for all causal core errors.

    Attributes:
        code: Error code for categorization
        user_message: User-friendly message (optional override)
        recoverable: Whether the error is potentially recoverable
        details: Additional error details for debugging
    """

    code: str = "CAUSAL_CORE_ERROR"
    default_message: str = "An unexpected error occurred"
    recoverable: bool = True

    def __init__(
        self,
        message: str | None = None,
        *,
        user_message: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.message = message or self.default_message
        self._user_message = user_message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Get user-friendly message."""
        if self._user_message:
            return self._user_message
        return get_user_message(self)

    @property
    def recovery_suggestion(self) -> str:
        """Get recovery suggestion."""
        return get_recovery_suggestion(self)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "recoverable": self.recoverable,
            "details": self.details,
        }


# =============================================================================
# Graph Errors
# =============================================================================


class MalformedGraph(CausalCoreError):
    """Graph spec is structurally invalid (cycle, dangling edge, duplicate node)."""

    code = "MALFORMED_GRAPH"
    default_message = "Causal graph is malformed"
    recoverable = False


class GraphTooLarge(MalformedGraph):
    """Graph exceeds the configured node cap."""

    code = "GRAPH_TOO_LARGE"
    default_message = "Causal graph exceeds the maximum allowed size"

    def __init__(self, node_count: int, maximum: int) -> None:
        self.node_count = node_count
        self.maximum = maximum
        super().__init__(
            f"Graph has {node_count} nodes; maximum allowed is {maximum}",
            details={"node_count": node_count, "maximum": maximum},
        )


# =============================================================================
# Claim Errors
# =============================================================================


class InvalidClaim(CausalCoreError):
    """Claim is missing required fields or references unknown variables."""

    code = "INVALID_CLAIM"
    default_message = "Causal claim is invalid"
    recoverable = False


class AlignmentAmbiguous(CausalCoreError):
    """Variable could not be confidently aligned to the ontology."""

    code = "ALIGNMENT_AMBIGUOUS"
    default_message = "Variable could not be aligned"

    def __init__(self, variable: str, *, confidence: float = 0.0) -> None:
        self.variable = variable
        self.confidence = confidence
        super().__init__(
            f"Variable '{variable}' could not be aligned (confidence={confidence:.2f})",
            details={"variable": variable, "confidence": confidence},
        )


# =============================================================================
# Registry Errors
# =============================================================================


class ModelNotFound(CausalCoreError):
    """Model or model version is not present in the registry."""

    code = "MODEL_NOT_FOUND"
    default_message = "SCM model not found"
    recoverable = False

    def __init__(self, model_key: str, version: str | None = None) -> None:
        self.model_key = model_key
        self.version = version
        label = f"{model_key}@{version}" if version else model_key
        super().__init__(
            f"SCM model not found: {label}",
            details={"model_key": model_key, "version": version},
        )


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceFailure(CausalCoreError):
    """Writing to the persistence sink failed.

    Computations catch this and still return their result.
    """

    code = "PERSISTENCE_FAILURE"
    default_message = "Failed to persist record"
    recoverable = True


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CausalCoreError):
    """Base error for configuration issues."""

    code = "CONFIGURATION_ERROR"
    default_message = "Configuration error"
    recoverable = True


class InvalidConfigError(ConfigurationError):
    """Configuration is invalid."""

    code = "INVALID_CONFIG"
    default_message = "Invalid configuration"


# =============================================================================
# Error Handler
# =============================================================================


def handle_error(error: Exception) -> str:
    """Handle an error and return a user-friendly message.

    Args:
        error: The exception to handle

    Returns:
        User-friendly error message with recovery suggestion
    """
    return format_error_for_user(error)


__all__ = [
    "CausalCoreError",
    "MalformedGraph",
    "GraphTooLarge",
    "InvalidClaim",
    "AlignmentAmbiguous",
    "ModelNotFound",
    "PersistenceFailure",
    "ConfigurationError",
    "InvalidConfigError",
    "handle_error",
    "format_error_for_user",
    "get_user_message",
    "get_recovery_suggestion",
]
