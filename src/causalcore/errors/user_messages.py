"""User-friendly error messages for the causal reasoning core.

Maps error codes to human-readable messages and recovery suggestions so the
CLI never prints raw tracebacks for expected failures.
"""

from __future__ import annotations

from typing import Any


# =============================================================================
# Error Message Catalog
# =============================================================================

ERROR_MESSAGES: dict[str, str] = {
    # Graph errors
    "MALFORMED_GRAPH": "The causal graph is malformed (cycle, dangling edge, or duplicate node).",
    "GRAPH_TOO_LARGE": "The causal graph is too large to analyze safely.",
    # Claim errors
    "INVALID_CLAIM": "The causal claim is missing required fields or names unknown variables.",
    "ALIGNMENT_AMBIGUOUS": "A variable could not be matched to the shared ontology.",
    # Registry errors
    "MODEL_NOT_FOUND": "The requested SCM model or version was not found.",
    # Persistence errors
    "PERSISTENCE_FAILURE": "The result was computed but could not be written to the audit trail.",
    # Configuration errors
    "CONFIGURATION_ERROR": "There's a configuration issue.",
    "INVALID_CONFIG": "The configuration is invalid. Check settings.",
    # Generic
    "CAUSAL_CORE_ERROR": "An unexpected error occurred. Please try again.",
    "UNKNOWN_ERROR": "Something went wrong. Please try again.",
}


# =============================================================================
# Recovery Suggestions
# =============================================================================

RECOVERY_SUGGESTIONS: dict[str, str] = {
    "MALFORMED_GRAPH": "Check the DAG for cycles and make sure every edge endpoint is a declared node.",
    "GRAPH_TOO_LARGE": "Split the model or raise CAUSALCORE_MAX_NODES if the graph is trusted.",
    "INVALID_CLAIM": "Provide both a treatment and an outcome that exist in the model.",
    "ALIGNMENT_AMBIGUOUS": "Add the variable or an alias to the ontology file.",
    "MODEL_NOT_FOUND": "List available models with: causalcore scm models",
    "PERSISTENCE_FAILURE": "Check disk space and permissions of the audit directory.",
    "CONFIGURATION_ERROR": "Check config: causalcore config show",
    "INVALID_CONFIG": "Re-create defaults: causalcore config init",
    "CAUSAL_CORE_ERROR": "If this persists, please report the issue.",
    "UNKNOWN_ERROR": "Retry the command. Report if the issue continues.",
}


# =============================================================================
# Helper Functions
# =============================================================================


def _error_code(error: Any) -> str:
    if hasattr(error, "code"):
        return error.code
    if isinstance(error, str):
        return error
    return type(error).__name__.upper()


def get_user_message(error: Any) -> str:
    """Get user-friendly message for an error.

    Args:
        error: The error (can be Exception or error code string)

    Returns:
        User-friendly error message
    """
    return ERROR_MESSAGES.get(_error_code(error), ERROR_MESSAGES["UNKNOWN_ERROR"])


def get_recovery_suggestion(error: Any) -> str:
    """Get recovery suggestion for an error."""
    return RECOVERY_SUGGESTIONS.get(_error_code(error), RECOVERY_SUGGESTIONS["UNKNOWN_ERROR"])


def format_error_for_user(error: Any) -> str:
    """Format a complete user-friendly error message.

    Args:
        error: The error to format

    Returns:
        Complete error message with recovery suggestion
    """
    message = get_user_message(error)
    suggestion = get_recovery_suggestion(error)

    return f"{message}\n\nSuggestion: {suggestion}"


def format_error_for_cli(error: Any) -> str:
    """Format error for CLI output, including the raw message and details."""
    code = getattr(error, "code", "ERROR")

    lines = [
        f"Error [{code}]: {get_user_message(error)}",
    ]
    raw = getattr(error, "message", None)
    if raw:
        lines.append(f"  {raw}")
    lines.extend(["", f"Suggestion: {get_recovery_suggestion(error)}"])

    if getattr(error, "details", None):
        lines.append("")
        lines.append("Details:")
        for key, value in error.details.items():
            lines.append(f"  {key}: {value}")

    return "\n".join(lines)
