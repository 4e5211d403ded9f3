"""Persistence sinks for traces, reports, autopsies and promotion audits.

Computations never fail because a write failed: callers go through
``persist_best_effort`` which converts any sink error into a logged
``PersistenceFailure`` and reports ``False``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from causalcore.errors import PersistenceFailure
from causalcore.persistence.audit import AuditLogger
from causalcore.persistence.events import (
    log_autopsy_recorded,
    log_current_version_set,
    log_promotion_decision,
    log_report_recorded,
    log_trace_recorded,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceSink(Protocol):
    def record_report(self, report: BaseModel, subject: Optional[str] = None) -> None:
        ...

    def record_trace(self, trace: BaseModel) -> None:
        ...

    def record_autopsy(self, report: BaseModel, subject: Optional[str] = None) -> None:
        ...

    def record_promotion_audit(self, record: Dict[str, Any]) -> None:
        ...

    def record_version_flip(
        self, model_key: str, from_version: Optional[str], to_version: str
    ) -> None:
        ...


class AuditTrailSink:
    """PersistenceSink writing to a hash-chained AuditLogger."""

    def __init__(self, audit_logger: AuditLogger):
        self.audit_logger = audit_logger

    @classmethod
    def in_directory(cls, directory: Path, retention_days: int = 30) -> "AuditTrailSink":
        return cls(AuditLogger(output_dir=Path(directory), retention_days=retention_days))

    def record_report(self, report: BaseModel, subject: Optional[str] = None) -> None:
        log_report_recorded(
            self.audit_logger,
            subject=subject or _subject_of(report),
            report=report.model_dump(mode="json"),
        )

    def record_trace(self, trace: BaseModel) -> None:
        payload = trace.model_dump(mode="json", by_alias=True)
        log_trace_recorded(
            self.audit_logger,
            trace_id=str(getattr(trace, "trace_id", "") or payload.get("traceId", "")),
            trace=payload,
        )

    def record_autopsy(self, report: BaseModel, subject: Optional[str] = None) -> None:
        log_autopsy_recorded(
            self.audit_logger,
            subject=subject or _subject_of(report),
            report=report.model_dump(mode="json"),
        )

    def record_promotion_audit(self, record: Dict[str, Any]) -> None:
        log_promotion_decision(self.audit_logger, record=record)

    def record_version_flip(
        self, model_key: str, from_version: Optional[str], to_version: str
    ) -> None:
        log_current_version_set(
            self.audit_logger,
            model_key=model_key,
            from_version=from_version,
            to_version=to_version,
        )


class MemorySink:
    """Sink that keeps records in lists. Used for dry runs and tests."""

    def __init__(self) -> None:
        self.reports: List[Dict[str, Any]] = []
        self.traces: List[Dict[str, Any]] = []
        self.autopsies: List[Dict[str, Any]] = []
        self.promotion_audits: List[Dict[str, Any]] = []
        self.version_flips: List[Dict[str, Any]] = []

    def record_report(self, report: BaseModel, subject: Optional[str] = None) -> None:
        self.reports.append(report.model_dump(mode="json"))

    def record_trace(self, trace: BaseModel) -> None:
        self.traces.append(trace.model_dump(mode="json", by_alias=True))

    def record_autopsy(self, report: BaseModel, subject: Optional[str] = None) -> None:
        self.autopsies.append(report.model_dump(mode="json"))

    def record_promotion_audit(self, record: Dict[str, Any]) -> None:
        self.promotion_audits.append(record)

    def record_version_flip(
        self, model_key: str, from_version: Optional[str], to_version: str
    ) -> None:
        self.version_flips.append(
            {"model_key": model_key, "from_version": from_version, "to_version": to_version}
        )


def persist_best_effort(
    operation: Callable[..., Any],
    *args: Any,
    description: str = "record",
    **kwargs: Any,
) -> bool:
    """Run a sink write, converting any failure into a logged PersistenceFailure.

    Returns:
        True if the write succeeded, False otherwise
    """
    try:
        operation(*args, **kwargs)
        return True
    except Exception as exc:
        failure = PersistenceFailure(
            f"Failed to persist {description}: {exc}",
            details={"description": description, "error_type": type(exc).__name__},
        )
        logger.warning(f"[{failure.code}] {failure.message}")
        return False


def _subject_of(report: BaseModel) -> str:
    for attr in ("left_ref", "model_ref"):
        ref = getattr(report, attr, None)
        if ref is not None:
            return f"{ref.model_key}@{ref.version}"
    return "inline"
