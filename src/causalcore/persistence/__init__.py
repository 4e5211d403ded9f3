"""Audit trail and persistence sinks."""

from causalcore.persistence.audit import AuditEvent, AuditLogger
from causalcore.persistence.events import CausalAuditEvents
from causalcore.persistence.sink import (
    AuditTrailSink,
    MemorySink,
    PersistenceSink,
    persist_best_effort,
)

__all__ = [
    "AuditEvent",
    "AuditLogger",
    "AuditTrailSink",
    "CausalAuditEvents",
    "MemorySink",
    "PersistenceSink",
    "persist_best_effort",
]
