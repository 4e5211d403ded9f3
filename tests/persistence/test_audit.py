"""Tests for the hash-chained audit trail."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from causalcore.persistence import AuditEvent, AuditLogger


def make_event(action: str = "counterfactual_trace_recorded", subject: str = "trace-1") -> AuditEvent:
    return AuditEvent(
        record_id=f"{action}-{subject}",
        source="causalcore",
        action=action,
        status="success",
        timestamp=datetime(2026, 3, 1, tzinfo=timezone.utc),
        subject=subject,
        metadata={"delta": 1.0},
    )


def test_records_are_chained(audit_dir: Path):
    logger = AuditLogger(output_dir=audit_dir)

    first = logger.record(make_event(subject="trace-1"))
    second = logger.record(make_event(subject="trace-2"))

    assert first["chain_prev"] is None
    assert second["chain_prev"] == first["chain_hash"]
    assert logger.verify()

    manifest = json.loads((audit_dir / "audit_manifest.json").read_text())
    assert manifest["last_hash"] == second["chain_hash"]


def test_tampered_line_fails_verification(audit_dir: Path):
    logger = AuditLogger(output_dir=audit_dir)
    logger.record(make_event(subject="trace-1"))
    logger.record(make_event(subject="trace-2"))

    lines = logger.path.read_text().splitlines()
    entry = json.loads(lines[0])
    entry["status"] = "failed"
    lines[0] = json.dumps(entry, separators=(",", ":"))
    logger.path.write_text("\n".join(lines) + "\n")

    assert not logger.verify()


def test_removed_line_breaks_chain(audit_dir: Path):
    logger = AuditLogger(output_dir=audit_dir)
    for index in range(3):
        logger.record(make_event(subject=f"trace-{index}"))

    lines = logger.path.read_text().splitlines()
    logger.path.write_text("\n".join([lines[0], lines[2]]) + "\n")

    assert not logger.verify()


def test_iter_events_filters_by_action(audit_dir: Path):
    logger = AuditLogger(output_dir=audit_dir)
    logger.record(make_event(action="counterfactual_trace_recorded"))
    logger.record(make_event(action="promotion_blocked", subject="smoking"))

    blocked = list(logger.iter_events(action="promotion_blocked"))

    assert [event["subject"] for event in blocked] == ["smoking"]
    assert len(list(logger.iter_events())) == 2


def test_empty_log_verifies(audit_dir: Path):
    logger = AuditLogger(output_dir=audit_dir)

    assert logger.verify()
    assert list(logger.iter_events()) == []


def test_rotation_keeps_rotated_file_verifiable(audit_dir: Path):
    logger = AuditLogger(output_dir=audit_dir, max_bytes=64)

    logger.record(make_event())

    rotated = logger.rotated_files()
    assert len(rotated) == 1
    assert not logger.path.exists()
    assert logger.verify(path=rotated[0])

    manifest = json.loads((audit_dir / "audit_manifest.json").read_text())
    assert manifest["rotated"][0]["path"] == rotated[0].name


def test_expired_rotated_logs_are_pruned(audit_dir: Path):
    stale = audit_dir / "audit-20000101000000.log"
    stale.write_text("")
    logger = AuditLogger(output_dir=audit_dir, retention_days=1)

    logger.record(make_event())

    assert not stale.exists()


def test_unparseable_lines_are_skipped(audit_dir: Path):
    logger = AuditLogger(output_dir=audit_dir)
    logger.record(make_event())
    with logger.path.open("a", encoding="utf-8") as fp:
        fp.write("not json\n")

    assert len(list(logger.iter_events())) == 1
