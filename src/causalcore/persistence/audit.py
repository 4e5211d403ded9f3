"""Append-only, hash-chained audit trail for causal reasoning records."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from pathlib import Path
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)

ROTATED_STAMP = "%Y%m%d%H%M%S"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditEvent:
    """One audited operation.

    ``subject`` identifies what the record is about (a model key, a trace id);
    ``metadata`` carries the serialized report, trace or decision.
    """

    record_id: str
    source: str
    action: str
    status: str
    timestamp: datetime
    subject: Optional[str] = None
    actor: Optional[str] = None
    metadata: Dict[str, object] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "record_id": self.record_id,
            "source": self.source,
            "action": self.action,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.subject:
            payload["subject"] = self.subject
        if self.actor:
            payload["actor"] = self.actor
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload


@dataclass
class AuditLogger:
    """Writes append-only tamper-evident audit logs.

    Each line is a JSON object carrying ``chain_prev`` (the previous line's
    hash) and ``chain_hash`` (SHA-256 over the line's canonical form). The
    manifest keeps the chain head and the list of rotated files.

    Attributes:
        output_dir: Directory for audit log files
        filename: Name of the active audit log file
        max_bytes: Active log size that triggers rotation
        retention_days: Days to retain rotated logs
        manifest_name: Name of the manifest file
    """

    output_dir: Path
    filename: str = "audit.log"
    max_bytes: int = 5 * 1024 * 1024
    retention_days: int = 30
    manifest_name: str = "audit_manifest.json"

    def __post_init__(self) -> None:
        self.output_dir = Path(self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._path = self.output_dir / self.filename
        self._manifest_path = self.output_dir / self.manifest_name
        if not self._manifest_path.exists():
            self._save_manifest({"last_hash": None, "rotated": []})

    @property
    def path(self) -> Path:
        return self._path

    def record(self, event: AuditEvent) -> Dict[str, object]:
        """Append an event to the chain and return the stored payload."""
        payload = self._augment_with_chain(event.to_payload())
        self._append_line(payload)
        self._rotate_if_needed()
        self._prune_old_logs()
        return payload

    def verify(self, *, path: Optional[Path] = None) -> bool:
        """Verify the hash chain of the active (or given) log file.

        Returns:
            True if every line links to its predecessor and hashes correctly
        """
        target = path or self._path
        if not target.exists():
            return True
        previous_hash = None
        first = True
        for entry in _iter_json_lines(target):
            chain_prev = entry.get("chain_prev")
            # A rotated file starts mid-chain; accept its first link as given.
            if not first and chain_prev != previous_hash:
                logger.warning(f"Audit chain broken in {target.name}")
                return False
            if entry.get("chain_hash") != _compute_chain_hash(entry):
                logger.warning(f"Audit entry hash mismatch in {target.name}")
                return False
            previous_hash = entry.get("chain_hash")
            first = False
        return True

    def iter_events(
        self,
        *,
        path: Optional[Path] = None,
        action: Optional[str] = None,
    ) -> Iterable[Dict[str, object]]:
        """Iterate over stored events, optionally filtered by action."""
        target = path or self._path
        if not target.exists():
            return
        for entry in _iter_json_lines(target):
            if action is None or entry.get("action") == action:
                yield entry

    def rotated_files(self) -> list[Path]:
        return sorted(self.output_dir.glob("audit-*.log"))

    def _augment_with_chain(self, payload: Dict[str, object]) -> Dict[str, object]:
        manifest = self._load_manifest()
        augmented = dict(payload)
        augmented["chain_prev"] = manifest.get("last_hash")
        augmented["chain_hash"] = _compute_chain_hash(augmented)
        manifest["last_hash"] = augmented["chain_hash"]
        self._save_manifest(manifest)
        return augmented

    def _append_line(self, payload: Dict[str, object]) -> None:
        with self._path.open("a", encoding="utf-8") as fp:
            fp.write(json.dumps(payload, separators=(",", ":"), default=str) + "\n")

    def _rotate_if_needed(self) -> None:
        if not self._path.exists() or self._path.stat().st_size < self.max_bytes:
            return
        rotated_name = self.output_dir / f"audit-{utcnow().strftime(ROTATED_STAMP)}.log"
        os.replace(self._path, rotated_name)
        manifest = self._load_manifest()
        rotated = list(manifest.get("rotated", []))
        rotated.append(
            {
                "path": rotated_name.name,
                "closed_at": utcnow().isoformat(),
                "hash": manifest.get("last_hash"),
            }
        )
        manifest["rotated"] = rotated
        self._save_manifest(manifest)
        logger.info(f"Rotated audit log to {rotated_name.name}")

    def _prune_old_logs(self) -> None:
        cutoff = utcnow() - timedelta(days=self.retention_days)
        for file_path in self.output_dir.glob("audit-*.log"):
            timestamp = _extract_timestamp(file_path.name)
            if timestamp and timestamp < cutoff:
                file_path.unlink(missing_ok=True)
                logger.debug(f"Pruned expired audit log {file_path.name}")

    def _load_manifest(self) -> Dict[str, object]:
        return json.loads(self._manifest_path.read_text())

    def _save_manifest(self, manifest: Dict[str, object]) -> None:
        self._manifest_path.write_text(json.dumps(manifest, indent=2))


def _compute_chain_hash(payload: Dict[str, object]) -> str:
    canonical = json.dumps(
        {k: payload[k] for k in sorted(payload) if k != "chain_hash"},
        separators=(",", ":"),
        default=str,
    )
    return sha256(canonical.encode("utf-8")).hexdigest()


def _iter_json_lines(path: Path) -> Iterable[Dict[str, object]]:
    with path.open("r", encoding="utf-8") as fp:
        for line in fp:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Skipping unparseable audit line in {path.name}")


def _extract_timestamp(filename: str) -> Optional[datetime]:
    try:
        stamp = filename.split("-")[1].split(".")[0]
        return datetime.strptime(stamp, ROTATED_STAMP).replace(tzinfo=timezone.utc)
    except (IndexError, ValueError):
        return None
