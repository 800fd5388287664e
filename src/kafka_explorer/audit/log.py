"""Operation audit log.

Keeps the most recent entries in an in-memory ring buffer and, when a
path is configured, appends each entry as a JSON line. Metadata keys that
look like secrets are dropped before the entry is stored.
"""

from __future__ import annotations

import enum
import json
import threading
import uuid
from collections import deque
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

_SENSITIVE_MARKERS = ("password", "secret", "token", "credential")


class AuditOperation(enum.StrEnum):
    CLUSTER_ADDED = "CLUSTER_ADDED"
    CLUSTER_REMOVED = "CLUSTER_REMOVED"
    CLUSTER_CONNECTED = "CLUSTER_CONNECTED"
    CLUSTER_DISCONNECTED = "CLUSTER_DISCONNECTED"
    TOPIC_CREATED = "TOPIC_CREATED"
    TOPIC_DELETED = "TOPIC_DELETED"
    TOPIC_CONFIG_UPDATED = "TOPIC_CONFIG_UPDATED"
    MESSAGE_PRODUCED = "MESSAGE_PRODUCED"
    MESSAGE_CONSUMED = "MESSAGE_CONSUMED"
    CONSUMER_GROUP_DELETED = "CONSUMER_GROUP_DELETED"
    CONSUMER_GROUP_OFFSETS_RESET = "CONSUMER_GROUP_OFFSETS_RESET"
    PARTITIONS_ADDED = "PARTITIONS_ADDED"
    CREDENTIALS_STORED = "CREDENTIALS_STORED"


class AuditResult(enum.StrEnum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    PARTIAL = "PARTIAL"


class AuditEntry(BaseModel):
    """One audited operation. Never carries secrets."""

    id: str = Field(default_factory=lambda: f"audit-{uuid.uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    operation: AuditOperation
    cluster: str
    resource: str | None = None
    result: AuditResult
    metadata: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    duration_ms: float | None = None


def sanitize_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Drop keys whose names suggest a secret."""
    if not metadata:
        return {}
    return {
        key: value for key, value in metadata.items()
        if not any(marker in key.lower() for marker in _SENSITIVE_MARKERS)
    }


class AuditLog:
    """Bounded in-memory audit trail with optional JSON-lines persistence.

    Thread-safe via a lock on all buffer and file operations.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        log_path: str | Path | None = None,
    ) -> None:
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)
        self._path = Path(log_path) if log_path else None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path | None:
        return self._path

    def record(self, entry: AuditEntry) -> AuditEntry:
        line = json.dumps(entry.model_dump(mode="json"), sort_keys=True)
        with self._lock:
            self._entries.append(entry)
            if self._path is not None:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
        return entry

    def success(
        self,
        operation: AuditOperation,
        cluster: str,
        resource: str | None = None,
        metadata: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> AuditEntry:
        return self.record(AuditEntry(
            operation=operation,
            cluster=cluster,
            resource=resource,
            result=AuditResult.SUCCESS,
            metadata=sanitize_metadata(metadata),
            duration_ms=duration_ms,
        ))

    def failure(
        self,
        operation: AuditOperation,
        cluster: str,
        error: BaseException | str,
        resource: str | None = None,
        metadata: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> AuditEntry:
        return self.record(AuditEntry(
            operation=operation,
            cluster=cluster,
            resource=resource,
            result=AuditResult.FAILURE,
            metadata=sanitize_metadata(metadata),
            error=str(error),
            duration_ms=duration_ms,
        ))

    def entries(
        self,
        operation: AuditOperation | None = None,
        result: AuditResult | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        """Newest-first entries, optionally filtered."""
        with self._lock:
            snapshot = list(self._entries)
        matched = [
            e for e in reversed(snapshot)
            if (operation is None or e.operation == operation)
            and (result is None or e.result == result)
        ]
        return matched[:limit] if limit is not None else matched

    def for_cluster(self, cluster: str) -> list[AuditEntry]:
        return [e for e in self.entries() if e.cluster == cluster]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def read_audit_log(path: str | Path, limit: int | None = None) -> list[AuditEntry]:
    """Load entries from a JSON-lines audit file, newest first.

    Blank lines are skipped. A missing file reads as empty.
    """
    log_file = Path(path)
    if not log_file.is_file():
        return []
    entries = [
        AuditEntry.model_validate_json(line)
        for line in log_file.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    entries.reverse()
    return entries[:limit] if limit is not None else entries
