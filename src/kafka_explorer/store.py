"""Persisted cluster configuration.

The store holds an ordered list of sanitized cluster records keyed by
``name``. Callers sanitize (``models.sanitize_for_storage``) before saving;
the store itself never sees passwords.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

logger = logging.getLogger(__name__)


class ClusterStoreError(Exception):
    """Raised when the cluster store cannot be read or written."""


@runtime_checkable
class ClusterStore(Protocol):
    """Protocol for cluster configuration backends."""

    def load(self) -> list[dict[str, Any]]:
        """Return all persisted records in their stored order."""
        ...

    def save(self, records: list[dict[str, Any]]) -> None:
        """Replace the persisted records."""
        ...


class MemoryClusterStore:
    """Session-only store. Nothing survives the process."""

    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self._records = [dict(r) for r in records or []]

    def load(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._records]

    def save(self, records: list[dict[str, Any]]) -> None:
        self._records = [dict(r) for r in records]


class YamlClusterStore:
    """Cluster records in a YAML file under a top-level ``clusters`` key."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[dict[str, Any]]:
        if not self._path.is_file():
            return []
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ClusterStoreError(f"Corrupt cluster file {self._path}: {exc}") from exc

        clusters = data.get("clusters", []) if isinstance(data, dict) else []
        if not isinstance(clusters, list):
            raise ClusterStoreError(
                f"Expected a list under 'clusters' in {self._path}, "
                f"got {type(clusters).__name__}"
            )
        records = [c for c in clusters if isinstance(c, dict)]
        logger.info("Loaded %d cluster configurations", len(records))
        return records

    def save(self, records: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")

        # Atomic write: write to tmp, then rename
        tmp_path.write_text(
            yaml.safe_dump({"clusters": records}, default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )
        tmp_path.replace(self._path)
        logger.debug("Saved %d cluster configurations", len(records))


def upsert_record(records: list[dict[str, Any]], record: dict[str, Any]) -> list[dict[str, Any]]:
    """Replace the record with the same name, or append it."""
    updated = list(records)
    for i, existing in enumerate(updated):
        if existing.get("name") == record["name"]:
            updated[i] = record
            return updated
    updated.append(record)
    return updated


def drop_records(records: list[dict[str, Any]], names: set[str]) -> list[dict[str, Any]]:
    return [r for r in records if r.get("name") not in names]
