"""Config file loading and auto-discovery for kafka-explorer.

Searches for ``kafka-explorer.yaml`` in the current directory and parent
directories, parses it, and resolves all relative paths against the
config file's location.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "kafka-explorer.yaml"
DEFAULT_CLUSTERS_FILE = Path.home() / ".kafka-explorer" / "clusters.yaml"


@dataclass(frozen=True)
class PoolSettings:
    """Idle eviction settings for pooled admin/producer connections."""

    idle_timeout_seconds: float = 300.0
    sweep_interval_seconds: float = 60.0


@dataclass(frozen=True)
class LagAlertSettings:
    enabled: bool = False
    warning_threshold: int = 1000
    critical_threshold: int = 10000
    poll_interval_seconds: float = 30.0
    throttle_seconds: float = 300.0


@dataclass(frozen=True)
class ExplorerConfig:
    """Parsed kafka-explorer configuration."""

    config_path: Path | None = None
    clusters_file: str = str(DEFAULT_CLUSTERS_FILE)
    audit_log: str | None = None
    log_level: str = "WARNING"
    aws_credentials_file: str | None = None
    aws_config_file: str | None = None
    consume_timeout_seconds: float = 30.0
    pool: PoolSettings = field(default_factory=PoolSettings)
    secrets: dict[str, Any] = field(default_factory=dict)
    lag_alerts: LagAlertSettings = field(default_factory=LagAlertSettings)


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``kafka-explorer.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> ExplorerConfig:
    """Load a kafka-explorer config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Return an empty ``ExplorerConfig`` (all defaults).
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        return ExplorerConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> ExplorerConfig:
    """Read and parse a YAML config file, resolving relative paths."""
    text = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ValueError(msg)

    base = config_path.parent

    def _resolve(key: str) -> str | None:
        val = data.get(key)
        if val is None:
            return None
        return str((base / Path(val).expanduser()).resolve())

    pool = data.get("pool") or {}
    lag = data.get("lag_alerts") or {}

    return ExplorerConfig(
        config_path=config_path,
        clusters_file=_resolve("clusters_file") or str(DEFAULT_CLUSTERS_FILE),
        audit_log=_resolve("audit_log"),
        log_level=str(data.get("log_level", "WARNING")).upper(),
        aws_credentials_file=_resolve("aws_credentials_file"),
        aws_config_file=_resolve("aws_config_file"),
        consume_timeout_seconds=float(data.get("consume_timeout_seconds", 30.0)),
        pool=PoolSettings(
            idle_timeout_seconds=float(pool.get("idle_timeout_seconds", 300.0)),
            sweep_interval_seconds=float(pool.get("sweep_interval_seconds", 60.0)),
        ),
        secrets=dict(data.get("secrets") or {}),
        lag_alerts=LagAlertSettings(
            enabled=bool(lag.get("enabled", False)),
            warning_threshold=int(lag.get("warning_threshold", 1000)),
            critical_threshold=int(lag.get("critical_threshold", 10000)),
            poll_interval_seconds=float(lag.get("poll_interval_seconds", 30.0)),
            throttle_seconds=float(lag.get("throttle_seconds", 300.0)),
        ),
    )


def configure_logging(level: str = "WARNING") -> None:
    """Install a stderr handler for the ``kafka_explorer`` loggers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
