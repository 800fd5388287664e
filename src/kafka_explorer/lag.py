"""Consumer lag computation and periodic lag alerts.

``LagMonitor`` checks every consumer group of every registered cluster,
classifies each group's total lag against the warning and critical
thresholds, and emits at most one aggregated alert per cluster per
``throttle_seconds``.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kafka_explorer.config import LagAlertSettings

if TYPE_CHECKING:
    from kafka_explorer.manager import ClusterManager

logger = logging.getLogger(__name__)


def compute_lag(high_watermark: int, committed: int) -> int:
    """Messages between the committed offset and the end of the partition.

    Never negative: a committed offset past the high watermark counts as 0.
    """
    return max(0, high_watermark - committed)


class LagSeverity(enum.StrEnum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class LagAlert:
    cluster: str
    group_id: str
    total_lag: int
    severity: LagSeverity


@dataclass
class LagAlertSummary:
    """All alerting groups of one cluster from a single check."""

    cluster: str
    alerts: list[LagAlert] = field(default_factory=list)

    @property
    def critical(self) -> list[LagAlert]:
        return [a for a in self.alerts if a.severity == LagSeverity.CRITICAL]

    @property
    def warning(self) -> list[LagAlert]:
        return [a for a in self.alerts if a.severity == LagSeverity.WARNING]

    def message(self, shown: int = 3) -> str:
        lines = [f"Consumer lag alert for cluster {self.cluster}"]
        for label, alerts in (("Critical", self.critical), ("Warning", self.warning)):
            if not alerts:
                continue
            lines.append(f"{label} ({len(alerts)} groups):")
            lines.extend(f"  - {a.group_id}: {a.total_lag:,} messages" for a in alerts[:shown])
            if len(alerts) > shown:
                lines.append(f"  - ... and {len(alerts) - shown} more")
        return "\n".join(lines)


def classify_lag(total_lag: int, settings: LagAlertSettings) -> LagSeverity | None:
    if total_lag >= settings.critical_threshold:
        return LagSeverity.CRITICAL
    if total_lag >= settings.warning_threshold:
        return LagSeverity.WARNING
    return None


class LagMonitor:
    """Polls consumer lag and reports throttled, per-cluster alerts."""

    def __init__(
        self,
        manager: ClusterManager,
        settings: LagAlertSettings | None = None,
        on_alert: Callable[[LagAlertSummary], None] | None = None,
        _clock: Callable[[], float] | None = None,
    ) -> None:
        self._manager = manager
        self._settings = settings or LagAlertSettings()
        self._on_alert = on_alert
        self._clock = _clock or time.monotonic
        self._last_alert: dict[str, float] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin periodic checks when alerts are enabled."""
        if not self._settings.enabled:
            logger.debug("Lag alerts disabled")
            return
        if not self.running:
            self._task = asyncio.create_task(self._loop())
            logger.info(
                "Lag monitor started (interval %.0fs)", self._settings.poll_interval_seconds,
            )

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def check_all(self) -> list[LagAlertSummary]:
        """Check every cluster once. Returns the summaries that were emitted."""
        emitted: list[LagAlertSummary] = []
        for cluster in self._manager.get_clusters():
            summary = await self.check_cluster(cluster)
            if summary.alerts and self._emit(summary):
                emitted.append(summary)
        return emitted

    async def check_cluster(self, cluster: str) -> LagAlertSummary:
        summary = LagAlertSummary(cluster=cluster)
        try:
            groups = await self._manager.list_consumer_groups(cluster)
        except Exception as exc:
            logger.warning("Lag check skipped for %s: %s", cluster, exc)
            return summary

        for group in groups:
            try:
                details = await self._manager.get_consumer_group_details(cluster, group.group_id)
            except Exception as exc:
                logger.debug("Lag check failed for group %s on %s: %s", group.group_id, cluster, exc)
                continue
            severity = classify_lag(details.total_lag, self._settings)
            if severity is not None:
                summary.alerts.append(LagAlert(
                    cluster=cluster,
                    group_id=group.group_id,
                    total_lag=details.total_lag,
                    severity=severity,
                ))
        return summary

    def _emit(self, summary: LagAlertSummary) -> bool:
        now = self._clock()
        last = self._last_alert.get(summary.cluster)
        if last is not None and now - last < self._settings.throttle_seconds:
            logger.debug(
                "Throttling lag alert for %s (last alert %.0fs ago)", summary.cluster, now - last,
            )
            return False

        self._last_alert[summary.cluster] = now
        logger.info(
            "Lag alert for %s: %d critical, %d warning",
            summary.cluster, len(summary.critical), len(summary.warning),
        )
        if self._on_alert is not None:
            self._on_alert(summary)
        return True

    async def _loop(self) -> None:
        while True:
            try:
                await self.check_all()
            except Exception:
                logger.exception("Lag check failed")
            await asyncio.sleep(self._settings.poll_interval_seconds)
