"""Prometheus-backed metrics hooks for the liquidation loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Summary, start_http_server

logger = logging.getLogger(__name__)


@dataclass
class CycleStats:
    status: str
    assets: int
    submitted: int
    suppressed: int
    failed: int
    duration_seconds: float


class MetricsRecorder:
    """
    Expose liquidation loop stats via Prometheus.

    Metrics live on a private CollectorRegistry so several recorders (one per
    test, say) never collide. When disabled every record call only updates
    the in-process snapshot.
    """

    def __init__(self, enabled: bool = True, port: int = 9100,
                 registry: Optional[CollectorRegistry] = None) -> None:
        self._enabled = bool(enabled)
        self._port = port
        self._started = False
        self.registry = registry or CollectorRegistry()

        self._last_cycle_stats: Optional[CycleStats] = None
        self._decision_counts: Dict[str, int] = {}
        self._error_counts: Dict[str, int] = {}
        self._snapshot_failures = 0

        if not self._enabled:
            self._cycle_summary = None
            self._cycle_counter = None
            self._decision_counter = None
            self._asset_errors_counter = None
            self._snapshot_failures_counter = None
            self._cache_entries_gauge = None
            return

        self._cycle_summary = Summary(
            "liquidator_cycle_duration_seconds",
            "Duration of a full liquidation cycle",
            registry=self.registry,
        )
        self._cycle_counter = Counter(
            "liquidator_cycles_total",
            "Total liquidation cycles by status",
            labelnames=("status",),
            registry=self.registry,
        )
        self._decision_counter = Counter(
            "liquidator_decisions_total",
            "Per-asset outcomes (skipped, submitted, suppressed, dry_run, failed)",
            labelnames=("outcome",),
            registry=self.registry,
        )
        self._asset_errors_counter = Counter(
            "liquidator_asset_errors_total",
            "Per-asset errors by kind (transient, data)",
            labelnames=("kind",),
            registry=self.registry,
        )
        self._snapshot_failures_counter = Counter(
            "liquidator_snapshot_failures_total",
            "Snapshot fetches that failed and triggered a backoff",
            registry=self.registry,
        )
        self._cache_entries_gauge = Gauge(
            "liquidator_order_cache_entries",
            "Entries currently held by the order idempotency cache",
            registry=self.registry,
        )

    def start(self) -> None:
        if not self._enabled or self._started:
            return
        try:
            start_http_server(self._port, registry=self.registry)
        except OSError as exc:
            self._enabled = False
            logger.error("Failed to start metrics exporter on port %s: %s", self._port, exc)
            return
        self._started = True
        logger.info("Prometheus metrics exporter listening on 0.0.0.0:%s", self._port)

    def is_enabled(self) -> bool:
        return self._enabled

    def observe_cycle(self, stats: CycleStats) -> None:
        if self._enabled:
            assert self._cycle_summary and self._cycle_counter
            self._cycle_summary.observe(stats.duration_seconds)
            self._cycle_counter.labels(status=stats.status).inc()
        self._last_cycle_stats = stats

    def record_outcome(self, outcome: str, error_kind: Optional[str] = None) -> None:
        self._decision_counts[outcome] = self._decision_counts.get(outcome, 0) + 1
        if error_kind:
            self._error_counts[error_kind] = self._error_counts.get(error_kind, 0) + 1
        if self._enabled and self._decision_counter:
            self._decision_counter.labels(outcome=outcome).inc()
            if error_kind and self._asset_errors_counter:
                self._asset_errors_counter.labels(kind=error_kind).inc()

    def record_snapshot_failure(self) -> None:
        self._snapshot_failures += 1
        if self._enabled and self._snapshot_failures_counter:
            self._snapshot_failures_counter.inc()

    def record_cache_size(self, entries: int) -> None:
        if self._enabled and self._cache_entries_gauge:
            self._cache_entries_gauge.set(max(entries, 0))

    def last_cycle(self) -> Optional[CycleStats]:
        return self._last_cycle_stats

    def decision_snapshot(self) -> Dict[str, int]:
        return dict(self._decision_counts)

    def error_snapshot(self) -> Dict[str, int]:
        return dict(self._error_counts)

    @property
    def snapshot_failures(self) -> int:
        return self._snapshot_failures


__all__ = ["MetricsRecorder", "CycleStats"]
