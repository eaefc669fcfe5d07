"""
Lightweight telemetry/observability helper.
Exports Prometheus metrics, or structured log lines with the 'log' exporter.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge

from .models import RunResult


class TelemetryClient:
    """Simple telemetry helper supporting increment/gauge."""

    def __init__(self, config: Dict[str, Any], registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.enabled = config.get('enable_telemetry', True)
        self.exporter = config.get('telemetry_exporter', 'prometheus')
        self.registry = registry if registry is not None else REGISTRY
        self._counters: Dict[Tuple[str, Tuple[str, ...]], Counter] = {}
        self._gauges: Dict[Tuple[str, Tuple[str, ...]], Gauge] = {}

    def _should_use_prometheus(self) -> bool:
        return self.enabled and self.exporter == 'prometheus'

    def increment(self, name: str, value: float = 1.0, labels: Optional[Dict[str, str]] = None) -> None:
        if not self.enabled or self.exporter == 'noop':
            return
        labels = labels or {}
        if self._should_use_prometheus():
            counter = self._get_counter(name, labels)
            if labels:
                counter = counter.labels(**labels)
            counter.inc(value)
        else:
            self.logger.info("metric_increment", extra={'metric': name, 'value': value, 'labels': labels})

    def gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        if not self.enabled or self.exporter == 'noop':
            return
        labels = labels or {}
        if self._should_use_prometheus():
            gauge = self._get_gauge(name, labels)
            if labels:
                gauge = gauge.labels(**labels)
            gauge.set(value)
        else:
            self.logger.info("metric_gauge", extra={'metric': name, 'value': value, 'labels': labels})

    # ------------------------------------------------------------------ #
    # Budget automation metrics
    # ------------------------------------------------------------------ #

    def record_run(self, result: RunResult) -> None:
        """Record counters for one evaluation run"""
        self.increment('budget_automation_runs', labels={'mode': result.mode, 'ran': str(result.ran).lower()})
        if not result.ran:
            return

        for action, count in result.summary.to_dict().items():
            if action in ('evaluated', 'update_errors') or not count:
                continue
            self.increment('budget_automation_decisions', count, labels={'action': action})

        self.gauge('budget_automation_campaigns_evaluated', float(result.summary.evaluated))
        if result.summary.update_errors:
            self.increment('budget_automation_update_errors', result.summary.update_errors)
        if result.log_error:
            self.increment('budget_automation_log_persist_errors')

    def record_approval(self, approved: bool, outcome: str) -> None:
        """Record an approval/rejection attempt and its outcome"""
        self.increment(
            'budget_automation_approvals',
            labels={'decision': 'approve' if approved else 'reject', 'outcome': outcome},
        )

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _metric_key(self, name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[str, ...]]:
        return name, tuple(sorted(labels.keys()))

    def _get_counter(self, name: str, labels: Dict[str, str]) -> Counter:
        key = self._metric_key(name, labels)
        if key not in self._counters:
            self._counters[key] = Counter(
                name, f"{name} counter", labelnames=list(key[1]), registry=self.registry
            )
        return self._counters[key]

    def _get_gauge(self, name: str, labels: Dict[str, str]) -> Gauge:
        key = self._metric_key(name, labels)
        if key not in self._gauges:
            self._gauges[key] = Gauge(
                name, f"{name} gauge", labelnames=list(key[1]), registry=self.registry
            )
        return self._gauges[key]
