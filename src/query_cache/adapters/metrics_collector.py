"""
In-Memory Metrics Collector.

Keeps a running summary per metric name instead of every sample, so a
long-lived client doesn't grow memory with each hit or fetch.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Dict, Optional


@dataclass
class MetricSummary:
    """Aggregate of the samples recorded under one name."""

    type: str
    count: int = 0
    total: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None
    last: Optional[float] = None

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)
        self.last = value

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0


class InMemoryMetricsCollector:
    """Thread-safe MetricsCollectorProtocol implementation."""

    def __init__(self) -> None:
        self._summaries: Dict[str, MetricSummary] = {}
        self._lock = Lock()

    def record_timing(
        self,
        name: str,
        duration_seconds: float,
        tags: Optional[Dict[str, str]] = None,
    ) -> None:
        self._add(name, "timing", duration_seconds)

    def record_count(
        self,
        name: str,
        value: int,
        tags: Optional[Dict[str, str]] = None,
    ) -> None:
        self._add(name, "count", value)

    def record_gauge(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
    ) -> None:
        self._add(name, "gauge", value)

    def get_metrics(self) -> Dict[str, Any]:
        """
        Summaries of everything recorded so far.

        Returns:
            Metric name -> {"type", "count", "total", "min", "max", "last", "mean"}
        """
        with self._lock:
            return {
                name: {**asdict(summary), "mean": summary.mean}
                for name, summary in self._summaries.items()
            }

    def get_summary(self, name: str) -> Optional[MetricSummary]:
        """Copy of the summary recorded under ``name``, if any."""
        with self._lock:
            summary = self._summaries.get(name)
            return MetricSummary(**asdict(summary)) if summary is not None else None

    def clear(self) -> None:
        with self._lock:
            self._summaries.clear()

    def _add(self, name: str, metric_type: str, value: float) -> None:
        # Tags are accepted for protocol compatibility but not bucketed.
        with self._lock:
            summary = self._summaries.get(name)
            if summary is None:
                summary = self._summaries[name] = MetricSummary(type=metric_type)
            summary.add(value)
