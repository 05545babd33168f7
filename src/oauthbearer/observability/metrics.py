"""OAUTHBEARER Metrics Collection.

This module provides Prometheus-compatible, in-process metrics for the
mechanism: handshake outcomes, token validation failures by reason, JWKS
fetches and validation latency. Hosts scrape them via ``export_prometheus()``.

Supported metric types:
- Counter: Monotonically increasing values (e.g., total handshakes)
- Histogram: Distribution of values with configurable buckets (e.g., latency)

Example:
    >>> from oauthbearer.observability.metrics import get_metrics
    >>> metrics = get_metrics()
    >>> metrics.increment_counter("oauthbearer_handshakes_total", {"outcome": "success"})
    >>> print(metrics.export_prometheus())
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import ClassVar

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


@dataclass
class Counter:
    """A monotonically increasing counter metric.

    Attributes:
        name: Metric name
        help_text: Human-readable description
        values: Dictionary mapping label combinations to counts
    """

    name: str
    help_text: str
    values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        label_key = _label_key(labels)
        with self._lock:
            self.values[label_key] = self.values.get(label_key, 0.0) + value

    def get(self, labels: dict[str, str] | None = None) -> float:
        label_key = _label_key(labels)
        with self._lock:
            return self.values.get(label_key, 0.0)


# Default histogram buckets for latency (in seconds)
DEFAULT_LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


@dataclass
class _HistogramSeries:
    bucket_counts: list[float]
    total: float = 0.0
    count: float = 0.0


@dataclass
class Histogram:
    """A histogram metric for measuring distributions.

    Attributes:
        name: Metric name
        help_text: Human-readable description
        buckets: Upper bounds for histogram buckets
    """

    name: str
    help_text: str
    buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    values: dict[LabelKey, _HistogramSeries] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        label_key = _label_key(labels)
        with self._lock:
            series = self.values.get(label_key)
            if series is None:
                series = _HistogramSeries(bucket_counts=[0.0] * len(self.buckets))
                self.values[label_key] = series
            # Stored per bucket, made cumulative on export
            for index, bound in enumerate(self.buckets):
                if value <= bound:
                    series.bucket_counts[index] += 1.0
                    break
            series.total += value
            series.count += 1.0

    def get_count(self, labels: dict[str, str] | None = None) -> float:
        label_key = _label_key(labels)
        with self._lock:
            series = self.values.get(label_key)
            return series.count if series is not None else 0.0


class MetricsCollector:
    """Collects and exports metrics in Prometheus format.

    Thread-safe; one collector is shared by every exchange in the process.
    """

    DEFAULT_COUNTERS: ClassVar[dict[str, str]] = {
        "oauthbearer_handshakes_total": "Total number of completed or failed SASL handshakes",
        "oauthbearer_validation_failures_total": "Total number of rejected bearer tokens",
        "oauthbearer_jwks_fetch_total": "Total number of JWK set fetches",
        "oauthbearer_jwks_fetch_errors_total": "Total number of failed JWK set fetches",
        "oauthbearer_thread_pool_exhausted_total": "Total number of thread pool exhaustion events",
    }

    DEFAULT_HISTOGRAMS: ClassVar[dict[str, str]] = {
        "oauthbearer_validation_duration_seconds": "Token validation duration in seconds",
    }

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._start_time = time.time()

        for name, help_text in self.DEFAULT_COUNTERS.items():
            self._counters[name] = Counter(name=name, help_text=help_text)
        for name, help_text in self.DEFAULT_HISTOGRAMS.items():
            self._histograms[name] = Histogram(name=name, help_text=help_text)

    def register_counter(self, name: str, help_text: str) -> None:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name=name, help_text=help_text)

    def register_histogram(
        self, name: str, help_text: str, buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    ) -> None:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name=name, help_text=help_text, buckets=buckets)

    def increment_counter(
        self, name: str, labels: dict[str, str] | None = None, value: float = 1.0
    ) -> None:
        with self._lock:
            counter = self._counters.get(name)
        if counter is not None:
            counter.increment(labels, value)

    def observe_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        with self._lock:
            histogram = self._histograms.get(name)
        if histogram is not None:
            histogram.observe(value, labels)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            counter = self._counters.get(name)
        return counter.get(labels) if counter is not None else 0.0

    def get_histogram_count(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            histogram = self._histograms.get(name)
        return histogram.get_count(labels) if histogram is not None else 0.0

    @staticmethod
    def _format_labels(labels: LabelKey, extra: tuple[str, str] | None = None) -> str:
        pairs = list(labels)
        if extra is not None:
            pairs.append(extra)
        if not pairs:
            return ""

        def escape_label_value(value: str) -> str:
            value = value.replace("\\", "\\\\")
            return value.replace('"', '\\"')

        parts = [f'{k}="{escape_label_value(v)}"' for k, v in pairs]
        return "{" + ",".join(parts) + "}"

    def export_prometheus(self) -> str:
        """Export all metrics in Prometheus text format.

        Returns:
            Metrics in Prometheus exposition format
        """
        lines: list[str] = []

        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())

        for counter in counters:
            lines.append(f"# HELP {counter.name} {counter.help_text}")
            lines.append(f"# TYPE {counter.name} counter")
            with counter._lock:
                values = dict(counter.values)
            if not values:
                lines.append(f"{counter.name} 0")
            for label_key, value in values.items():
                lines.append(f"{counter.name}{self._format_labels(label_key)} {value}")

        for histogram in histograms:
            lines.append(f"# HELP {histogram.name} {histogram.help_text}")
            lines.append(f"# TYPE {histogram.name} histogram")
            with histogram._lock:
                series_by_label = {
                    key: _HistogramSeries(list(s.bucket_counts), s.total, s.count)
                    for key, s in histogram.values.items()
                }
            if not series_by_label:
                series_by_label = {(): _HistogramSeries([0.0] * len(histogram.buckets))}
            for label_key, series in series_by_label.items():
                cumulative = 0.0
                for bound, bucket_count in zip(histogram.buckets, series.bucket_counts):
                    cumulative += bucket_count
                    labels = self._format_labels(label_key, ("le", str(bound)))
                    lines.append(f"{histogram.name}_bucket{labels} {cumulative}")
                labels = self._format_labels(label_key, ("le", "+Inf"))
                lines.append(f"{histogram.name}_bucket{labels} {series.count}")
                base_labels = self._format_labels(label_key)
                lines.append(f"{histogram.name}_sum{base_labels} {series.total}")
                lines.append(f"{histogram.name}_count{base_labels} {series.count}")

        uptime = time.time() - self._start_time
        lines.append("# HELP oauthbearer_process_uptime_seconds Time since collector start")
        lines.append("# TYPE oauthbearer_process_uptime_seconds gauge")
        lines.append(f"oauthbearer_process_uptime_seconds {uptime:.3f}")

        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Reset all metrics to zero. Useful for testing."""
        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())
        for counter in counters:
            with counter._lock:
                counter.values.clear()
        for histogram in histograms:
            with histogram._lock:
                histogram.values.clear()


_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    with _collector_lock:
        if _metrics_collector is None:
            _metrics_collector = MetricsCollector()
        return _metrics_collector


def reset_metrics() -> None:
    """Reset the global metrics collector. Useful for testing."""
    with _collector_lock:
        collector = _metrics_collector
    if collector is not None:
        collector.reset()
