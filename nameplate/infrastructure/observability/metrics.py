"""In-process metrics for the extraction pipeline.

Lightweight counters and histograms kept in memory. The API serves them at
``/metrics``.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Mapping

LabelKey = tuple[tuple[str, str | None], ...]


def _labels_to_key(labels: Mapping[str, str | None] | None) -> LabelKey:
    if labels is None:
        return ()
    return tuple(sorted(labels.items()))


@dataclass
class Counter:
    """A monotonically increasing counter."""

    name: str
    help_text: str = ""
    _values: dict[LabelKey, float] = field(
        default_factory=lambda: defaultdict(float))
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(
        self, value: float = 1.0, labels: Mapping[str, str | None] | None = None
    ) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, labels: Mapping[str, str | None] | None = None) -> float:
        key = _labels_to_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def snapshot(self) -> dict[LabelKey, float]:
        with self._lock:
            return dict(self._values)


@dataclass
class Histogram:
    """Records observations and reports count, sum and average per label set."""

    name: str
    help_text: str = ""
    _observations: dict[LabelKey, list[float]] = field(
        default_factory=lambda: defaultdict(list))
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def observe(
        self, value: float, labels: Mapping[str, str | None] | None = None
    ) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._observations[key].append(value)

    def get_stats(
        self, labels: Mapping[str, str | None] | None = None
    ) -> dict[str, float]:
        key = _labels_to_key(labels)
        with self._lock:
            values = list(self._observations.get(key, []))
        if not values:
            return {"count": 0, "sum": 0.0, "avg": 0.0}
        return {
            "count": len(values),
            "sum": sum(values),
            "avg": sum(values) / len(values),
        }

    def label_sets(self) -> list[LabelKey]:
        with self._lock:
            return list(self._observations)


class MetricRegistry:
    """Registry holding every counter and histogram by name."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str = "") -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name=name, help_text=help_text)
            return self._counters[name]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(
                    name=name, help_text=help_text)
            return self._histograms[name]

    def all_counters(self) -> dict[str, Counter]:
        with self._lock:
            return dict(self._counters)

    def all_histograms(self) -> dict[str, Histogram]:
        with self._lock:
            return dict(self._histograms)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    return _registry


def increment_counter(
    name: str,
    value: float = 1.0,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    """Increment a counter by name, creating it if needed."""
    _registry.counter(name, help_text).inc(value, labels)


def observe_histogram(
    name: str,
    value: float,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    """Record an observation in a histogram, creating it if needed."""
    _registry.histogram(name, help_text).observe(value, labels)


EXTRACTIONS = "extractions_total"
EXTRACTION_DURATION = "extraction_duration_seconds"
RATE_LIMIT_RETRIES = "vision_rate_limit_retries_total"
THROTTLE_WAITS = "throttle_waits_total"
THROTTLE_WAIT_DURATION = "throttle_wait_duration_seconds"
BATCH_ITEMS = "batch_items_total"


def record_extraction(method: str, status: str, duration: float) -> None:
    """Record one extractor or pipeline run.

    Args:
        method: Extraction method tag ('llm', 'ocr', 'rule_based', 'hybrid').
        status: 'success' or 'failed'.
        duration: Wall-clock time in seconds.
    """
    increment_counter(
        EXTRACTIONS,
        labels={"method": method, "status": status},
        help_text="Total extraction runs",
    )
    observe_histogram(
        EXTRACTION_DURATION,
        duration,
        labels={"method": method},
        help_text="Extraction duration in seconds",
    )


def record_rate_limit_retry(attempt: int) -> None:
    increment_counter(
        RATE_LIMIT_RETRIES,
        labels={"attempt": str(attempt)},
        help_text="Vision model calls retried after a rate-limit error",
    )


def record_throttle_wait(seconds: float) -> None:
    increment_counter(THROTTLE_WAITS, help_text="Throttle admissions that had to wait")
    observe_histogram(THROTTLE_WAIT_DURATION, seconds,
                      help_text="Time spent waiting for throttle capacity")


def record_batch_item(status: str) -> None:
    increment_counter(BATCH_ITEMS, labels={"status": status},
                      help_text="Batch items by outcome")


def get_metrics_summary() -> dict[str, Any]:
    """Return all metrics as a JSON-compatible dictionary."""
    counters: dict[str, Any] = {}
    for name, counter in _registry.all_counters().items():
        counters[name] = [
            {"labels": dict(key), "value": value}
            for key, value in counter.snapshot().items()
        ]
    histograms: dict[str, Any] = {}
    for name, histogram in _registry.all_histograms().items():
        histograms[name] = [
            {"labels": dict(key), **histogram.get_stats(dict(key) or None)}
            for key in histogram.label_sets()
        ]
    return {"counters": counters, "histograms": histograms}
