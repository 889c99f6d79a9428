"""Observability module for disclosure engine metrics and structured logging.

This module provides:
- Counter-based metrics (Prometheus-compatible)
- Structured logging with session_id correlation
- Metrics export (JSON and Prometheus formats)

Usage:
    from skillscope.observability import metrics, get_logger

    # Increment counters
    metrics.increment("skill_activation_total", labels={"skill": "react-best-practices"})
    metrics.increment("rules_disclosed_total", value=3)

    # Get structured logger
    logger = get_logger("engine", session_id="9f2c...")
    logger.info("disclose_complete", items=3, state="Partial")
"""

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


# =============================================================================
# Metrics Registry
# =============================================================================

@dataclass
class Counter:
    """A simple counter metric with optional labels."""
    name: str
    help_text: str
    values: dict[tuple, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def increment(self, labels: Optional[dict[str, str]] = None, value: int = 1) -> None:
        """Increment counter by value."""
        label_key = tuple(sorted((labels or {}).items()))
        with self._lock:
            self.values[label_key] = self.values.get(label_key, 0) + value

    def get(self, labels: Optional[dict[str, str]] = None) -> int:
        """Get current counter value."""
        label_key = tuple(sorted((labels or {}).items()))
        return self.values.get(label_key, 0)

    def total(self) -> int:
        """Sum across all label sets."""
        with self._lock:
            return sum(self.values.values())

    def reset(self) -> None:
        """Reset all counter values (for testing)."""
        with self._lock:
            self.values.clear()


HISTOGRAM_WINDOW = 10_000


@dataclass
class Histogram:
    """A simple histogram for latency measurements.

    Percentiles are computed over the most recent ``window`` observations;
    ``count`` and ``total`` cover every observation since the last reset.
    """
    name: str
    help_text: str
    window: int = HISTOGRAM_WINDOW
    values: deque = field(init=False)
    count: int = field(default=0, init=False)
    total: float = field(default=0.0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def __post_init__(self) -> None:
        self.values = deque(maxlen=self.window)

    def observe(self, value: float) -> None:
        """Record an observation."""
        with self._lock:
            self.values.append(value)
            self.count += 1
            self.total += value

    def get_percentile(self, percentile: float) -> float:
        """Get a percentile value (e.g., 0.95 for p95)."""
        with self._lock:
            if not self.values:
                return 0.0
            sorted_vals = sorted(self.values)
        idx = int(len(sorted_vals) * percentile)
        return sorted_vals[min(idx, len(sorted_vals) - 1)]

    def reset(self) -> None:
        """Reset all values (for testing)."""
        with self._lock:
            self.values.clear()
            self.count = 0
            self.total = 0.0


class MetricsRegistry:
    """Central registry for all metrics."""

    def __init__(self):
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()
        self._register_default_metrics()

    def _register_default_metrics(self) -> None:
        """Register the engine's built-in metrics."""
        # Corpus loading
        self.register_counter(
            "corpus_load_total",
            "Corpus snapshots built (initial load and reloads)"
        )
        self.register_counter(
            "corpus_diagnostic_total",
            "Load-time data-quality findings by code"
        )

        # Selection
        self.register_counter(
            "skill_activation_total",
            "Skill activations by skill id"
        )
        self.register_counter(
            "no_match_total",
            "Disclosures where no skill applied"
        )

        # Disclosure
        self.register_counter(
            "rules_disclosed_total",
            "Rules delivered to callers"
        )
        self.register_counter(
            "disclosure_truncated_total",
            "Disclosures where no eligible rule fit the budget"
        )

        # Sessions
        self.register_counter(
            "session_created_total",
            "Disclosure sessions opened"
        )
        self.register_counter(
            "session_invalid_total",
            "Requests for unknown or expired sessions by reason"
        )

        # Latency histograms
        self.register_histogram(
            "disclose_duration_seconds",
            "Match, rank and pack latency per disclosure call"
        )

    def register_counter(self, name: str, help_text: str) -> Counter:
        """Register a new counter metric."""
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name=name, help_text=help_text)
            return self._counters[name]

    def register_histogram(self, name: str, help_text: str) -> Histogram:
        """Register a new histogram metric."""
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name=name, help_text=help_text)
            return self._histograms[name]

    def increment(self, name: str, labels: Optional[dict[str, str]] = None, value: int = 1) -> None:
        """Increment a counter."""
        if name in self._counters:
            self._counters[name].increment(labels, value)

    def observe(self, name: str, value: float) -> None:
        """Record a histogram observation."""
        if name in self._histograms:
            self._histograms[name].observe(value)

    def get_counter(self, name: str) -> Optional[Counter]:
        """Get a counter by name."""
        return self._counters.get(name)

    def get_histogram(self, name: str) -> Optional[Histogram]:
        """Get a histogram by name."""
        return self._histograms.get(name)

    def to_json(self) -> dict[str, Any]:
        """Export all metrics as JSON."""
        result = {
            "timestamp": _utc_timestamp(),
            "counters": {},
            "histograms": {},
        }

        for name, counter in self._counters.items():
            result["counters"][name] = [
                {"labels": dict(labels), "value": value}
                for labels, value in sorted(counter.values.items())
            ]

        for name, histogram in self._histograms.items():
            result["histograms"][name] = {
                "count": histogram.count,
                "p50": histogram.get_percentile(0.50),
                "p95": histogram.get_percentile(0.95),
                "p99": histogram.get_percentile(0.99),
            }

        return result

    def to_prometheus(self) -> str:
        """Export all metrics in Prometheus format."""
        lines = []

        for name, counter in self._counters.items():
            lines.append(f"# HELP {name} {counter.help_text}")
            lines.append(f"# TYPE {name} counter")
            if counter.values:
                for labels, value in sorted(counter.values.items()):
                    label_str = ",".join(f'{k}="{v}"' for k, v in labels) if labels else ""
                    if label_str:
                        lines.append(f"{name}{{{label_str}}} {value}")
                    else:
                        lines.append(f"{name} {value}")
            else:
                lines.append(f"{name} 0")

        for name, histogram in self._histograms.items():
            lines.append(f"# HELP {name} {histogram.help_text}")
            lines.append(f"# TYPE {name} histogram")
            # Simplified: just output count and sum
            lines.append(f"{name}_count {histogram.count}")
            lines.append(f"{name}_sum {histogram.total:.6f}")

        return "\n".join(lines)

    def reset_all(self) -> None:
        """Reset all metrics (for testing)."""
        for counter in self._counters.values():
            counter.reset()
        for histogram in self._histograms.values():
            histogram.reset()


# Global metrics instance
metrics = MetricsRegistry()


# =============================================================================
# Structured Logging
# =============================================================================

class StructuredLogger:
    """Logger that outputs structured JSON logs with session_id correlation."""

    def __init__(self, component: str, session_id: Optional[str] = None):
        self.component = component
        self.session_id = session_id
        self._logger = logging.getLogger(f"skillscope.{component}")

    def _format(self, level: str, event: str, **kwargs) -> str:
        """Format a log entry as JSON."""
        entry = {
            "timestamp": _utc_timestamp(),
            "level": level,
            "component": self.component,
            "event": event,
        }
        if self.session_id:
            entry["session_id"] = self.session_id
        entry.update(kwargs)
        return json.dumps(entry, default=str)

    def info(self, event: str, **kwargs) -> None:
        """Log an INFO level event."""
        self._logger.info(self._format("INFO", event, **kwargs))

    def warn(self, event: str, **kwargs) -> None:
        """Log a WARN level event."""
        self._logger.warning(self._format("WARN", event, **kwargs))

    def error(self, event: str, **kwargs) -> None:
        """Log an ERROR level event."""
        self._logger.error(self._format("ERROR", event, **kwargs))

    def debug(self, event: str, **kwargs) -> None:
        """Log a DEBUG level event."""
        self._logger.debug(self._format("DEBUG", event, **kwargs))


def get_logger(component: str, session_id: Optional[str] = None) -> StructuredLogger:
    """Get a structured logger for a component.

    Args:
        component: Name of the component (e.g., "engine", "corpus")
        session_id: Optional disclosure session ID for correlation

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(component, session_id)
