"""Selection metrics aggregation.

Summarizes BarDiagnostics records across many selection calls: pool
sizes, how often bars fall short of their target, and operator failures.
"""

import logging
import threading
import time
from collections import deque
from datetime import datetime
from typing import Any

import numpy as np

from groove.diagnostics import BarDiagnostics

logger = logging.getLogger(__name__)


class SampleHistogram:
    """Tracks numeric samples with percentile calculations."""

    def __init__(self, max_samples: int = 10000):
        """Initialize sample histogram.

        Args:
            max_samples: Maximum samples to retain (circular buffer)
        """
        self.samples: deque[float] = deque(maxlen=max_samples)
        self.max_samples = max_samples

    def record(self, value: float) -> None:
        self.samples.append(value)

    def get_stats(self) -> dict[str, float | int]:
        """Get sample statistics.

        Returns:
            Dictionary with avg, p50, p95, min, max, samples count
        """
        if not self.samples:
            return {"avg": 0.0, "p50": 0.0, "p95": 0.0, "min": 0.0, "max": 0.0, "samples": 0}

        arr = np.array(list(self.samples), dtype=float)
        return {
            "avg": float(np.mean(arr)),
            "p50": float(np.percentile(arr, 50)),
            "p95": float(np.percentile(arr, 95)),
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "samples": len(self.samples),
        }


class SelectionMetrics:
    """Aggregates per-bar diagnostics into run-level statistics."""

    def __init__(self, max_samples: int = 10000) -> None:
        """Initialize metrics collector."""
        self.pool_before = SampleHistogram(max_samples)
        self.pool_after = SampleHistogram(max_samples)
        self.fill_ratio = SampleHistogram(max_samples)

        self.bars_recorded = 0
        self.short_bars = 0
        self.operator_failures = 0
        self.filter_reasons: dict[str, int] = {}

        self.start_time = time.time()
        self._lock = threading.Lock()

        logger.info("Selection metrics initialized")

    def record(self, diagnostics: BarDiagnostics) -> None:
        """Fold one bar's diagnostics into the aggregates.

        Args:
            diagnostics: Record built by a DiagnosticsCollector
        """
        with self._lock:
            self.bars_recorded += 1
            self.pool_before.record(diagnostics.pool_size_before_anchors)
            self.pool_after.record(diagnostics.pool_size_after_anchors)

            if diagnostics.target_count > 0:
                self.fill_ratio.record(diagnostics.selected_count / diagnostics.target_count)
                if diagnostics.selected_count < diagnostics.target_count:
                    self.short_bars += 1

            self.operator_failures += diagnostics.operator_failures
            for decision in diagnostics.filters:
                self.filter_reasons[decision.reason] = self.filter_reasons.get(decision.reason, 0) + 1

        if diagnostics.operator_failures:
            logger.warning(
                f"{diagnostics.operator_failures} operator failure(s) "
                f"(total: {self.operator_failures})",
                extra={"bar": diagnostics.bar_number, "role": diagnostics.role},
            )

    def get_snapshot(self) -> dict[str, Any]:
        """Get current metrics snapshot.

        Returns:
            Dictionary with all metrics data
        """
        with self._lock:
            return {
                "bars_recorded": self.bars_recorded,
                "short_bars": self.short_bars,
                "operator_failures": self.operator_failures,
                "pool_size_before_anchors": self.pool_before.get_stats(),
                "pool_size_after_anchors": self.pool_after.get_stats(),
                "fill_ratio": self.fill_ratio.get_stats(),
                "filter_reasons": dict(self.filter_reasons),
                "uptime_sec": time.time() - self.start_time,
                "timestamp": datetime.now().isoformat(),
            }
