"""
Per-stage latency tracking for the detection loop.

Classification runs inside the update tick, so its cost has to fit in one
sampling period. The monitor keeps rolling latency windows per stage and
counts ticks whose work exceeded that budget.
"""

import time
import threading
import logging
from collections import deque
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """Tracks sample rate, per-stage latency, and budget overruns."""

    def __init__(self, window_size=100, budget_ms=20.0):
        self._window_size = window_size
        self._budget_ms = budget_ms
        self._lock = threading.Lock()

        self._sample_intervals = deque(maxlen=window_size)
        self._last_sample_time = None

        self._stage_times = {
            "classification": deque(maxlen=window_size),
            "total": deque(maxlen=window_size),
        }

        self._sample_count = 0
        self._overruns = 0
        self._start_time = time.time()

    @contextmanager
    def measure(self, stage_name: str):
        """Context manager to measure a stage's duration.

        Timing is recorded even when the measured block raises.
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            with self._lock:
                if stage_name not in self._stage_times:
                    self._stage_times[stage_name] = deque(maxlen=self._window_size)
                self._stage_times[stage_name].append(elapsed_ms)
                if stage_name == "total" and elapsed_ms > self._budget_ms:
                    self._overruns += 1

    def tick(self):
        """Call once per accepted sample."""
        now = time.perf_counter()
        with self._lock:
            if self._last_sample_time is not None:
                self._sample_intervals.append(now - self._last_sample_time)
            self._last_sample_time = now
            self._sample_count += 1

    @property
    def sample_rate(self) -> float:
        """Accepted samples per second (rolling average)."""
        with self._lock:
            if len(self._sample_intervals) < 2:
                return 0.0
            avg_interval = sum(self._sample_intervals) / len(self._sample_intervals)
            return 1.0 / avg_interval if avg_interval > 0 else 0.0

    @property
    def overruns(self) -> int:
        return self._overruns

    @property
    def budget_ms(self) -> float:
        return self._budget_ms

    def stage_latency_ms(self, stage_name: str) -> float:
        """Average latency for a stage in ms (0.0 if never measured)."""
        with self._lock:
            times = self._stage_times.get(stage_name)
            if not times:
                return 0.0
            return sum(times) / len(times)

    def get_report(self) -> dict:
        """Snapshot of the collected metrics."""
        with self._lock:
            latencies = {
                name: (sum(times) / len(times) if times else 0.0)
                for name, times in self._stage_times.items()
            }
        return {
            "sample_rate_hz": round(self.sample_rate, 1),
            "samples": self._sample_count,
            "overruns": self._overruns,
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "latencies_ms": {k: round(v, 3) for k, v in latencies.items()},
        }

    def print_report(self):
        report = self.get_report()
        logger.info("=" * 60)
        logger.info("PERFORMANCE REPORT")
        logger.info("=" * 60)
        logger.info("Sample rate:  %.1f Hz", report["sample_rate_hz"])
        logger.info("Samples:      %d", report["samples"])
        logger.info("Overruns:     %d (budget %.1f ms)", report["overruns"], self._budget_ms)
        logger.info("Uptime:       %.1fs", report["uptime_seconds"])
        logger.info("-" * 40)
        for stage, latency in report["latencies_ms"].items():
            logger.info("  %-18s %8.3f ms", stage, latency)
        logger.info("=" * 60)

    def reset(self):
        with self._lock:
            self._sample_intervals.clear()
            self._last_sample_time = None
            for times in self._stage_times.values():
                times.clear()
            self._sample_count = 0
            self._overruns = 0
            self._start_time = time.time()
