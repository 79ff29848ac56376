"""
Performance monitoring utilities.

This module provides tools for recording operation latency, counting
engine calls and sampling process resource usage.
"""

import time
import psutil
import threading
from contextlib import contextmanager
from typing import Dict, List, Any
import logging

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """
    Performance monitoring for the matching engine.

    Tracks operation latency, call counters and process resources.
    """

    def __init__(self):
        """Initialize performance monitor."""
        self.metrics: Dict[str, List[float]] = {}
        self.counters: Dict[str, int] = {}
        self.start_time = time.time()
        self.lock = threading.Lock()

        self.process = psutil.Process()
        self.initial_memory = self.process.memory_info().rss

        logger.info("Performance monitor initialized")

    def record_metric(self, name: str, value: float) -> None:
        """
        Record a performance metric.

        Args:
            name: Metric name
            value: Metric value
        """
        with self.lock:
            self.metrics.setdefault(name, []).append(value)

    def increment_counter(self, name: str, value: int = 1) -> None:
        """
        Increment a counter metric.

        Args:
            name: Counter name
            value: Increment value
        """
        with self.lock:
            self.counters[name] = self.counters.get(name, 0) + value

    def get_metric_stats(self, name: str) -> Dict[str, float]:
        """
        Get statistics for a metric.

        Args:
            name: Metric name

        Returns:
            Dictionary with min, max, avg, count
        """
        with self.lock:
            values = self.metrics.get(name)
            if not values:
                return {"min": 0, "max": 0, "avg": 0, "count": 0}

            return {
                "min": min(values),
                "max": max(values),
                "avg": sum(values) / len(values),
                "count": len(values)
            }

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        with self.lock:
            return self.counters.get(name, 0)

    def get_system_stats(self) -> Dict[str, Any]:
        """Get current process statistics."""
        try:
            memory_info = self.process.memory_info()

            return {
                "memory_rss_mb": memory_info.rss / 1024 / 1024,
                "memory_percent": self.process.memory_percent(),
                "cpu_percent": self.process.cpu_percent(),
                "thread_count": self.process.num_threads(),
                "memory_growth_mb": (memory_info.rss - self.initial_memory) / 1024 / 1024
            }
        except psutil.Error as e:
            logger.error(f"Error getting system stats: {str(e)}")
            return {}

    def get_summary(self) -> Dict[str, Any]:
        """Get performance summary."""
        with self.lock:
            summary = {
                "uptime_seconds": time.time() - self.start_time,
                "counters": dict(self.counters),
                "metrics": {}
            }
            names = list(self.metrics)

        for name in names:
            summary["metrics"][name] = self.get_metric_stats(name)

        summary.update(self.get_system_stats())
        return summary

    def reset(self) -> None:
        """Reset all metrics and counters."""
        with self.lock:
            self.metrics.clear()
            self.counters.clear()
            self.start_time = time.time()
            self.initial_memory = self.process.memory_info().rss


@contextmanager
def measure_latency(monitor: PerformanceMonitor, operation_name: str):
    """
    Context manager to measure operation latency.

    Args:
        monitor: Performance monitor instance
        operation_name: Name of the operation being measured
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        monitor.record_metric(f"{operation_name}_latency_ms", latency_ms)


class LatencyTracker:
    """
    Track latency percentiles for a single operation.
    """

    def __init__(self, max_samples: int = 10000):
        """
        Initialize latency tracker.

        Args:
            max_samples: Maximum number of samples to keep
        """
        self.max_samples = max_samples
        self.samples: List[float] = []
        self.lock = threading.Lock()

    def record(self, latency_ms: float) -> None:
        """
        Record a latency measurement.

        Args:
            latency_ms: Latency in milliseconds
        """
        with self.lock:
            self.samples.append(latency_ms)
            if len(self.samples) > self.max_samples:
                self.samples.pop(0)

    def get_percentiles(self) -> Dict[str, float]:
        """
        Get latency percentiles.

        Returns:
            Dictionary with p50, p90, p95, p99 percentiles
        """
        with self.lock:
            if not self.samples:
                return {"p50": 0, "p90": 0, "p95": 0, "p99": 0}

            sorted_samples = sorted(self.samples)
            n = len(sorted_samples)

            return {
                "p50": sorted_samples[int(0.5 * n)],
                "p90": sorted_samples[int(0.9 * n)],
                "p95": sorted_samples[int(0.95 * n)],
                "p99": sorted_samples[int(0.99 * n)]
            }


# Global performance monitor instance, created on first use
_performance_monitor = None


def get_performance_monitor() -> PerformanceMonitor:
    """Get the process-wide performance monitor instance."""
    global _performance_monitor
    if _performance_monitor is None:
        _performance_monitor = PerformanceMonitor()
    return _performance_monitor
