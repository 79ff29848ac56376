"""
Utility modules for the matching engine.

This module provides logging and performance monitoring helpers.
"""

from .logger import setup_logging, get_logger, EngineLogger
from .performance import PerformanceMonitor, LatencyTracker, get_performance_monitor

__all__ = [
    "setup_logging",
    "get_logger",
    "EngineLogger",
    "PerformanceMonitor",
    "LatencyTracker",
    "get_performance_monitor",
]
