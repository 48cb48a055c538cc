"""
EduVox Middleware Package

Contains:
- performance_monitor: per-route latency tracking
"""

from eduvox.middleware.performance_monitor import (
    PerformanceMonitorMiddleware,
    get_performance_stats,
    get_slow_requests,
    reset_stats
)

__all__ = [
    "PerformanceMonitorMiddleware",
    "get_performance_stats",
    "get_slow_requests",
    "reset_stats"
]
