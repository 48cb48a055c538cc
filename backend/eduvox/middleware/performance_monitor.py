"""
Performance Monitoring Middleware for EduVox

Keeps a rolling window of request durations per route so admins can see
which endpoints are slow. Pathway generation calls the model and is
expected to be slow; everything else should answer well under the
threshold.
"""

import os
import time
import logging
from typing import Callable, Dict, List, Optional, Tuple
from collections import defaultdict
from datetime import datetime
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_THRESHOLD_SECONDS = float(os.getenv("SLOW_REQUEST_THRESHOLD_SECONDS", "3.0"))
STATS_WINDOW_MINUTES = 60

UNMONITORED_PATHS = {"/health", "/", "/docs", "/openapi.json", "/redoc"}


class PerformanceStats:
    """Rolling per-route request durations."""

    def __init__(self, window_minutes: int = STATS_WINDOW_MINUTES):
        # {route: [(timestamp, duration), ...]}
        self._requests: Dict[str, List[Tuple[float, float]]] = defaultdict(list)
        self._window_seconds = window_minutes * 60

    def _prune(self, route: str):
        cutoff_time = time.time() - self._window_seconds
        self._requests[route] = [
            (ts, dur) for ts, dur in self._requests.get(route, [])
            if ts > cutoff_time
        ]

    def record_request(self, route: str, duration: float):
        self._prune(route)
        self._requests[route].append((time.time(), duration))

    def summarize(self, route: str) -> Dict:
        self._prune(route)
        durations = sorted(dur for _, dur in self._requests.get(route, []))
        if not durations:
            return {"route": route, "count": 0, "avg_ms": 0, "min_ms": 0, "max_ms": 0, "p95_ms": 0, "slow_requests": 0}

        p95 = durations[min(int(len(durations) * 0.95), len(durations) - 1)]
        return {
            "route": route,
            "count": len(durations),
            "avg_ms": round(sum(durations) / len(durations) * 1000, 2),
            "min_ms": round(durations[0] * 1000, 2),
            "max_ms": round(durations[-1] * 1000, 2),
            "p95_ms": round(p95 * 1000, 2),
            "slow_requests": sum(1 for d in durations if d > SLOW_REQUEST_THRESHOLD_SECONDS),
        }

    def get_stats(self, route: Optional[str] = None) -> Dict:
        if route:
            return self.summarize(route)
        return {r: self.summarize(r) for r in list(self._requests.keys())}

    def get_slow_requests(self, threshold_seconds: float = SLOW_REQUEST_THRESHOLD_SECONDS) -> List[Dict]:
        slow = [
            {
                "route": route,
                "duration_ms": round(dur * 1000, 2),
                "timestamp": datetime.fromtimestamp(ts).isoformat(),
            }
            for route, requests in self._requests.items()
            for ts, dur in requests
            if dur > threshold_seconds
        ]
        return sorted(slow, key=lambda x: x["duration_ms"], reverse=True)


_performance_stats = PerformanceStats()


def _route_label(request: Request) -> str:
    # Group by route template so /api/universities/{university_id} is one entry
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    return f"{request.method} {path}"


class PerformanceMonitorMiddleware(BaseHTTPMiddleware):
    """Times every request and adds an X-Response-Time header."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in UNMONITORED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        label = _route_label(request)
        _performance_stats.record_request(label, duration)
        response.headers["X-Response-Time"] = f"{duration * 1000:.2f}ms"

        if duration > SLOW_REQUEST_THRESHOLD_SECONDS:
            logger.warning(f"Slow request: {label} took {duration:.2f}s")

        return response


def get_performance_stats(route: Optional[str] = None) -> Dict:
    return _performance_stats.get_stats(route)


def get_slow_requests(threshold_seconds: float = SLOW_REQUEST_THRESHOLD_SECONDS) -> List[Dict]:
    return _performance_stats.get_slow_requests(threshold_seconds)


def reset_stats():
    global _performance_stats
    _performance_stats = PerformanceStats()
