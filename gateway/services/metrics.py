"""
Storefront Gateway — Metrics Recorder
=======================================

What:  In-process request counters and latency statistics.
Why:   Cheap enough to run on every request, and enough to answer "is the
       gateway slow, and where" from /health/metrics without an external
       metrics backend.
How:   A single lock guards all counters. Latency statistics are computed
       over a sliding window of the most recent samples, so p95 reflects
       current behaviour rather than the whole process lifetime.
Who:   MetricsStage (writes), HealthAggregator and /health/metrics (reads).

Classification:
    status < 400  → successful
    status >= 400 → failed, counted per status code and per endpoint
"""

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict

SAMPLE_WINDOW = 1000
MAX_TRACKED_ENDPOINTS = 500
OVERFLOW_ENDPOINT = "(other)"


@dataclass
class EndpointStats:
    count: int = 0
    errors: int = 0
    total_time_ms: float = 0.0
    last_accessed: float = 0.0

    @property
    def avg_response_time_ms(self) -> float:
        return self.total_time_ms / self.count if self.count else 0.0


class MetricsRecorder:
    def __init__(self, sample_window: int = SAMPLE_WINDOW, max_endpoints: int = MAX_TRACKED_ENDPOINTS):
        self._lock = threading.Lock()
        self._sample_window = sample_window
        self._max_endpoints = max_endpoints
        self._started_at = time.time()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.total = 0
            self.successful = 0
            self.failed = 0
            self.in_progress = 0
            self.min_ms = math.inf
            self.max_ms = 0.0
            self._samples: Deque[float] = deque(maxlen=self._sample_window)
            self._endpoints: Dict[str, EndpointStats] = {}
            self._errors: Dict[int, int] = {}

    # ── Recording ─────────────────────────────────────────────────────────

    def request_started(self) -> None:
        with self._lock:
            self.total += 1
            self.in_progress += 1

    def request_finished(self, endpoint: str, status_code: int, duration_ms: float) -> None:
        with self._lock:
            self.in_progress = max(0, self.in_progress - 1)
            self.min_ms = min(self.min_ms, duration_ms)
            self.max_ms = max(self.max_ms, duration_ms)
            self._samples.append(duration_ms)

            stats = self._endpoint(endpoint)
            stats.count += 1
            stats.total_time_ms += duration_ms
            stats.last_accessed = time.time()

            if status_code < 400:
                self.successful += 1
            else:
                self.failed += 1
                stats.errors += 1
                self._errors[status_code] = self._errors.get(status_code, 0) + 1

    def _endpoint(self, endpoint: str) -> EndpointStats:
        stats = self._endpoints.get(endpoint)
        if stats is None:
            # Path parameters make the endpoint space unbounded.
            if len(self._endpoints) >= self._max_endpoints:
                endpoint = OVERFLOW_ENDPOINT
            stats = self._endpoints.setdefault(endpoint, EndpointStats())
        return stats

    # ── Reading ───────────────────────────────────────────────────────────

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self._started_at

    @property
    def error_rate(self) -> float:
        finished = self.successful + self.failed
        return self.failed / finished if finished else 0.0

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            samples = sorted(self._samples)
            avg = sum(samples) / len(samples) if samples else 0.0
            p95 = samples[min(len(samples) - 1, int(len(samples) * 0.95))] if samples else 0.0
            return {
                "requests": {
                    "total": self.total,
                    "successful": self.successful,
                    "failed": self.failed,
                    "inProgress": self.in_progress,
                    "errorRate": round(self.error_rate, 4),
                },
                "responseTime": {
                    "min": round(self.min_ms, 2) if samples else 0.0,
                    "max": round(self.max_ms, 2),
                    "avg": round(avg, 2),
                    "p95": round(p95, 2),
                    "samples": len(samples),
                },
                "endpoints": {
                    name: {
                        "count": stats.count,
                        "errors": stats.errors,
                        "avgResponseTime": round(stats.avg_response_time_ms, 2),
                    }
                    for name, stats in self._endpoints.items()
                },
                "errors": {str(status): count for status, count in sorted(self._errors.items())},
                "uptimeSeconds": round(self.uptime_seconds, 2),
            }
