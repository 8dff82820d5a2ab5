"""
Storefront Gateway — Health Aggregator
========================================

What:  Probes the gateway's dependencies and reduces them to one status.
How:   Each check is a small callable returning details, or raising. The
       aggregator times every check, records its status and folds them:

    any critical check unhealthy          → unhealthy  (HTTP 503)
    any check degraded / non-critical down → degraded   (HTTP 200)
    otherwise                              → healthy    (HTTP 200)

Checks registered by the application:
    cache        (critical)      every partition answers stats()
    data_source  (critical)      the catalog answers ping()
    metrics      (non-critical)  degraded when the recent error rate is high
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from gateway.cache.registry import CacheRegistry
from gateway.services.catalog import CatalogService
from gateway.services.metrics import MetricsRecorder

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"

ERROR_RATE_DEGRADED = 0.25


class DegradedDependency(Exception):
    """Raised by a check that works but is not performing well."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details


@dataclass
class HealthCheck:
    name: str
    probe: Callable[[], Dict[str, Any]]
    critical: bool = True


class HealthAggregator:
    def __init__(self, checks: Optional[List[HealthCheck]] = None):
        self._checks: List[HealthCheck] = list(checks or [])

    def register(self, name: str, probe: Callable[[], Dict[str, Any]], critical: bool = True) -> None:
        self._checks.append(HealthCheck(name, probe, critical))

    def check(self) -> Dict[str, Any]:
        overall = HEALTHY
        dependencies: Dict[str, Dict[str, Any]] = {}

        for check in self._checks:
            started = time.perf_counter()
            result: Dict[str, Any] = {"status": HEALTHY}
            try:
                result["details"] = check.probe()
            except DegradedDependency as e:
                result.update(status=DEGRADED, error=str(e), details=e.details)
                overall = DEGRADED if overall != UNHEALTHY else overall
            except Exception as e:
                if check.critical:
                    result.update(status=UNHEALTHY, error=str(e))
                    overall = UNHEALTHY
                else:
                    result.update(status=DEGRADED, error=str(e))
                    overall = DEGRADED if overall != UNHEALTHY else overall
                logger.warning("Health check: %s failed: %s", check.name, str(e))
            result["response_time_ms"] = round((time.perf_counter() - started) * 1000, 2)
            dependencies[check.name] = result

        return {"status": overall, "dependencies": dependencies}


# ── Standard probes ───────────────────────────────────────────────────────


def cache_probe(registry: CacheRegistry) -> Callable[[], Dict[str, Any]]:
    def probe() -> Dict[str, Any]:
        stats = registry.stats()
        hits = sum(s["hitCount"] for s in stats.values())
        misses = sum(s["missCount"] for s in stats.values())
        return {
            "partitions": len(stats),
            "totalKeys": sum(s["entryCount"] for s in stats.values()),
            "hitRate": round(hits / (hits + misses), 4) if hits + misses else 0.0,
        }

    return probe


def data_source_probe(catalog: CatalogService) -> Callable[[], Dict[str, Any]]:
    return catalog.ping


def metrics_probe(recorder: MetricsRecorder, threshold: float = ERROR_RATE_DEGRADED) -> Callable[[], Dict[str, Any]]:
    def probe() -> Dict[str, Any]:
        details = {"errorRate": round(recorder.error_rate, 4), "inProgress": recorder.in_progress}
        if recorder.error_rate > threshold:
            raise DegradedDependency(f"error rate above {threshold:.0%}", details)
        return details

    return probe
