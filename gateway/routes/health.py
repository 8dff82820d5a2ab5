"""
Storefront Gateway — Health Check Routes
==========================================

What:  Health and metrics endpoints for monitoring and load balancer probes.
Why:   Load balancers route away from instances that report unhealthy; the
       metrics snapshot answers "is the gateway slow, and where".
How:   /health runs the HealthAggregator's dependency checks; /health/metrics
       returns the recorder snapshot plus per-partition cache stats. Both run
       through a minimal pipeline (request id, no-cache headers) and are
       exempt from rate limiting and access logging.

Status levels:
    - healthy:   all dependencies operational (HTTP 200)
    - degraded:  non-critical dependency down or slow (HTTP 200)
    - unhealthy: critical dependency down (HTTP 503, stop routing traffic)
"""

import logging
from functools import partial

from fastapi import APIRouter, Request
from fastapi.responses import Response

from gateway import __version__
from gateway.http import dispatch, get_components
from gateway.pipeline.request import RequestDescriptor
from gateway.schemas.health import HealthResponse
from gateway.services.health import UNHEALTHY
from gateway.wiring import HEALTH, GatewayComponents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


def health_handler(components: GatewayComponents, request: RequestDescriptor):
    report = components.health.check()
    body = HealthResponse(
        status=report["status"],
        version=__version__,
        environment=components.settings.environment,
        uptime_seconds=round(components.metrics.uptime_seconds, 2),
        dependencies=report["dependencies"],
    ).model_dump()
    if report["status"] == UNHEALTHY:
        logger.warning("Health check reports unhealthy: %s", report["dependencies"])
        return 503, body
    return body


def metrics_handler(components: GatewayComponents, request: RequestDescriptor):
    return {
        "metrics": components.metrics.snapshot(),
        "cache": components.registry.stats(),
    }


@router.get("", summary="Service health check")
async def health_check(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(request, components.pipeline(HEALTH), partial(health_handler, components))


@router.get("/metrics", summary="Request metrics and cache statistics")
async def health_metrics(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(request, components.pipeline(HEALTH), partial(metrics_handler, components))
