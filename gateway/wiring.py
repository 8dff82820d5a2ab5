"""
Storefront Gateway — Component Assembly
=========================================

What:  Builds every shared store and every route pipeline from Settings.
Why:   Cache partitions, limiter windows and metrics are the only shared
       mutable state. They are constructed once here, owned by the
       GatewayComponents object on `app.state`, and torn down by the
       lifespan. Nothing is a module-level singleton.
How:   `build_components(settings, clock)` returns the container. The
       clock is injectable so tests drive TTL and window expiry.

Pipelines:

    catalog_read   GET products          optional auth, ETag, shaping, products cache
    catalog_write  POST/PUT/DELETE       admin auth, shaping, products invalidation
    general_read   GET categories        ETag, shaping, general cache
    auth           /api/auth/*           strict limiter, no-cache, required auth, auth cache
    admin          /admin/cache*         admin auth, no-cache (query left unsanitized)
    health         /health*              request id, no-cache

Every API pipeline starts with:
    RequestID → Logging → Metrics → RateLimit → AttackDetection → Sanitization
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from gateway.cache.registry import AUTH, GENERAL, PRODUCTS, CacheRegistry
from gateway.config import Settings
from gateway.middleware import (
    AttackDetectionStage,
    AuthenticationStage,
    AuthorizationStage,
    CacheInvalidationStage,
    CacheStage,
    ETagStage,
    MetricsStage,
    NoCacheStage,
    RateLimitStage,
    RequestIDStage,
    RequestLoggingStage,
    ResponseShapingStage,
    SanitizationStage,
)
from gateway.pipeline import ErrorResponder, Pipeline, Stage
from gateway.security.detector import AttackDetector
from gateway.security.rate_limiter import RateLimiter
from gateway.security.sanitizer import Sanitizer
from gateway.services.auth import Authenticator, StaticTokenAuthenticator
from gateway.services.catalog import CatalogService
from gateway.services.health import HealthAggregator, cache_probe, data_source_probe, metrics_probe
from gateway.services.metrics import MetricsRecorder

CATALOG_READ = "catalog_read"
CATALOG_WRITE = "catalog_write"
GENERAL_READ = "general_read"
AUTH_PIPELINE = "auth"
ADMIN = "admin"
HEALTH = "health"

ADMIN_ROLE = "admin"


@dataclass
class GatewayComponents:
    settings: Settings
    registry: CacheRegistry
    general_limiter: RateLimiter
    auth_limiter: RateLimiter
    metrics: MetricsRecorder
    health: HealthAggregator
    catalog: CatalogService
    authenticator: Authenticator
    responder: ErrorResponder
    pipelines: Dict[str, Pipeline] = field(default_factory=dict)

    def pipeline(self, name: str) -> Pipeline:
        return self.pipelines[name]


def build_components(
    settings: Settings,
    clock: Callable[[], float] = time.monotonic,
    catalog: CatalogService = None,
    authenticator: Authenticator = None,
) -> GatewayComponents:
    registry = CacheRegistry(clock=clock)
    registry.create(PRODUCTS, settings.cache_products_ttl, settings.cache_products_max_keys)
    registry.create(AUTH, settings.cache_auth_ttl, settings.cache_auth_max_keys)
    registry.create(GENERAL, settings.cache_general_ttl, settings.cache_general_max_keys)

    metrics = MetricsRecorder()
    catalog = catalog or CatalogService()

    health = HealthAggregator()
    health.register("cache", cache_probe(registry))
    health.register("data_source", data_source_probe(catalog))
    health.register("metrics", metrics_probe(metrics), critical=False)

    components = GatewayComponents(
        settings=settings,
        registry=registry,
        general_limiter=RateLimiter(
            settings.rate_limit_requests, settings.rate_limit_window, name="general", clock=clock
        ),
        auth_limiter=RateLimiter(
            settings.auth_rate_limit_requests, settings.auth_rate_limit_window, name="auth", clock=clock
        ),
        metrics=metrics,
        health=health,
        catalog=catalog,
        authenticator=authenticator or StaticTokenAuthenticator(settings.api_tokens),
        responder=ErrorResponder(expose_internals=not settings.is_production),
    )
    components.pipelines = build_pipelines(components)
    return components


def build_pipelines(c: GatewayComponents) -> Dict[str, Pipeline]:
    detector = AttackDetector(malicious_agents=c.settings.malicious_user_agents)
    sanitizer = Sanitizer()

    def front(sanitize: bool = True) -> List[Stage]:
        stages: List[Stage] = [
            RequestIDStage(),
            RequestLoggingStage(),
            MetricsStage(c.metrics, slow_threshold_ms=c.settings.slow_request_threshold_ms),
            RateLimitStage(c.general_limiter),
            AttackDetectionStage(detector),
        ]
        if sanitize:
            stages.append(SanitizationStage(sanitizer))
        return stages

    def pipeline(name: str, *stages: Stage) -> Pipeline:
        return Pipeline(stages, error_responder=c.responder, name=name)

    products = c.registry.get(PRODUCTS)

    return {
        CATALOG_READ: pipeline(
            CATALOG_READ,
            *front(),
            AuthenticationStage(c.authenticator, required=False),
            # ETag before shaping: its interceptor runs after shaping.
            ETagStage(),
            ResponseShapingStage(),
            CacheStage(products, ttl=c.settings.cache_products_ttl),
        ),
        CATALOG_WRITE: pipeline(
            CATALOG_WRITE,
            *front(),
            AuthenticationStage(c.authenticator),
            AuthorizationStage([ADMIN_ROLE]),
            ResponseShapingStage(),
            CacheInvalidationStage(products),
        ),
        GENERAL_READ: pipeline(
            GENERAL_READ,
            *front(),
            ETagStage(),
            ResponseShapingStage(),
            CacheStage(c.registry.get(GENERAL), ttl=c.settings.cache_general_ttl),
        ),
        AUTH_PIPELINE: pipeline(
            AUTH_PIPELINE,
            *front(),
            RateLimitStage(c.auth_limiter, skip_successful_requests=True, name="AuthRateLimitStage"),
            NoCacheStage(),
            AuthenticationStage(c.authenticator),
            CacheStage(c.registry.get(AUTH), ttl=c.settings.cache_auth_ttl),
        ),
        ADMIN: pipeline(
            ADMIN,
            *front(sanitize=False),
            AuthenticationStage(c.authenticator),
            AuthorizationStage([ADMIN_ROLE]),
            NoCacheStage(),
        ),
        HEALTH: pipeline(HEALTH, RequestIDStage(), NoCacheStage()),
    }
