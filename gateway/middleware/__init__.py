"""
Pipeline stages.

Default order on a cached read route:

    RequestID → Logging → Metrics → RateLimit → AttackDetection →
    Sanitization → Authentication → ETag → ResponseShaping → Cache
"""

from gateway.middleware.authentication import AuthenticationStage, AuthorizationStage, bearer_credential
from gateway.middleware.cache import CacheInvalidationStage, CacheStage, CachedResponse, NoCacheStage
from gateway.middleware.etag import ETagStage
from gateway.middleware.logging import RequestLoggingStage
from gateway.middleware.metrics import MetricsStage
from gateway.middleware.optimization import ResponseShapingStage
from gateway.middleware.rate_limit import RateLimitStage, client_key
from gateway.middleware.request_id import RequestIDStage, request_id_var
from gateway.middleware.security import AttackDetectionStage, SanitizationStage

__all__ = [
    "AttackDetectionStage",
    "AuthenticationStage",
    "AuthorizationStage",
    "CacheInvalidationStage",
    "CacheStage",
    "CachedResponse",
    "ETagStage",
    "MetricsStage",
    "NoCacheStage",
    "RateLimitStage",
    "RequestIDStage",
    "RequestLoggingStage",
    "ResponseShapingStage",
    "SanitizationStage",
    "bearer_credential",
    "client_key",
    "request_id_var",
]
