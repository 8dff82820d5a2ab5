"""
Storefront Gateway — Rate Limiting Stage
==========================================

What:  Rejects clients that exhaust their window with 429.
How:   Counts the request against the limiter before anything else runs.
       Allowed requests get x-ratelimit-* headers on the way out; rejected
       ones short-circuit with a RateLimitExceededError that carries the
       same headers plus Retry-After.

Response on rate limit:
    HTTP 429 Too Many Requests
    {"error": "rate_limit_exceeded", "message": "...", "details": {"retry_after": 42}}

Stacked limiters:
    When several limiters guard one route, the headers of whichever has
    the least quota left reach the client.

Skip-successful mode (auth limiter):
    With `skip_successful_requests=True`, a 2xx response gives its count
    back, so only failed attempts use up the window.
"""

import logging
from typing import Callable, Iterable

from gateway.exceptions import RateLimitExceededError
from gateway.pipeline.request import RequestDescriptor
from gateway.pipeline.stage import Delegate, Stage
from gateway.security.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_PATHS = frozenset({"/health", "/docs", "/openapi.json", "/redoc"})
REMAINING_HEADER = "x-ratelimit-remaining"


def client_key(request: RequestDescriptor) -> str:
    """Source address of the caller.

    Rate limiting runs ahead of authentication, so the address is the only
    key available at that point.
    """
    return f"ip:{request.client_address}"


class RateLimitStage(Stage):
    def __init__(
        self,
        limiter: RateLimiter,
        key_func: Callable[[RequestDescriptor], str] = client_key,
        skip_successful_requests: bool = False,
        excluded_paths: Iterable[str] = DEFAULT_EXCLUDED_PATHS,
        name: str = None,
    ):
        self.limiter = limiter
        self.key_func = key_func
        self.skip_successful_requests = skip_successful_requests
        self.excluded_paths = frozenset(excluded_paths)
        self._name = name

    def applies_to(self, request) -> bool:
        return request.path not in self.excluded_paths

    async def enter(self, request, context):
        key = self.key_func(request)
        decision = self.limiter.check(key)
        if not decision.allowed:
            raise RateLimitExceededError(
                retry_after=decision.retry_after,
                headers=decision.headers(),
                context={"key": key, "limiter": self.limiter.name},
            )

        def add_headers(response):
            if self.skip_successful_requests and response.is_success:
                self.limiter.release(key)
            inner_remaining = response.headers.get(REMAINING_HEADER)
            if inner_remaining is not None and int(inner_remaining) <= decision.remaining:
                return response
            for header, value in decision.headers().items():
                response.headers[header] = value
            return response

        return Delegate(interceptor=add_headers)
