"""
Storefront Gateway — Cache Stages
===================================

What:  Response caching, write-through invalidation and no-cache headers.

CacheStage:
    HIT   → short-circuits with the stored status + payload; the handler
            never runs. Headers: cache-status: HIT, cache-key.
    MISS  → delegates; while unwinding, a successful (2xx) response is
            stored under the derived key. Headers: cache-status: MISS,
            cache-key, and cache-ttl when the response was stored.

    Error responses, empty bodies and responses to aborted requests are
    never stored.

CacheInvalidationStage:
    After a successful write (POST/PUT/PATCH/DELETE) the whole partition is
    cleared, since a single product change can alter any list page.

NoCacheStage:
    Marks responses as uncacheable for browsers and proxies (auth routes).
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from gateway.cache.keys import derive_cache_key
from gateway.cache.store import CacheStore
from gateway.pipeline.request import HTTPMethod
from gateway.pipeline.response import PipelineResponse
from gateway.pipeline.stage import Delegate, ShortCircuit, Stage

logger = logging.getLogger(__name__)

CACHE_STATUS_HEADER = "cache-status"
CACHE_KEY_HEADER = "cache-key"
CACHE_TTL_HEADER = "cache-ttl"

WRITE_METHODS = frozenset({HTTPMethod.POST, HTTPMethod.PUT, HTTPMethod.PATCH, HTTPMethod.DELETE})

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


@dataclass(frozen=True)
class CachedResponse:
    status_code: int
    payload: Any


class CacheStage(Stage):
    """
    Args:
        store:    partition the stage reads and writes
        ttl:      seconds to keep stored responses (store default if None)
        methods:  request methods eligible for caching
    """

    def __init__(
        self,
        store: CacheStore,
        ttl: Optional[int] = None,
        methods: Iterable[str] = ("GET",),
        name: str = None,
    ):
        self.store = store
        self.ttl = ttl if ttl is not None else store.default_ttl
        self.methods = frozenset(HTTPMethod(m.upper()) for m in methods)
        self._name = name

    def applies_to(self, request) -> bool:
        return request.method in self.methods

    async def enter(self, request, context):
        key = derive_cache_key(request)
        context.values["cache_key"] = key

        cached = self.store.get(key)
        if cached is not None:
            context.values["cache_status"] = "HIT"
            logger.debug("[%s] Cache HIT %s", context.request_id, key)
            response = PipelineResponse.json(cached.payload, status_code=cached.status_code)
            response.headers[CACHE_STATUS_HEADER] = "HIT"
            response.headers[CACHE_KEY_HEADER] = key
            return ShortCircuit(response)

        context.values["cache_status"] = "MISS"

        def store_response(response):
            if response.is_success and not response.empty and not context.aborted:
                self.store.set(key, CachedResponse(response.status_code, response.payload), self.ttl)
                response.headers[CACHE_TTL_HEADER] = str(self.ttl)
            response.headers[CACHE_STATUS_HEADER] = "MISS"
            response.headers[CACHE_KEY_HEADER] = key
            return response

        return Delegate(interceptor=store_response)


class CacheInvalidationStage(Stage):
    def __init__(self, store: CacheStore, methods: Iterable[HTTPMethod] = WRITE_METHODS, name: str = None):
        self.store = store
        self.methods = frozenset(HTTPMethod(m) for m in methods)
        self._name = name

    def applies_to(self, request) -> bool:
        return request.method in self.methods

    async def enter(self, request, context):
        def invalidate(response):
            if response.is_success and not context.aborted:
                self.store.clear()
                logger.info(
                    "[%s] %s %s invalidated cache partition %s",
                    context.request_id,
                    request.method.value,
                    request.path,
                    self.store.name,
                )
            return response

        return Delegate(interceptor=invalidate)


class NoCacheStage(Stage):
    async def enter(self, request, context):
        def mark(response):
            for header, value in NO_CACHE_HEADERS.items():
                response.headers[header] = value
            return response

        return Delegate(interceptor=mark)
