"""
Storefront Gateway — Request Logging Stage
============================================

What:  One structured access-log record per request.
How:   Registers an interceptor that fires once the response is final
       (after every inner stage has unwound), so the logged status and
       cache status are what the client receives.
When:  Right after the request-id stage.

Record fields (`extra`):
    request_id, method, path, status, duration_ms, client_ip, cache_status

Level by status:
    5xx → ERROR, 4xx → WARNING, otherwise INFO

Not logged: request bodies and Authorization headers.

This stage is non-critical: a failure inside it is logged by the pipeline
and the request carries on.
"""

import logging
from typing import Iterable

from gateway.pipeline.stage import Delegate, Stage

logger = logging.getLogger("gateway.access")

DEFAULT_EXCLUDED_PATHS = frozenset({"/health"})


class RequestLoggingStage(Stage):
    critical = False

    def __init__(self, excluded_paths: Iterable[str] = DEFAULT_EXCLUDED_PATHS):
        self.excluded_paths = frozenset(excluded_paths)

    def applies_to(self, request) -> bool:
        return request.path not in self.excluded_paths

    async def enter(self, request, context):
        method = request.method.value
        path = request.path
        client_ip = request.client_address

        def log_response(response):
            duration_ms = context.elapsed_ms()
            status = response.status_code
            if status >= 500:
                log_level = logging.ERROR
            elif status >= 400:
                log_level = logging.WARNING
            else:
                log_level = logging.INFO

            cache_status = context.values.get("cache_status", "-")
            logger.log(
                log_level,
                "%s %s %d %.1fms cache=%s [%s] from %s",
                method,
                path,
                status,
                duration_ms,
                cache_status,
                context.request_id,
                client_ip,
                extra={
                    "request_id": context.request_id,
                    "method": method,
                    "path": path,
                    "status": status,
                    "duration_ms": round(duration_ms, 2),
                    "client_ip": client_ip,
                    "cache_status": cache_status,
                },
            )
            return response

        return Delegate(interceptor=log_response)
