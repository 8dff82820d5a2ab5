"""
Storefront Gateway — Request ID Stage
=======================================

What:  Assigns a correlation id to each request and echoes it back.
How:   Uses the client's X-Request-ID when present, otherwise a short UUID.
       The id goes into a ContextVar (for loggers and exception handlers),
       onto the RequestContext (for the error responder) and into the
       X-Request-ID response header.
When:  First stage of every pipeline, so every later log line and error
       body carries the id.
"""

import uuid
from contextvars import ContextVar

from gateway.pipeline.stage import Delegate, Stage

# Coroutine-local: concurrent requests on one event loop each see their own id.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDStage(Stage):
    critical = False

    async def enter(self, request, context):
        rid = request.header(REQUEST_ID_HEADER) or str(uuid.uuid4())[:8]
        request_id_var.set(rid)
        context.request_id = rid

        def add_header(response):
            response.headers[REQUEST_ID_HEADER] = rid
            return response

        return Delegate(interceptor=add_header)
