"""
Storefront Gateway — HTTP Adapter
===================================

What:  The seam between Starlette and the framework-independent pipeline.
How:   1. `build_descriptor()` reads the Starlette request (body parsed as
          JSON) into an immutable RequestDescriptor.
       2. `dispatch()` runs the pipeline as its own task while a watcher
          waits for the client to disconnect. If the client leaves first,
          the pipeline task is cancelled: the context is marked aborted,
          interceptors unwind without writing to any store, and nothing is
          sent.
       3. `render()` turns the final PipelineResponse into a Starlette
          Response, serialized with the same encoder the ETag and size
          headers were computed from.
Who:   Every endpoint in gateway.routes.
"""

import asyncio
import json
import logging
from typing import TYPE_CHECKING

from starlette.requests import Request
from starlette.responses import Response

from gateway.exceptions import RequestAborted, ValidationError
from gateway.pipeline.engine import Handler, Pipeline, RequestContext
from gateway.pipeline.request import RequestDescriptor
from gateway.pipeline.response import PipelineResponse
from gateway.serialization import dumps

if TYPE_CHECKING:
    from gateway.wiring import GatewayComponents

logger = logging.getLogger(__name__)

# nginx's code for "client closed request"; logged, never sent.
CLIENT_CLOSED_REQUEST = 499


def get_components(request: Request) -> "GatewayComponents":
    return request.app.state.components


async def build_descriptor(request: Request) -> RequestDescriptor:
    """
    Raises:
        ValidationError: the body is present but is not valid JSON.
    """
    raw = await request.body()
    body = None
    if raw:
        try:
            body = json.loads(raw)
        except (UnicodeDecodeError, ValueError) as e:
            raise ValidationError("Request body is not valid JSON", field="body") from e

    return RequestDescriptor(
        method=request.method,
        path=request.url.path,
        query=dict(request.query_params),
        headers=request.headers,
        body=body,
        path_params=request.path_params,
        client_address=request.client.host if request.client else "unknown",
    )


def render(response: PipelineResponse) -> Response:
    headers = dict(response.headers)
    if response.empty:
        return Response(status_code=response.status_code, headers=headers)
    return Response(
        content=dumps(response.payload),
        status_code=response.status_code,
        headers=headers,
        media_type="application/json",
    )


async def _wait_for_disconnect(request: Request) -> None:
    # The body has been read by now, so the next message is the disconnect.
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def dispatch(request: Request, pipeline: Pipeline, handler: Handler) -> Response:
    descriptor = await build_descriptor(request)
    context = RequestContext(descriptor)

    task = asyncio.ensure_future(pipeline.handle(descriptor, handler, context))
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        context.abort()
        task.cancel()
        raise
    finally:
        watcher.cancel()

    if task.done():
        return render(task.result())

    context.abort()
    task.cancel()
    try:
        await task
    except (asyncio.CancelledError, RequestAborted):
        logger.info(
            "[%s] Client disconnected, %s %s aborted",
            context.request_id,
            descriptor.method.value,
            descriptor.path,
        )
    return Response(status_code=CLIENT_CLOSED_REQUEST)
