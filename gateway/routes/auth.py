"""
Storefront Gateway — Auth Routes
==================================

What:  Identity lookup for the bearer token on the request.
How:   The auth pipeline adds the strict auth limiter (only failed attempts
       count), no-cache response headers, required authentication and a
       per-identity entry in the auth cache partition.

Endpoints:
    GET /api/auth/me    → {"data": {"id": ..., "role": ...}}
"""

from fastapi import APIRouter, Request
from fastapi.responses import Response

from gateway.http import dispatch, get_components
from gateway.pipeline.request import RequestDescriptor
from gateway.wiring import AUTH_PIPELINE

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def current_identity_handler(request: RequestDescriptor):
    identity = request.identity
    return {"data": {"id": identity.id, "role": identity.role}}


@router.get("/me", summary="Current identity")
async def current_identity(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(request, components.pipeline(AUTH_PIPELINE), current_identity_handler)
