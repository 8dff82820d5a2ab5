"""
Storefront Gateway — Cache Administration Routes
==================================================

Endpoints (admin role required):
    GET    /admin/cache                                → stats per partition
    DELETE /admin/cache/{partition}                    → clear one partition
    DELETE /admin/cache/{partition}/entries?key=...    → drop one key

Keys are the exact strings reported in the `cache-key` response header.
"""

from functools import partial

from fastapi import APIRouter, Request
from fastapi.responses import Response

from gateway.cache.registry import CacheRegistry
from gateway.exceptions import ValidationError
from gateway.http import dispatch, get_components
from gateway.pipeline.request import RequestDescriptor
from gateway.wiring import ADMIN

router = APIRouter(prefix="/admin/cache", tags=["Admin"])


def cache_stats_handler(registry: CacheRegistry, request: RequestDescriptor):
    return {"data": registry.stats()}


def clear_partition_handler(registry: CacheRegistry, request: RequestDescriptor):
    partition = request.path_params["partition"]
    registry.clear(partition)
    return {"data": {"partition": partition, "cleared": True}}


def delete_entry_handler(registry: CacheRegistry, request: RequestDescriptor):
    partition = request.path_params["partition"]
    key = request.query.get("key")
    if not key:
        raise ValidationError("Query parameter 'key' is required", field="key")
    deleted = registry.delete(partition, key)
    return {"data": {"partition": partition, "key": key, "deleted": deleted}}


@router.get("", summary="Cache statistics")
async def cache_stats(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(request, components.pipeline(ADMIN), partial(cache_stats_handler, components.registry))


@router.delete("/{partition}", summary="Clear a cache partition")
async def clear_partition(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(
        request, components.pipeline(ADMIN), partial(clear_partition_handler, components.registry)
    )


@router.delete("/{partition}/entries", summary="Delete one cache entry")
async def delete_entry(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(
        request, components.pipeline(ADMIN), partial(delete_entry_handler, components.registry)
    )
