"""Category routes. Served from the general cache partition."""

from functools import partial

from fastapi import APIRouter, Request
from fastapi.responses import Response

from gateway.http import dispatch, get_components
from gateway.pipeline.request import RequestDescriptor
from gateway.services.catalog import CatalogService
from gateway.wiring import GENERAL_READ

router = APIRouter(prefix="/api/categories", tags=["Categories"])


def list_categories_handler(catalog: CatalogService, request: RequestDescriptor):
    categories = catalog.list_categories()
    return {"data": categories, "total": len(categories)}


@router.get("", summary="List categories")
async def list_categories(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(
        request, components.pipeline(GENERAL_READ), partial(list_categories_handler, components.catalog)
    )
