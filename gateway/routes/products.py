"""
Storefront Gateway — Product Routes
=====================================

What:  Catalog product endpoints.
How:   Each endpoint hands a plain handler to the route's pipeline. The
       handler sees only the (sanitized, authenticated) RequestDescriptor
       and returns a payload or a `(status, payload)` tuple; caching, ETags,
       shaping and security are the pipeline's business.

Endpoints:
    GET    /api/products          list (category, search, page, limit)   cached
    GET    /api/products/{id}     one product                            cached
    POST   /api/products          create   (admin)   invalidates cache
    PUT    /api/products/{id}     update   (admin)   invalidates cache
    DELETE /api/products/{id}     delete   (admin)   invalidates cache
"""

import logging
import math
from functools import partial

from fastapi import APIRouter, Request
from fastapi.responses import Response

from gateway.http import dispatch, get_components
from gateway.pipeline.request import RequestDescriptor
from gateway.pipeline.response import PipelineResponse
from gateway.schemas.product import ProductCreate, ProductQuery, ProductUpdate, validate_model
from gateway.services.catalog import CatalogService
from gateway.wiring import CATALOG_READ, CATALOG_WRITE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])


# ══════════════════════════════════════════════════════════════════════════
# Handlers
# ══════════════════════════════════════════════════════════════════════════


def list_products_handler(catalog: CatalogService, request: RequestDescriptor):
    query = validate_model(ProductQuery, request.query, "Invalid query parameters")
    items, total = catalog.list_products(
        category=query.category,
        search=query.search,
        page=query.page,
        limit=query.limit,
    )
    return {
        "data": items,
        "pagination": {
            "page": query.page,
            "limit": query.limit,
            "total": total,
            "pages": math.ceil(total / query.limit) if total else 0,
        },
    }


def get_product_handler(catalog: CatalogService, request: RequestDescriptor):
    return {"data": catalog.get_product(request.path_params["product_id"])}


def create_product_handler(catalog: CatalogService, request: RequestDescriptor):
    data = validate_model(ProductCreate, request.body)
    return 201, {"data": catalog.create_product(data)}


def update_product_handler(catalog: CatalogService, request: RequestDescriptor):
    changes = validate_model(ProductUpdate, request.body)
    return {"data": catalog.update_product(request.path_params["product_id"], changes)}


def delete_product_handler(catalog: CatalogService, request: RequestDescriptor):
    catalog.delete_product(request.path_params["product_id"])
    return PipelineResponse(status_code=204, empty=True)


# ══════════════════════════════════════════════════════════════════════════
# Endpoints
# ══════════════════════════════════════════════════════════════════════════


@router.get("", summary="List products")
async def list_products(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(
        request, components.pipeline(CATALOG_READ), partial(list_products_handler, components.catalog)
    )


@router.get("/{product_id}", summary="Get a product")
async def get_product(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(
        request, components.pipeline(CATALOG_READ), partial(get_product_handler, components.catalog)
    )


@router.post("", status_code=201, summary="Create a product (admin)")
async def create_product(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(
        request, components.pipeline(CATALOG_WRITE), partial(create_product_handler, components.catalog)
    )


@router.put("/{product_id}", summary="Update a product (admin)")
async def update_product(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(
        request, components.pipeline(CATALOG_WRITE), partial(update_product_handler, components.catalog)
    )


@router.delete("/{product_id}", status_code=204, summary="Delete a product (admin)")
async def delete_product(request: Request) -> Response:
    components = get_components(request)
    return await dispatch(
        request, components.pipeline(CATALOG_WRITE), partial(delete_product_handler, components.catalog)
    )
