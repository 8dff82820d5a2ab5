"""
Storefront Gateway — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes logging, component assembly, route mounting, exception
       handling and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance
       whose `state.components` owns every store and pipeline.
Who:   Called by uvicorn to start the server (uvicorn gateway.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                       FastAPI App                         │
    │                                                           │
    │  ASGI Middleware:  CORS → GZip                            │
    │                                                           │
    │  Routes (each delegates into its pipeline):               │
    │  ┌──────────────┐ ┌────────────────┐ ┌─────────────────┐  │
    │  │ /api/products│ │ /api/categories│ │ /api/auth/me    │  │
    │  └──────────────┘ └────────────────┘ └─────────────────┘  │
    │  ┌──────────────┐ ┌────────────────┐                      │
    │  │ /admin/cache │ │ /health        │                      │
    │  └──────────────┘ └────────────────┘                      │
    │                                                           │
    │  Exception Handlers (failures outside a pipeline):        │
    │  GatewayError → declared status │ Exception → 500         │
    └───────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (logged, not fatal)
    3. Start the cache sweeper

    Shutdown:
    1. Stop the sweeper, drop all cache partitions
    2. Log shutdown complete
"""

import logging
import sys
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway import __version__
from gateway.config import Settings, settings as default_settings
from gateway.exceptions import GatewayError, ValidationError
from gateway.http import render
from gateway.middleware.request_id import REQUEST_ID_HEADER, request_id_var
from gateway.pipeline.response import PipelineResponse
from gateway.routes import admin, auth, categories, health, products
from gateway.schemas.product import pydantic_errors
from gateway.wiring import GatewayComponents, build_components

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    The access log ("gateway.access") carries request_id, method, path,
    status, duration_ms, client_ip and cache_status as record attributes,
    so a JSON formatter can be dropped in without touching the stages.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    components: GatewayComponents = app.state.components
    config = components.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("Storefront Gateway %s starting up (%s)...", __version__, config.environment)

    try:
        config.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        # Don't exit: the server can still answer health checks.

    components.registry.start_sweeper(config.cache_sweep_interval)

    logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Storefront Gateway shutting down...")
    await components.registry.shutdown()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return request_id_var.get("") or request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())[:8]


def register_exception_handlers(app: FastAPI) -> None:
    """
    Failures inside a pipeline never reach these handlers: the pipeline's
    ErrorResponder has already turned them into responses. What arrives
    here happened outside one (malformed JSON body, unknown route,
    framework validation), and goes through the same responder so every
    error body has the same shape.
    """

    def respond(request: Request, exc: BaseException):
        components: GatewayComponents = request.app.state.components
        rid = _request_id(request)
        response = components.responder.respond(exc, request_id=rid)
        response.headers[REQUEST_ID_HEADER] = rid
        return render(response)

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(request: Request, exc: GatewayError):
        return respond(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return respond(request, ValidationError("Request validation failed", errors=pydantic_errors(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        rid = _request_id(request)
        error_code = "not_found" if exc.status_code == 404 else "http_error"
        response = PipelineResponse.json(
            {"error": error_code, "message": str(exc.detail), "request_id": rid},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )
        response.headers[REQUEST_ID_HEADER] = rid
        return render(response)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        return respond(request, exc)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: configuration; the module singleton when omitted
        clock:    time source for cache TTLs and rate-limit windows
    """
    config = settings or default_settings

    app = FastAPI(
        title="Storefront Gateway API",
        description=(
            "Product catalog API behind a request-processing pipeline with "
            "response caching, conditional delivery and security filtering."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.components = build_components(config, clock=clock)

    # ── Register Middleware ───────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "etag",
            "cache-status",
            "cache-key",
            "x-response-size",
            "x-response-time",
            "x-ratelimit-limit",
            "x-ratelimit-remaining",
            "x-ratelimit-reset",
        ],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(products.router)
    app.include_router(categories.router)
    app.include_router(auth.router)
    app.include_router(admin.router)
    app.include_router(health.router)

    return app


# uvicorn expects `gateway.main:app` to be importable
app = create_app()
