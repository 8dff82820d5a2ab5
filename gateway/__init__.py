"""
Storefront Gateway — Application Package Initializer
=====================================================

What: Marks the `gateway` directory as a Python package.
Who:  Imported by uvicorn (`gateway.main:app`), pytest, and every module below.

Architecture Note:
    Every inbound request flows through an explicit, ordered pipeline of
    stages before it reaches a route handler:

    ┌─────────────────────────────────────┐
    │      Routes (FastAPI endpoints)     │  ← HTTP adapter only
    ├─────────────────────────────────────┤
    │    Pipeline (stages + interceptors) │  ← cache, ETag, shaping, security
    ├─────────────────────────────────────┤
    │   Handlers (catalog, auth, admin)   │  ← opaque payload producers
    ├─────────────────────────────────────┤
    │   Stores (cache, rate limit, stats) │  ← shared mutable state
    └─────────────────────────────────────┘

    The pipeline has no FastAPI dependency; `gateway.http` translates
    between Starlette requests/responses and pipeline descriptors.
"""

__version__ = "1.0.0"
