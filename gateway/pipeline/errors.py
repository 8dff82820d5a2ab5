"""
Storefront Gateway — Error Responder
======================================

What:  Turns any exception into a structured error PipelineResponse.
Who:   The pipeline engine (stage and handler failures) and the FastAPI
       exception handlers in main.py (failures outside the pipeline).

Mapping:
    GatewayError           → its declared status, its own message
                             (4xx logged at WARNING, 5xx at ERROR)
    anything else          → 500, generic message, full traceback logged;
                             the traceback is included in the body only
                             when `expose_internals` is on (non-production)

Body format:
    {
        "error": "rate_limit_exceeded",
        "message": "Rate limit exceeded. Please wait 30 seconds ...",
        "details": {"retry_after": 30},
        "request_id": "a1b2c3d4"
    }
"""

import logging
import traceback
from typing import TYPE_CHECKING, Any, Dict, Optional

from gateway.exceptions import GatewayError, SecurityRejection
from gateway.pipeline.response import PipelineResponse

if TYPE_CHECKING:
    from gateway.pipeline.engine import RequestContext

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again or contact support."


class ErrorResponder:
    def __init__(self, expose_internals: bool = False):
        self.expose_internals = expose_internals

    def respond(
        self,
        exc: BaseException,
        context: Optional["RequestContext"] = None,
        request_id: str = "",
    ) -> PipelineResponse:
        rid = context.request_id if context is not None else request_id
        if isinstance(exc, GatewayError):
            return self._respond_known(exc, rid, context)
        return self._respond_unexpected(exc, rid, context)

    def _respond_known(
        self,
        exc: GatewayError,
        rid: str,
        context: Optional["RequestContext"],
    ) -> PipelineResponse:
        path = context.request.path if context is not None else ""
        if isinstance(exc, SecurityRejection):
            logger.warning("[%s] Security rejection on %s: %s", rid, path, exc.message)
        elif exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.warning("[%s] %s on %s: %s", rid, type(exc).__name__, path, exc.message)

        body: Dict[str, Any] = {"error": exc.error_code, "message": exc.message}
        if exc.details is not None:
            body["details"] = exc.details
        body["request_id"] = rid
        return PipelineResponse(
            status_code=exc.status_code,
            payload=body,
            headers=dict(exc.headers),
            error=exc,
        )

    def _respond_unexpected(
        self,
        exc: BaseException,
        rid: str,
        context: Optional["RequestContext"],
    ) -> PipelineResponse:
        logger.error(
            "[%s] Unexpected error: %s",
            rid,
            str(exc),
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        body: Dict[str, Any] = {
            "error": "internal_server_error",
            "message": GENERIC_ERROR_MESSAGE,
            "request_id": rid,
        }
        if self.expose_internals:
            body["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return PipelineResponse(status_code=500, payload=body, error=exc)
