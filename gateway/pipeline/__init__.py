"""
Request-processing pipeline: descriptors, responses, stages and the engine
that composes them. Framework-independent; see gateway.http for the
Starlette adapter.
"""

from gateway.pipeline.engine import (
    Handler,
    Pipeline,
    PipelineOutcome,
    RequestContext,
    StageState,
)
from gateway.pipeline.errors import ErrorResponder
from gateway.pipeline.request import HTTPMethod, Identity, RequestDescriptor
from gateway.pipeline.response import PipelineResponse
from gateway.pipeline.stage import Delegate, ResponseInterceptor, ShortCircuit, Stage

__all__ = [
    "Delegate",
    "ErrorResponder",
    "HTTPMethod",
    "Handler",
    "Identity",
    "Pipeline",
    "PipelineOutcome",
    "PipelineResponse",
    "RequestContext",
    "RequestDescriptor",
    "ResponseInterceptor",
    "ShortCircuit",
    "Stage",
    "StageState",
]
