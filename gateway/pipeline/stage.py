"""
Storefront Gateway — Pipeline Stage Contract
==============================================

What:  The interface every pipeline stage implements.
How:   A stage is entered once per request and answers with one of:

    ShortCircuit(response)      → final response, the rest of the chain
                                  (and the handler) never runs
    Delegate(request, interceptor)
                                → continue; optionally swap the request
                                  descriptor and register a response
                                  interceptor to run while unwinding
    None                        → delegate unmodified

    Raising a GatewayError from `enter` is the same as short-circuiting with
    the matching error response.

Anatomy:

    class StampStage(Stage):
        async def enter(self, request, context):
            def stamp(response):
                response.headers["x-stamped"] = "true"
                return response
            return Delegate(interceptor=stamp)

Interceptors run in reverse registration order: the stage registered last
sees the handler's response first.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Union

from gateway.pipeline.request import RequestDescriptor
from gateway.pipeline.response import PipelineResponse

if TYPE_CHECKING:
    from gateway.pipeline.engine import RequestContext


ResponseInterceptor = Callable[
    [PipelineResponse],
    Union[Optional[PipelineResponse], Awaitable[Optional[PipelineResponse]]],
]


@dataclass
class Delegate:
    request: Optional[RequestDescriptor] = None
    interceptor: Optional[ResponseInterceptor] = None


@dataclass
class ShortCircuit:
    response: PipelineResponse


StageResult = Union[Delegate, ShortCircuit, None]


class Stage(ABC):
    """
    Abstract base class for pipeline stages.

    Stages are registered once at process start and are stateless
    themselves: any state lives in the stores they close over.

    Attributes:
        critical: A non-critical stage (logging, metrics) that raises an
                  unexpected exception is logged and skipped instead of
                  failing the request.
    """

    critical: bool = True

    @property
    def name(self) -> str:
        """Stage name used in traces and logs. Unique within a pipeline."""
        return getattr(self, "_name", None) or self.__class__.__name__

    def applies_to(self, request: RequestDescriptor) -> bool:
        """Stages that do not apply are skipped entirely (never entered)."""
        return True

    @abstractmethod
    async def enter(self, request: RequestDescriptor, context: "RequestContext") -> StageResult:
        """Inspect the request and decide: short-circuit, delegate, or pass."""
