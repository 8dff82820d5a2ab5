"""
Storefront Gateway — Pipeline Composition Engine
==================================================

What:  Runs an ordered list of stages around a terminal handler.
How:   Stages are entered in registration order. Each one either
       short-circuits, or delegates (optionally registering a response
       interceptor). Once a response exists, the interceptors of every stage
       that delegated run in REVERSE registration order, each allowed to
       replace or annotate the response before the stage registered before
       it sees it.

    Request ──► [RequestID] ─► [RateLimit] ─► [ETag] ─► [Shape] ─► [Cache] ─► handler
                    │              │            │          │          │          │
    Response ◄── unwind ◄─────── unwind ◄──── unwind ◄── unwind ◄── unwind ◄────┘

Per-stage state machine:

    PENDING → ENTERED → SHORT_CIRCUITED
                      → DELEGATED → UNWINDING → UNWOUND
    PENDING → SKIPPED                       (stage does not apply)

Pipeline outcome: SHORT_CIRCUITED (handler never ran), COMPLETED (handler
ran and all interceptors unwound) or ABORTED (caller went away).

Invariants:
    - exactly one response per request;
    - every stage that delegated is unwound exactly once, whether the
      response came from the handler, a cache hit, a short-circuit, a
      failure, or an abort.
"""

import asyncio
import inspect
import logging
import time
from collections import OrderedDict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from gateway.exceptions import GatewayError, RequestAborted
from gateway.pipeline.errors import ErrorResponder
from gateway.pipeline.request import RequestDescriptor
from gateway.pipeline.response import PipelineResponse
from gateway.pipeline.stage import Delegate, ResponseInterceptor, ShortCircuit, Stage

logger = logging.getLogger(__name__)

Handler = Callable[[RequestDescriptor], Union[Any, Awaitable[Any]]]


class StageState(str, Enum):
    PENDING = "pending"
    SKIPPED = "skipped"
    ENTERED = "entered"
    SHORT_CIRCUITED = "short_circuited"
    DELEGATED = "delegated"
    UNWINDING = "unwinding"
    UNWOUND = "unwound"


class PipelineOutcome(str, Enum):
    SHORT_CIRCUITED = "short_circuited"
    COMPLETED = "completed"
    ABORTED = "aborted"


class RequestContext:
    """
    Per-request bookkeeping shared by all stages of one pipeline run.

    Attributes:
        request:     the current descriptor (stages may swap it while delegating)
        request_id:  correlation id, set by the request-id stage
        states:      stage name → last StageState, in entry order
        unwinds:     stage name → number of unwind callbacks observed
        outcome:     PipelineOutcome once the run has finished
        aborted:     True once the caller went away; stores must not be
                     written on behalf of an aborted request
        values:      scratch space for stages to share facts (cache status)
    """

    def __init__(self, request: RequestDescriptor, request_id: str = ""):
        self.original_request = request
        self.request = request
        self.request_id = request_id
        self.states: "OrderedDict[str, StageState]" = OrderedDict()
        self.unwinds: Dict[str, int] = {}
        self.outcome: Optional[PipelineOutcome] = None
        self.aborted = False
        self.started_at = time.perf_counter()
        self.values: Dict[str, Any] = {}

    def abort(self) -> None:
        self.aborted = True

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000

    def _mark(self, stage: Stage, state: StageState) -> None:
        self.states[stage.name] = state


class Pipeline:
    """
    An ordered chain of stages wrapped around a handler.

    Usage:
        pipeline = Pipeline(name="products")
        pipeline.use(RequestIDStage(), ETagStage(), ResponseShapingStage(), CacheStage(store))
        response = await pipeline.handle(descriptor, list_products)

    Stages are registered once at process start. `handle` may be called
    concurrently for many requests; per-request state lives in the
    RequestContext, never on the pipeline.
    """

    def __init__(
        self,
        stages: Iterable[Stage] = (),
        error_responder: Optional[ErrorResponder] = None,
        name: str = "pipeline",
    ):
        self.name = name
        self._stages: List[Stage] = []
        self._responder = error_responder or ErrorResponder()
        self.use(*stages)

    @property
    def error_responder(self) -> ErrorResponder:
        return self._responder

    def add(self, stage: Stage) -> "Pipeline":
        """Append a stage. Registration order is entry order."""
        if any(existing.name == stage.name for existing in self._stages):
            raise ValueError(f"Pipeline '{self.name}' already has a stage named '{stage.name}'")
        self._stages.append(stage)
        logger.debug("Pipeline %s: added stage %s", self.name, stage.name)
        return self

    def use(self, *stages: Stage) -> "Pipeline":
        for stage in stages:
            self.add(stage)
        return self

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return tuple(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self):
        return iter(self._stages)

    # ══════════════════════════════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════════════════════════════

    async def handle(
        self,
        request: RequestDescriptor,
        handler: Handler,
        context: Optional[RequestContext] = None,
    ) -> PipelineResponse:
        """
        Run one request through the pipeline and return its single response.

        Raises:
            asyncio.CancelledError: when the caller cancels the run. The
                handler is cancelled with it, the context is marked aborted
                and every delegated stage is still unwound before the
                cancellation propagates.
            RequestAborted: when the context was aborted while the handler
                ran; interceptors have already unwound in aborted mode.
        """
        context = context or RequestContext(request)
        for stage in self._stages:
            context.states[stage.name] = StageState.PENDING

        unwind_stack: List[Tuple[Stage, Optional[ResponseInterceptor]]] = []

        try:
            response = await self._enter_stages(context, unwind_stack)
            if response is None:
                response = await self._invoke_handler(handler, context)
                context.outcome = PipelineOutcome.COMPLETED
            else:
                context.outcome = PipelineOutcome.SHORT_CIRCUITED
        except asyncio.CancelledError:
            context.abort()
            context.outcome = PipelineOutcome.ABORTED
            await self._unwind(unwind_stack, self._aborted_response(), context)
            raise

        if context.aborted:
            context.outcome = PipelineOutcome.ABORTED
            await self._unwind(unwind_stack, self._aborted_response(), context)
            raise RequestAborted(context={"path": request.path})

        return await self._unwind(unwind_stack, response, context)

    async def _enter_stages(
        self,
        context: RequestContext,
        unwind_stack: List[Tuple[Stage, Optional[ResponseInterceptor]]],
    ) -> Optional[PipelineResponse]:
        """Enter stages in order. Returns a response only on short-circuit."""
        for stage in self._stages:
            if not stage.applies_to(context.request):
                context._mark(stage, StageState.SKIPPED)
                continue

            context._mark(stage, StageState.ENTERED)
            try:
                result = await stage.enter(context.request, context)
            except GatewayError as exc:
                context._mark(stage, StageState.SHORT_CIRCUITED)
                return self._responder.respond(exc, context)
            except Exception as exc:
                if stage.critical:
                    context._mark(stage, StageState.SHORT_CIRCUITED)
                    return self._responder.respond(exc, context)
                logger.warning(
                    "[%s] Non-critical stage %s failed on entry, continuing: %s",
                    context.request_id,
                    stage.name,
                    exc,
                    exc_info=True,
                )
                result = None

            if isinstance(result, ShortCircuit):
                context._mark(stage, StageState.SHORT_CIRCUITED)
                return result.response

            delegate = result or Delegate()
            if delegate.request is not None:
                context.request = delegate.request
            context._mark(stage, StageState.DELEGATED)
            unwind_stack.append((stage, delegate.interceptor))

        return None

    async def _invoke_handler(self, handler: Handler, context: RequestContext) -> PipelineResponse:
        """
        Call the terminal handler. Failures become error responses (flagged
        with `error`) so that interceptors still unwind but never cache or
        shape them.
        """
        try:
            result = handler(context.request)
            if inspect.isawaitable(result):
                result = await result
            return PipelineResponse.from_handler_result(result)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return self._responder.respond(exc, context)

    async def _unwind(
        self,
        unwind_stack: List[Tuple[Stage, Optional[ResponseInterceptor]]],
        response: PipelineResponse,
        context: RequestContext,
    ) -> PipelineResponse:
        """Run interceptors last-registered first. Each stage unwinds exactly once."""
        while unwind_stack:
            stage, interceptor = unwind_stack.pop()
            context._mark(stage, StageState.UNWINDING)
            if interceptor is not None:
                response = await self._intercept(stage, interceptor, response, context)
            context._mark(stage, StageState.UNWOUND)
            context.unwinds[stage.name] = context.unwinds.get(stage.name, 0) + 1
        return response

    async def _intercept(
        self,
        stage: Stage,
        interceptor: ResponseInterceptor,
        response: PipelineResponse,
        context: RequestContext,
    ) -> PipelineResponse:
        try:
            result = interceptor(response)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if stage.critical:
                return self._responder.respond(exc, context)
            logger.warning(
                "[%s] Non-critical stage %s failed while unwinding, continuing: %s",
                context.request_id,
                stage.name,
                exc,
                exc_info=True,
            )
            return response
        return response if result is None else result

    @staticmethod
    def _aborted_response() -> PipelineResponse:
        return PipelineResponse(status_code=RequestAborted.status_code, empty=True, error=RequestAborted())
