"""
Storefront Gateway — Pipeline Engine Tests
============================================

What we test:
    ✅ Stages enter in registration order and unwind in reverse
    ✅ Every delegated stage unwinds exactly once (handler, short-circuit,
       failure, cancellation)
    ✅ GatewayError from a stage short-circuits with its response
    ✅ Handler failures become error responses flagged with `error`
    ✅ Non-critical stage failures are logged and skipped
    ✅ Cancellation and aborted contexts unwind before propagating
"""

import asyncio

import pytest

from gateway.exceptions import MaliciousClientError, NotFoundError, OperationalError, RequestAborted
from gateway.pipeline import (
    Delegate,
    ErrorResponder,
    Pipeline,
    PipelineOutcome,
    PipelineResponse,
    RequestContext,
    ShortCircuit,
    Stage,
    StageState,
)
from tests.conftest import make_request


class RecordingStage(Stage):
    def __init__(
        self,
        name,
        log,
        short_circuit=None,
        raise_on_enter=None,
        raise_on_unwind=None,
        critical=True,
        applies=True,
    ):
        self._name = name
        self.log = log
        self.short_circuit = short_circuit
        self.raise_on_enter = raise_on_enter
        self.raise_on_unwind = raise_on_unwind
        self.critical = critical
        self.applies = applies
        self.seen = []

    def applies_to(self, request):
        return self.applies

    async def enter(self, request, context):
        self.log.append(f"enter:{self.name}")
        if self.raise_on_enter is not None:
            raise self.raise_on_enter
        if self.short_circuit is not None:
            return ShortCircuit(self.short_circuit)

        def intercept(response):
            self.log.append(f"unwind:{self.name}")
            self.seen.append(response)
            if self.raise_on_unwind is not None:
                raise self.raise_on_unwind
            response.headers[f"x-{self.name}"] = "1"
            return response

        return Delegate(interceptor=intercept)


def recording_handler(log, result=None):
    def handler(request):
        log.append("handler")
        return {"ok": True} if result is None else result

    return handler


class TestPipelineOrdering:
    def setup_method(self):
        self.log = []
        self.stages = [RecordingStage(name, self.log) for name in ("a", "b", "c")]
        self.pipeline = Pipeline(self.stages)

    @pytest.mark.asyncio
    async def test_enter_in_order_unwind_in_reverse(self):
        response = await self.pipeline.handle(make_request(), recording_handler(self.log))

        assert self.log == ["enter:a", "enter:b", "enter:c", "handler", "unwind:c", "unwind:b", "unwind:a"]
        assert response.status_code == 200
        assert response.payload == {"ok": True}
        assert {"x-a", "x-b", "x-c"} <= set(response.headers.keys())

    @pytest.mark.asyncio
    async def test_every_delegated_stage_unwinds_exactly_once(self):
        context = RequestContext(make_request())
        await self.pipeline.handle(context.request, recording_handler(self.log), context)

        assert context.unwinds == {"a": 1, "b": 1, "c": 1}
        assert all(state is StageState.UNWOUND for state in context.states.values())
        assert context.outcome is PipelineOutcome.COMPLETED

    @pytest.mark.asyncio
    async def test_outer_stage_observes_what_inner_stage_wrote(self):
        log = []

        class Replace(Stage):
            async def enter(self, request, context):
                return Delegate(interceptor=lambda response: response.with_payload({"replaced": True}))

        outer = RecordingStage("outer", log)
        pipeline = Pipeline([outer, Replace()])
        response = await pipeline.handle(make_request(), recording_handler(log))

        assert outer.seen[0].payload == {"replaced": True}
        assert response.payload == {"replaced": True}

    @pytest.mark.asyncio
    async def test_async_handler_suspension_preserves_order(self):
        async def slow_handler(request):
            await asyncio.sleep(0.01)
            self.log.append("handler")
            return 201, {"created": True}

        response = await self.pipeline.handle(make_request(method="POST"), slow_handler)
        assert self.log.index("handler") == 3
        assert self.log[-1] == "unwind:a"
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_delegate_can_swap_request(self):
        class Rewrite(Stage):
            async def enter(self, request, context):
                return Delegate(request=request.replace(body={"clean": True}))

        received = []
        pipeline = Pipeline([Rewrite()])
        context = RequestContext(make_request(method="POST", body={"dirty": True}))
        await pipeline.handle(context.request, lambda request: received.append(request.body), context)

        assert received == [{"clean": True}]
        assert context.original_request.body == {"dirty": True}

    @pytest.mark.asyncio
    async def test_stage_that_does_not_apply_is_skipped(self):
        log = []
        skipped = RecordingStage("skipped", log, applies=False)
        context = RequestContext(make_request())
        await Pipeline([skipped]).handle(context.request, recording_handler(log), context)

        assert log == ["handler"]
        assert context.states["skipped"] is StageState.SKIPPED
        assert "skipped" not in context.unwinds

    def test_duplicate_stage_names_rejected(self):
        with pytest.raises(ValueError):
            self.pipeline.add(RecordingStage("a", self.log))
        assert len(self.pipeline) == 3


class TestShortCircuit:
    @pytest.mark.asyncio
    async def test_short_circuit_skips_rest_and_handler(self):
        log = []
        cached = PipelineResponse.json({"cached": True})
        stages = [
            RecordingStage("a", log),
            RecordingStage("b", log, short_circuit=cached),
            RecordingStage("c", log),
        ]
        context = RequestContext(make_request())
        response = await Pipeline(stages).handle(context.request, recording_handler(log), context)

        assert log == ["enter:a", "enter:b", "unwind:a"]
        assert response.payload == {"cached": True}
        assert response.headers["x-a"] == "1"
        assert context.outcome is PipelineOutcome.SHORT_CIRCUITED
        assert context.states["b"] is StageState.SHORT_CIRCUITED
        assert context.states["c"] is StageState.PENDING
        assert context.unwinds == {"a": 1}

    @pytest.mark.asyncio
    async def test_gateway_error_on_enter_short_circuits(self):
        log = []
        stages = [
            RecordingStage("a", log),
            RecordingStage("guard", log, raise_on_enter=MaliciousClientError()),
        ]
        response = await Pipeline(stages).handle(make_request(), recording_handler(log))

        assert "handler" not in log
        assert log[-1] == "unwind:a"
        assert response.status_code == 403
        assert response.payload["error"] == "forbidden"
        assert isinstance(response.error, MaliciousClientError)
        assert not response.is_success


class TestFailures:
    @pytest.mark.asyncio
    async def test_unexpected_handler_failure_becomes_generic_500(self):
        log = []
        stage = RecordingStage("a", log)

        def broken(request):
            raise RuntimeError("database password is hunter2")

        response = await Pipeline([stage]).handle(make_request(), broken)

        assert response.status_code == 500
        assert response.payload["error"] == "internal_server_error"
        assert "hunter2" not in str(response.payload)
        assert "stack" not in response.payload
        assert isinstance(response.error, RuntimeError)
        assert log == ["enter:a", "unwind:a"]

    @pytest.mark.asyncio
    async def test_stack_exposed_outside_production(self):
        def broken(request):
            raise RuntimeError("boom")

        pipeline = Pipeline([], error_responder=ErrorResponder(expose_internals=True))
        response = await pipeline.handle(make_request(), broken)
        assert any("RuntimeError: boom" in line for line in response.payload["stack"])

    @pytest.mark.asyncio
    async def test_operational_handler_failure_keeps_status_and_message(self):
        def missing(request):
            raise NotFoundError("product", "PRD-9999")

        response = await Pipeline([]).handle(make_request(), missing)
        assert response.status_code == 404
        assert response.payload["message"] == "product with ID 'PRD-9999' was not found"

    @pytest.mark.asyncio
    async def test_operational_error_uses_declared_status(self):
        def unavailable(request):
            raise OperationalError("Catalog temporarily unavailable", status_code=503)

        response = await Pipeline([]).handle(make_request(), unavailable)
        assert response.status_code == 503
        assert response.payload["error"] == "operational_error"
        assert response.payload["message"] == "Catalog temporarily unavailable"

    @pytest.mark.asyncio
    async def test_non_critical_enter_failure_is_skipped(self):
        log = []
        stages = [
            RecordingStage("logger", log, raise_on_enter=RuntimeError("sink down"), critical=False),
            RecordingStage("b", log),
        ]
        response = await Pipeline(stages).handle(make_request(), recording_handler(log))

        assert response.status_code == 200
        assert "handler" in log

    @pytest.mark.asyncio
    async def test_non_critical_unwind_failure_keeps_response(self):
        log = []
        stages = [
            RecordingStage("metrics", log, raise_on_unwind=RuntimeError("counter broke"), critical=False),
            RecordingStage("b", log),
        ]
        response = await Pipeline(stages).handle(make_request(), recording_handler(log))

        assert response.status_code == 200
        assert response.payload == {"ok": True}

    @pytest.mark.asyncio
    async def test_critical_unwind_failure_becomes_error_response(self):
        log = []
        stages = [RecordingStage("outer", log), RecordingStage("bad", log, raise_on_unwind=RuntimeError("x"))]
        context = RequestContext(make_request())
        response = await Pipeline(stages).handle(context.request, recording_handler(log), context)

        assert response.status_code == 500
        assert context.unwinds == {"outer": 1, "bad": 1}
        assert stages[0].seen[0].status_code == 500


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_handler_unwinds_and_propagates(self):
        log = []
        stages = [RecordingStage("a", log), RecordingStage("b", log)]
        started = asyncio.Event()

        async def hanging(request):
            started.set()
            await asyncio.Event().wait()

        context = RequestContext(make_request())
        task = asyncio.ensure_future(Pipeline(stages).handle(context.request, hanging, context))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert context.aborted
        assert context.outcome is PipelineOutcome.ABORTED
        assert context.unwinds == {"a": 1, "b": 1}
        aborted_response = stages[1].seen[0]
        assert aborted_response.status_code == 499
        assert not aborted_response.is_success

    @pytest.mark.asyncio
    async def test_context_aborted_during_handler_raises_after_unwind(self):
        log = []
        stage = RecordingStage("a", log)
        context = RequestContext(make_request())

        def abandoning(request):
            context.abort()
            return {"late": True}

        with pytest.raises(RequestAborted):
            await Pipeline([stage]).handle(context.request, abandoning, context)

        assert context.unwinds == {"a": 1}
        assert stage.seen[0].status_code == 499
