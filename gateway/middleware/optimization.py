"""Response shaping stage: strips nulls and reports the serialized size."""

from gateway.optimization.shaper import ResponseShaper
from gateway.pipeline.stage import Delegate, Stage


class ResponseShapingStage(Stage):
    def __init__(self, shaper: ResponseShaper = None):
        self.shaper = shaper or ResponseShaper()

    async def enter(self, request, context):
        def shape(response):
            if not response.is_success or response.empty:
                return response
            shaped = self.shaper.shape(response.payload)
            optimized = response.with_payload(shaped.payload)
            optimized.headers["x-response-optimized"] = "true"
            optimized.headers["x-response-size"] = str(shaped.size)
            return optimized

        return Delegate(interceptor=shape)
