"""
Conditional delivery stage.

Registered BEFORE the shaping stage so that its interceptor runs AFTER
shaping while unwinding: the tag always covers the exact payload the
client receives.
"""

from gateway.optimization.etag import compute_etag, etag_matches
from gateway.pipeline.request import HTTPMethod
from gateway.pipeline.stage import Delegate, Stage

CONDITIONAL_METHODS = frozenset({HTTPMethod.GET})


class ETagStage(Stage):
    def applies_to(self, request) -> bool:
        return request.method in CONDITIONAL_METHODS

    async def enter(self, request, context):
        if_none_match = request.header("if-none-match")

        def tag(response):
            if not response.is_success or response.empty:
                return response
            etag = compute_etag(response.payload)
            response.headers["etag"] = etag
            if etag_matches(if_none_match, etag):
                return response.without_body(304)
            return response

        return Delegate(interceptor=tag)
