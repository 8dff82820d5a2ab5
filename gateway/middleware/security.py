"""
Storefront Gateway — Security Stages
======================================

What:  Attack detection and input sanitization as pipeline stages.
How:   AttackDetectionStage runs the detector's three rule families and
       raises the matching SecurityRejection (403) on the first hit.
       SanitizationStage hands the rest of the chain a new, sanitized
       descriptor; the original is left untouched.
When:  Detection runs before sanitization, so the detector sees what the
       client actually sent.
"""

import logging

from gateway.pipeline.stage import Delegate, Stage
from gateway.security.detector import AttackDetector
from gateway.security.sanitizer import Sanitizer

logger = logging.getLogger(__name__)


class AttackDetectionStage(Stage):
    def __init__(self, detector: AttackDetector):
        self.detector = detector

    async def enter(self, request, context):
        verdict = self.detector.classify(request)
        if verdict is not None:
            logger.warning(
                "[%s] %s detected from %s: %r",
                context.request_id,
                verdict.kind.value,
                request.client_address,
                verdict.matched,
            )
            raise verdict.to_exception()
        return None


class SanitizationStage(Stage):
    def __init__(self, sanitizer: Sanitizer = None):
        self.sanitizer = sanitizer or Sanitizer()

    async def enter(self, request, context):
        return Delegate(request=self.sanitizer.sanitize_request(request))
