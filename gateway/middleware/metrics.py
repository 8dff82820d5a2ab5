"""Metrics stage: feeds request lifecycle events to the MetricsRecorder.

Requests that take longer than `slow_threshold_ms` are also logged at
WARNING so they stand out from the access log.
"""

import logging
from typing import Optional

from gateway.cache.keys import normalize_path
from gateway.pipeline.stage import Delegate, Stage
from gateway.services.metrics import MetricsRecorder

logger = logging.getLogger(__name__)

RESPONSE_TIME_HEADER = "x-response-time"


class MetricsStage(Stage):
    critical = False

    def __init__(self, recorder: MetricsRecorder, slow_threshold_ms: Optional[float] = None):
        self.recorder = recorder
        self.slow_threshold_ms = slow_threshold_ms

    async def enter(self, request, context):
        endpoint = f"{request.method.value} {normalize_path(request.path)}"
        self.recorder.request_started()

        def record(response):
            duration_ms = context.elapsed_ms()
            self.recorder.request_finished(endpoint, response.status_code, duration_ms)
            response.headers[RESPONSE_TIME_HEADER] = f"{duration_ms:.2f}ms"
            if self.slow_threshold_ms is not None and duration_ms > self.slow_threshold_ms:
                logger.warning(
                    "[%s] Slow request: %s took %.1fms (threshold %sms)",
                    context.request_id,
                    endpoint,
                    duration_ms,
                    self.slow_threshold_ms,
                    extra={"endpoint": endpoint, "duration_ms": round(duration_ms, 2)},
                )
            return response

        return Delegate(interceptor=record)
