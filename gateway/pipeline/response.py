"""
Pipeline response: status, structured payload and mutable headers.

Interceptors may annotate a response in place (headers) or return a new
one (payload or status change). Handlers may return a PipelineResponse, a
`(status, payload)` / `(status, payload, headers)` tuple, or a bare payload
(status 200).
"""

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from starlette.datastructures import MutableHeaders


@dataclass
class PipelineResponse:
    status_code: int = 200
    payload: Any = None
    headers: MutableHeaders = field(default_factory=MutableHeaders)
    # No body at all (304 Not Modified, 204 No Content). Distinct from a
    # JSON null payload.
    empty: bool = False
    # Set when the response was produced from a failure. Error responses are
    # never cached, shaped or fingerprinted.
    error: Optional[BaseException] = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, MutableHeaders):
            self.headers = MutableHeaders(headers=dict(self.headers or {}))

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300 and self.error is None

    def with_payload(self, payload: Any) -> "PipelineResponse":
        """Copy with a new payload; headers are copied, not shared."""
        return replace(self, payload=payload, headers=self.copy_headers())

    def without_body(self, status_code: int) -> "PipelineResponse":
        return replace(
            self, status_code=status_code, payload=None, empty=True, headers=self.copy_headers()
        )

    def copy_headers(self) -> MutableHeaders:
        return MutableHeaders(raw=list(self.headers.raw))

    @classmethod
    def json(
        cls,
        payload: Any,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "PipelineResponse":
        return cls(status_code=status_code, payload=payload, headers=MutableHeaders(headers=dict(headers or {})))

    @classmethod
    def from_handler_result(cls, result: Any) -> "PipelineResponse":
        """Normalize whatever a handler returned into a PipelineResponse."""
        if isinstance(result, PipelineResponse):
            return result
        if isinstance(result, tuple) and result and isinstance(result[0], int):
            if len(result) == 2:
                status, payload = result
                return cls.json(payload, status_code=status)
            if len(result) == 3:
                status, payload, headers = result
                return cls.json(payload, status_code=status, headers=headers)
        return cls.json(result)
