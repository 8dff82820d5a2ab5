"""
Response shaping: strip null fields and measure the result.

Only keys whose value is None are dropped from objects, at any depth.
Present-but-falsy values ("" / False / 0 / [] / {}) survive. Lists keep
their length: a None element stays, objects inside lists are shaped.
"""

from dataclasses import dataclass
from typing import Any

from gateway.serialization import dumps


@dataclass(frozen=True)
class ShapedPayload:
    payload: Any
    size: int


def strip_nulls(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: strip_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [strip_nulls(item) for item in value]
    return value


class ResponseShaper:
    def shape(self, payload: Any) -> ShapedPayload:
        shaped = strip_nulls(payload)
        return ShapedPayload(payload=shaped, size=len(dumps(shaped)))
