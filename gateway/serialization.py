"""
Storefront Gateway — Canonical JSON Serialization
===================================================

What:  The one function that turns a structured payload into response bytes.
Who:   The HTTP renderer, the ETag computer and the response shaper.

Payloads are plain JSON values: None, bool, int, float, str, list and dict
(insertion-ordered). That set is the structured-value type every stage
recurses over; no schema is needed.

The encoding matches Starlette's JSONResponse.render byte for byte, so the
ETag sent to a client is the fingerprint of exactly what it received.
"""

import json
from typing import Any, Dict, List, Union

JSONValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]


def dumps(payload: Any) -> bytes:
    """Serialize a payload to compact UTF-8 JSON bytes."""
    return json.dumps(
        payload,
        ensure_ascii=False,
        allow_nan=False,
        indent=None,
        separators=(",", ":"),
    ).encode("utf-8")


def dumps_lenient(payload: Any) -> str:
    """
    Best-effort string form of an arbitrary value.

    Used for pattern matching over request bodies, where an unserializable
    value must not abort classification. Returns "" when nothing sensible
    can be produced.
    """
    if payload is None:
        return ""
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return ""
