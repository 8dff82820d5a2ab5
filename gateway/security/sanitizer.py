"""
Best-effort input sanitizer.

Rewrites every string inside a request body, query or path parameters,
stripping:
    - <script>…</script> blocks
    - any remaining angle-bracket tag
    - `javascript:` prefixes
    - inline event-handler attributes (`onclick=`, `onerror =`)
    - NoSQL operator blocks (`{$where`, `{$ne}`) and any `$` that
      introduces a word
    - dots, unless the string looks like an email address

This is pattern stripping, not a security boundary. It is lossy: the
original cannot be recovered. Each string is cleaned until a pass changes
nothing, so applying the sanitizer to its own output is a no-op.
"""

import re
from typing import Any

from gateway.pipeline.request import RequestDescriptor

_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_ANY_TAG = re.compile(r"<.*?>")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_NOSQL_BLOCK = re.compile(r"\{\s*\$(?:where|ne)\}?", re.IGNORECASE)
_OPERATOR_PREFIX = re.compile(r"\$(?=\w)")


def looks_like_email(value: str) -> bool:
    """
    Email heuristic: any string containing `@` keeps its dots.

    Deliberately naive. It under-sanitizes any other string that happens to
    contain `@` and strips dots from legitimate dotted tokens.
    """
    return "@" in value


def _clean_once(value: str) -> str:
    cleaned = _SCRIPT_BLOCK.sub("", value)
    cleaned = _ANY_TAG.sub("", cleaned)
    cleaned = _JS_PROTOCOL.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    cleaned = _NOSQL_BLOCK.sub("", cleaned)
    cleaned = _OPERATOR_PREFIX.sub("", cleaned)
    if not looks_like_email(cleaned):
        cleaned = cleaned.replace(".", "")
    return cleaned


def sanitize_string(value: str) -> str:
    # Every rule only deletes characters, so this loop terminates.
    while True:
        cleaned = _clean_once(value)
        if cleaned == value:
            return cleaned
        value = cleaned


def sanitize_value(value: Any) -> Any:
    """Recursively sanitize strings in a JSON value. Keys are left alone."""
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, dict):
        return {key: sanitize_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    return value


class Sanitizer:
    def sanitize(self, value: Any) -> Any:
        return sanitize_value(value)

    def sanitize_request(self, request: RequestDescriptor) -> RequestDescriptor:
        """Build a new descriptor with sanitized body, query and path params."""
        return request.replace(
            body=sanitize_value(request.body),
            query={key: sanitize_string(str(val)) for key, val in request.query.items()},
            path_params={key: sanitize_string(str(val)) for key, val in request.path_params.items()},
        )
