"""
ETag computation and conditional-request matching.

The tag is a truncated SHA-256 of the exact serialized payload, wrapped in
double quotes. Collisions on the truncated digest are accepted.
"""

import hashlib
from typing import Any, Optional

from gateway.serialization import dumps

ETAG_DIGEST_LENGTH = 32


def compute_etag(payload: Any) -> str:
    digest = hashlib.sha256(dumps(payload)).hexdigest()[:ETAG_DIGEST_LENGTH]
    return f'"{digest}"'


def _opaque(tag: str) -> str:
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    return tag


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """
    Weak comparison against an If-None-Match header value, which may be a
    comma-separated list or `*`.
    """
    if not if_none_match:
        return False
    target = _opaque(etag)
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*" or _opaque(candidate) == target:
            return True
    return False
