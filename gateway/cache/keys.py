"""
Cache key derivation.

A key is `METHOD:path:query:identity`, for example

    GET:/api/products:category=volleyball&limit=10:anonymous
    GET:/api/auth/me::user:u-42

Every component is percent-encoded so that no component can contain the
`:`, `&` or `=` separators. Two requests that agree on method, normalized
path, query mapping and identity always get the same key; a difference in
any of them always yields a different key.
"""

import re
from typing import Mapping, Optional
from urllib.parse import quote

from gateway.pipeline.request import Identity, RequestDescriptor

ANONYMOUS_IDENTITY = "anonymous"
KEY_SEPARATOR = ":"

_REPEATED_SLASHES = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Collapse repeated slashes and drop a trailing slash (root stays `/`)."""
    normalized = _REPEATED_SLASHES.sub("/", "/" + (path or "").lstrip("/"))
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized


def canonical_query(query: Optional[Mapping[str, str]]) -> str:
    """Sorted `k=v&k=v` form. An absent and an empty mapping both give ''."""
    if not query:
        return ""
    return "&".join(
        f"{quote(str(key), safe='')}={quote(str(value), safe='')}"
        for key, value in sorted(query.items(), key=lambda item: str(item[0]))
    )


def identity_token(identity: Optional[Identity]) -> str:
    if identity is None:
        return ANONYMOUS_IDENTITY
    return f"user{KEY_SEPARATOR}{quote(identity.id, safe='')}"


def derive_cache_key(request: RequestDescriptor) -> str:
    """Pure and total: never raises for a well-formed descriptor."""
    return KEY_SEPARATOR.join(
        (
            request.method.value,
            quote(normalize_path(request.path), safe="/"),
            canonical_query(request.query),
            identity_token(request.identity),
        )
    )
