"""
Request descriptor: the immutable view of an inbound request that every
pipeline stage and handler receives.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from starlette.datastructures import Headers


class HTTPMethod(str, Enum):
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller. Produced by the Authenticator, opaque otherwise."""

    id: str
    role: str = "user"


@dataclass(frozen=True)
class RequestDescriptor:
    """
    One inbound request.

    Frozen: stages never mutate a descriptor. A stage that needs a different
    body, query or identity builds a new one with `replace()` and hands it
    onward through `Delegate(request=...)`.

    Attributes:
        method:          HTTP method (coerced from str)
        path:            URL path as received (percent-decoded)
        query:           query mapping; absent and empty are the same thing
        headers:         case-insensitive header mapping
        body:            parsed JSON body, None when absent
        identity:        None until an authentication stage runs
        path_params:     route parameters extracted by the router
        client_address:  source address used for per-client rate limiting
    """

    method: HTTPMethod
    path: str
    query: Mapping[str, str] = field(default_factory=dict)
    headers: Headers = field(default_factory=Headers)
    body: Any = None
    identity: Optional[Identity] = None
    path_params: Mapping[str, str] = field(default_factory=dict)
    client_address: str = "unknown"

    def __post_init__(self) -> None:
        if not isinstance(self.method, HTTPMethod):
            object.__setattr__(self, "method", HTTPMethod(str(self.method).upper()))
        object.__setattr__(self, "query", MappingProxyType(dict(self.query or {})))
        object.__setattr__(self, "path_params", MappingProxyType(dict(self.path_params or {})))
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(headers=dict(self.headers or {})))

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name, default)

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    def replace(self, **changes: Any) -> "RequestDescriptor":
        return replace(self, **changes)

    def with_identity(self, identity: Optional[Identity]) -> "RequestDescriptor":
        return replace(self, identity=identity)
