"""
Storefront Gateway — Attack Pattern Detector
==============================================

What:  Pure classifier over request metadata: user-agent, target path and
       query, and a best-effort serialization of the body.
Who:   The attack-detection stage, which turns a verdict into a 403.

Rule families, evaluated in this order (first match wins):
    1. Malicious client: user-agent contains a known attack-tool name
       (case-insensitive substring).
    2. Path traversal: `../` or `..\\` in the path or any query value.
    3. Injection: script tags, `javascript:`/`vbscript:` URLs, NoSQL
       operator keys ($where, $ne, $gt, $lt) and SQL keywords (union
       select, drop table, insert into) anywhere in the serialized body.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Pattern, Sequence

from gateway.config import DEFAULT_MALICIOUS_AGENTS
from gateway.exceptions import (
    InjectionPatternError,
    MaliciousClientError,
    PathTraversalError,
    SecurityRejection,
)
from gateway.pipeline.request import RequestDescriptor
from gateway.serialization import dumps_lenient

TRAVERSAL_SEQUENCES = ("../", "..\\")

DEFAULT_INJECTION_PATTERNS: Sequence[Pattern[str]] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\$where",
        r"\$ne",
        r"\$gt",
        r"\$lt",
        r"<script",
        r"javascript:",
        r"vbscript:",
        r"union\s+select",
        r"drop\s+table",
        r"insert\s+into",
    )
)


class AttackKind(str, Enum):
    MALICIOUS_CLIENT = "malicious_client"
    PATH_TRAVERSAL = "path_traversal"
    INJECTION = "injection"


@dataclass(frozen=True)
class AttackVerdict:
    kind: AttackKind
    matched: str

    def to_exception(self) -> SecurityRejection:
        context = {"kind": self.kind.value, "matched": self.matched}
        if self.kind is AttackKind.MALICIOUS_CLIENT:
            return MaliciousClientError(context=context)
        if self.kind is AttackKind.PATH_TRAVERSAL:
            return PathTraversalError(context=context)
        return InjectionPatternError(context=context)


class AttackDetector:
    def __init__(
        self,
        malicious_agents: Iterable[str] = DEFAULT_MALICIOUS_AGENTS,
        injection_patterns: Sequence[Pattern[str]] = DEFAULT_INJECTION_PATTERNS,
    ):
        self.malicious_agents = tuple(agent.lower() for agent in malicious_agents if agent)
        self.injection_patterns = tuple(injection_patterns)

    def classify(self, request: RequestDescriptor) -> Optional[AttackVerdict]:
        """Return the first matching verdict, or None for a clean request."""
        return (
            self.check_user_agent(request.user_agent)
            or self.check_traversal(request.path, request.query.values())
            or self.check_injection(request.body)
        )

    def check_user_agent(self, user_agent: str) -> Optional[AttackVerdict]:
        lowered = (user_agent or "").lower()
        for agent in self.malicious_agents:
            if agent in lowered:
                return AttackVerdict(AttackKind.MALICIOUS_CLIENT, agent)
        return None

    def check_traversal(self, path: str, query_values: Iterable[str] = ()) -> Optional[AttackVerdict]:
        for target in (path or "", *query_values):
            for sequence in TRAVERSAL_SEQUENCES:
                if sequence in str(target):
                    return AttackVerdict(AttackKind.PATH_TRAVERSAL, sequence)
        return None

    def check_injection(self, body) -> Optional[AttackVerdict]:
        serialized = dumps_lenient(body)
        if not serialized:
            return None
        for pattern in self.injection_patterns:
            match = pattern.search(serialized)
            if match:
                return AttackVerdict(AttackKind.INJECTION, match.group(0))
        return None
