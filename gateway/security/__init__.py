"""Security filtering: attack detection, input sanitization, rate limiting."""

from gateway.security.detector import AttackDetector, AttackKind, AttackVerdict
from gateway.security.rate_limiter import RateLimitDecision, RateLimiter, RateLimitWindow
from gateway.security.sanitizer import Sanitizer, looks_like_email, sanitize_string, sanitize_value

__all__ = [
    "AttackDetector",
    "AttackKind",
    "AttackVerdict",
    "RateLimitDecision",
    "RateLimitWindow",
    "RateLimiter",
    "Sanitizer",
    "looks_like_email",
    "sanitize_string",
    "sanitize_value",
]
