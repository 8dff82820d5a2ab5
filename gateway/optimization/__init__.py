"""Response optimization: null stripping, size reporting, ETags."""

from gateway.optimization.etag import compute_etag, etag_matches
from gateway.optimization.shaper import ResponseShaper, ShapedPayload, strip_nulls

__all__ = ["ResponseShaper", "ShapedPayload", "compute_etag", "etag_matches", "strip_nulls"]
