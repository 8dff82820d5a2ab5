"""
Storefront Gateway — Health Schemas
=====================================

What:  Response model for GET /health.
How:   HealthAggregator produces a plain report; the health route validates
       it through HealthResponse so the published shape stays fixed.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class DependencyHealth(BaseModel):
    status: str = Field(description="healthy, degraded or unhealthy")
    response_time_ms: float = Field(default=0.0)
    details: Optional[dict] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = Field(description="Aggregate status: healthy, degraded, unhealthy")
    version: str
    environment: str
    uptime_seconds: float
    dependencies: Dict[str, DependencyHealth]
