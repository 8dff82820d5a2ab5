"""
Storefront Gateway — Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the application factory, which hands the relevant values
       to each store and stage it constructs.
When:  Loaded once at module import time; validated before the app starts.

Stores and stages never read `settings` themselves. The factory passes
explicit values in, so tests can build a pipeline from any Settings
instance without patching globals.
"""

from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


DEFAULT_MALICIOUS_AGENTS = [
    "sqlmap",
    "nikto",
    "dirb",
    "gobuster",
    "burp",
    "nessus",
    "openvas",
    "metasploit",
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Attributes are grouped by concern for readability.
    """

    # ── Runtime ───────────────────────────────────────────────────────────
    # Production hides stack traces from 500 responses.
    environment: str = Field(default="development")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensures environment is one of the known deployment modes."""
        valid = {"development", "production", "test"}
        lower = v.lower()
        if lower not in valid:
            raise ValueError(f"Invalid environment '{v}'. Must be one of: {valid}")
        return lower

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Response Cache ────────────────────────────────────────────────────
    # One partition per resource family. Product data changes rarely,
    # identity data must go stale quickly.
    cache_products_ttl: int = Field(default=1800, ge=1, le=86400)
    cache_auth_ttl: int = Field(default=300, ge=1, le=86400)
    cache_general_ttl: int = Field(default=600, ge=1, le=86400)

    cache_products_max_keys: int = Field(default=500, ge=1)
    cache_auth_max_keys: int = Field(default=200, ge=1)
    cache_general_max_keys: int = Field(default=1000, ge=1)

    # Seconds between background purges of expired entries. 0 disables the
    # sweep; expiry is then purely lazy.
    cache_sweep_interval: int = Field(default=120, ge=0, le=3600)

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # Fixed window per client key.
    rate_limit_requests: int = Field(default=100, ge=1, le=100000)
    rate_limit_window: int = Field(default=900, ge=1, le=86400)  # seconds

    # Stricter, separately-keyed window for /api/auth. Only failed attempts
    # stay counted.
    auth_rate_limit_requests: int = Field(default=5, ge=1, le=10000)
    auth_rate_limit_window: int = Field(default=900, ge=1, le=86400)

    # ── Performance ───────────────────────────────────────────────────────
    # Requests slower than this are logged at WARNING.
    slow_request_threshold_ms: int = Field(default=1000, ge=1)

    # ── Security ──────────────────────────────────────────────────────────
    malicious_user_agents: List[str] = Field(
        default_factory=lambda: list(DEFAULT_MALICIOUS_AGENTS)
    )

    # ── Authentication ────────────────────────────────────────────────────
    # Bearer token → {"id": ..., "role": ...}. Supplied as JSON in the
    # API_TOKENS environment variable.
    api_tokens: Dict[str, Dict[str, str]] = Field(default_factory=dict)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Checks each required field and raises ValueError with guidance.
        """
        errors = []
        if self.is_production and not self.api_tokens:
            errors.append(
                "API_TOKENS is empty. Authenticated routes will reject every request."
            )
        if self.is_production and "*" in self.cors_origins_list:
            errors.append("CORS_ORIGINS must not be '*' in production.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported by the application factory
settings = Settings()
