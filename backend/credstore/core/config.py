"""
Application configuration using Pydantic Settings.
All configuration is loaded from environment variables with sensible defaults.
"""

import warnings
from enum import Enum as PyEnum
from functools import lru_cache
from pathlib import Path
from typing import Literal, Self
from uuid import uuid4

from pydantic import Field, RedisDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceRole(str, PyEnum):
    """Which half of the credential system a process serves."""

    ISSUANCE = "issuance"
    VERIFICATION = "verification"


DEFAULT_PORTS: dict[ServiceRole, int] = {
    ServiceRole.ISSUANCE: 3004,
    ServiceRole.VERIFICATION: 3002,
}

WORKER_ID_PREFIXES: dict[ServiceRole, str] = {
    ServiceRole.ISSUANCE: "worker",
    ServiceRole.VERIFICATION: "verifier",
}

_DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Both services read the same settings; ``service_role`` picks the
    role-specific defaults (listening port, worker ID prefix).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Core Application Settings
    # ==========================================================================
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = Field(default=False)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    project_name: str = "Credential Store"
    version: str = "0.1.0"

    # ==========================================================================
    # Service Identity & Listening
    # ==========================================================================
    service_role: ServiceRole = ServiceRole.ISSUANCE
    host: str = Field(default="0.0.0.0")
    port: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        description="Base listening port (defaults to 3004 for issuance, 3002 for verification)",
    )
    port_fallback_attempts: int = Field(
        default=10,
        ge=1,
        le=100,
        description="How many consecutive ports to try when the base port is taken",
    )
    worker_id: str | None = Field(
        default=None,
        description="Identity recorded on issued credentials; generated per process when unset",
    )

    # ==========================================================================
    # Storage Configuration
    # ==========================================================================
    data_dir: Path | None = Field(
        default=None,
        description="Directory holding the SQLite database (defaults to backend/data)",
    )
    database_filename: str = Field(default="credentials.db", min_length=1)
    database_url: str | None = Field(
        default=None,
        description="Full SQLAlchemy async URL; overrides data_dir/database_filename",
    )
    database_busy_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds a writer waits on a locked database before failing",
    )

    # ==========================================================================
    # Redis / Rate Limiting Configuration
    # ==========================================================================
    redis_url: RedisDsn = Field(default=RedisDsn("redis://localhost:6379/0"))
    redis_rate_limit_url: RedisDsn | None = Field(
        default=None,
        description="Separate Redis URL for rate limiting (defaults to DB 1 of redis_url)",
    )
    rate_limit_max_requests: int = Field(default=100, ge=1)
    rate_limit_window_seconds: int = Field(default=15 * 60, ge=1)

    # Trusted proxy CIDRs for X-Forwarded-For / X-Real-IP header trust.
    trusted_proxy_cidrs: list[str] = Field(
        default=["172.16.0.0/12", "10.0.0.0/8", "127.0.0.0/8"],
        description="CIDRs from which X-Forwarded-For is trusted (Docker bridge, loopback)",
    )

    # ==========================================================================
    # HTTP Surface
    # ==========================================================================
    cors_origins: list[str] = Field(default_factory=lambda: list(_DEFAULT_CORS_ORIGINS))
    csp_enabled: bool = Field(
        default=False,
        description="Emit Content-Security-Policy; off so local frontends can reach the API",
    )
    debug_endpoints_enabled: bool = Field(default=True)
    metrics_auth_token: str = Field(default="")

    def resolved_port(self, role: ServiceRole | None = None) -> int:
        """Base listening port for ``role`` (defaults to ``service_role``)."""
        if self.port is not None:
            return self.port
        return DEFAULT_PORTS[role or self.service_role]

    # ==========================================================================
    # Production Safety Checks
    # ==========================================================================

    @model_validator(mode="after")
    def _validate_production_settings(self) -> Self:
        """Enforce critical settings in production/staging."""
        if self.environment in ("production", "staging"):
            if self.debug:
                raise ValueError(f"debug must be False in {self.environment} environment")
            if self.cors_origins == _DEFAULT_CORS_ORIGINS:
                raise ValueError(
                    f"cors_origins must be explicitly configured in {self.environment} environment"
                )
            if not self.worker_id:
                warnings.warn(
                    "worker_id is not set, issued credentials will carry a random "
                    "per-process worker identity. Set WORKER_ID to keep it stable.",
                    UserWarning,
                    stacklevel=2,
                )
        return self


def resolve_worker_id(settings: Settings, role: ServiceRole) -> str:
    """Return the configured worker ID, or mint one for this process."""
    if settings.worker_id:
        return settings.worker_id
    return f"{WORKER_ID_PREFIXES[role]}-{uuid4().hex[:8]}"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated environment variable parsing.
    """
    return Settings()
