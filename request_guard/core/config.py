"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    title: str = Field(
        "Request Guard",
        description="Service title shown in the OpenAPI document",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to receive and propagate the request id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class PolicyOverride(BaseModel):
    """Startup override for one named rate-limit policy."""

    max_requests: int = Field(..., ge=1)
    window_seconds: float = Field(..., gt=0)


class RateLimitSettings(BaseSettings):
    """Rate limiting behaviour."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting on protected routes",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers on protected responses",
    )
    policy_overrides: dict[str, PolicyOverride] = Field(
        default_factory=dict,
        description=(
            "JSON mapping of policy name to {max_requests, window_seconds}, "
            'e.g. {"login": {"max_requests": 10, "window_seconds": 60}}'
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Counter store selection.

    When ``redis_url`` is unset the process-local store is used.
    """

    redis_url: str | None = Field(
        None,
        description="Redis connection URL for the shared counter store",
    )
    key_prefix: str = Field(
        "request_guard",
        description="Namespace prepended to every shared counter key",
    )
    timeout_seconds: float = Field(
        0.25,
        description="Upper bound for one shared-store round trip",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class CsrfSettings(BaseSettings):
    """Double-submit CSRF token configuration."""

    enabled: bool = Field(True, description="Enforce CSRF on unsafe methods")
    secret_cookie_name: str = Field("csrf_secret")
    signature_cookie_name: str = Field("csrf_signature")
    header_name: str = Field("X-CSRF-Token")
    secret_max_age_seconds: int = Field(60 * 60 * 24 * 7, ge=1)
    signature_max_age_seconds: int = Field(60 * 60, ge=1)
    cookie_secure: bool = Field(
        False,
        description="Mark CSRF cookies Secure (enable behind HTTPS)",
    )
    cookie_samesite: Literal["lax", "strict", "none"] = Field(
        "lax",
        description="SameSite attribute of both CSRF cookies; 'none' requires cookie_secure",
    )

    model_config = SettingsConfigDict(
        env_prefix="CSRF_",
        case_sensitive=False,
    )

    @field_validator("cookie_samesite", mode="before")
    @classmethod
    def _normalize_samesite(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _samesite_none_requires_secure(self) -> "CsrfSettings":
        if self.cookie_samesite == "none" and not self.cookie_secure:
            raise ValueError("cookie_samesite='none' requires cookie_secure=true")
        return self


class IdentitySettings(BaseSettings):
    """How callers are partitioned for rate limiting."""

    trust_proxy_headers: bool = Field(
        False,
        description=(
            "Read the client address from X-Forwarded-For / X-Real-IP. Enable only "
            "behind a proxy that overwrites these headers; otherwise callers can "
            "pick their own rate-limit identity"
        ),
    )
    subject_state_attr: str = Field(
        "subject_id",
        description="request.state attribute set by the auth layer",
    )

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    csrf: CsrfSettings = Field(default_factory=CsrfSettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
