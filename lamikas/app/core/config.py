from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _normalize_origin(raw: Any) -> str:
    # The CORS header carries exactly one origin; tolerate a comma separated
    # value from older deployments and keep the first entry.
    if raw is None:
        return ""
    value = str(raw).strip()
    if "," in value:
        value = value.split(",")[0].strip()
    return value.rstrip("/")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Use in-memory identity store and email outbox instead of real providers
    mock_provider: bool = False

    # Supabase (identity + profile store)
    supabase_url: str = ""
    supabase_service_role_key: str = ""  # privileged key, server side only
    supabase_anon_key: str = ""  # restricted key, paired with user tokens
    supabase_timeout: float = 10.0  # Per-call timeout, no retries
    profiles_table: str = "users"

    # Resend (transactional email)
    resend_api_key: str = ""
    resend_base_url: str = "https://api.resend.com"
    email_from: str = "LAMIKAS <no-reply@lamikas.com>"
    support_email: str = "support@lamikas.com"
    verification_code_ttl_minutes: int = 15

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 5.0
    httpx_read_timeout: float = 10.0
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # CORS - a single origin echoed back in Access-Control-Allow-Origin
    allowed_origins: str = "https://lamikas.com"

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def decode_allowed_origins(cls, v: Any) -> str:
        return _normalize_origin(v) or "https://lamikas.com"

    # General rate limit (per client IP)
    rate_limit_requests: int = 10
    rate_limit_window_seconds: int = 1
    rate_limit_retry_after: int = 60

    # Login rate limit (per "login_" + client IP), layered on the general one
    login_rate_limit_requests: int = 10
    login_rate_limit_window_seconds: int = 1
    login_rate_limit_retry_after: int = 300

    # Maximum tracked keys per in-memory limiter (LRU eviction beyond this)
    rate_limit_max_entries: int = 10000
    rate_limit_fail_closed: bool = (
        False  # If True, deny requests when Redis is unavailable
    )

    # Redis settings (optional shared counter store)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # CSRF settings
    csrf_cookie_name: str = "csrf_token"
    csrf_header_name: str = "X-CSRF-Token"
    # POST only by default; True also gates PUT and DELETE
    csrf_protect_all_mutations: bool = False

    # Account settings
    trial_days: int = 7
    min_password_length: int = 8
    # Regions tried for phone numbers given without a leading "+"
    phone_default_regions: str = "KE,US"

    @property
    def phone_regions(self) -> list[str]:
        return [r.strip().upper() for r in self.phone_default_regions.split(",") if r.strip()]

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Request body limit for the function endpoints
    max_body_size: int = Field(default=1024 * 1024)

    @field_validator(
        "rate_limit_requests",
        "rate_limit_window_seconds",
        "login_rate_limit_requests",
        "login_rate_limit_window_seconds",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("rate_limit_retry_after", "login_rate_limit_retry_after")
    @classmethod
    def validate_retry_after(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Retry-After values cannot be negative")
        return v

    @field_validator(
        "supabase_timeout",
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("trial_days", "min_password_length", "verification_code_ttl_minutes")
    @classmethod
    def validate_account_values(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Account settings must be at least 1")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
