import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # JSON is the documented format, but a plain comma separated list is what
    # most people put in ALLOWED_ORIGINS-style variables.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        # Browser extensions and pages send a full origin; a bare host
        # matches both schemes.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin not in seen:
            seen.add(origin)
            result.append(origin)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Upstream generation service (OpenAI-compatible chat completions)
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.75

    # Resilient invoker
    upstream_timeout: float = 30.0  # Per-attempt bound in seconds
    upstream_max_attempts: int = 4  # First try + 3 retries
    upstream_base_delay: float = 1.0
    upstream_max_delay: float = 10.0
    upstream_retry_jitter: bool = False
    health_check_timeout: float = 5.0

    # Shared secret presented by clients in the X-API-Key header
    server_api_key: str = ""

    # Rate limiting settings
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_requests: int = 20
    rate_limit_sweep_interval_seconds: float = 60.0
    rate_limit_key_prefix: str = "formfill:ratelimit"

    # Redis settings (optional, shared rate-limit counters)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Response cache settings
    cache_ttl_seconds: float = 300.0  # 5 minutes
    cache_max_entries: int = 1000

    # Request limits
    max_fields: int = 50
    max_request_size: int = 1024 * 1024  # 1MB

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20
    httpx_keepalive_expiry: float = 30.0

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # CORS settings
    # NoDecode keeps a bare host or comma list from failing JSON decoding.
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("server_api_key")
    @classmethod
    def validate_server_api_key(cls, v: str) -> str:
        """An empty key disables access entirely; a set key must be strong."""
        v = v.strip()
        if v and len(v) < 32:
            raise ValueError("SERVER_API_KEY must be at least 32 characters")
        return v

    @field_validator("rate_limit_max_requests", "max_fields")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @field_validator("upstream_max_attempts", "cache_max_entries")
    @classmethod
    def validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator(
        "upstream_timeout",
        "health_check_timeout",
        "rate_limit_window_seconds",
        "rate_limit_sweep_interval_seconds",
        "cache_ttl_seconds",
        "httpx_connect_timeout",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate timeouts and windows are positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("upstream_base_delay", "upstream_max_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("retry delays must not be negative")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
