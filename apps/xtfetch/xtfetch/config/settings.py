"""Application settings using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global settings loaded from environment variables / .env file."""

    # Redis (cookie pool, browser profiles, result cache)
    redis_url: str = "redis://redis:6379/0"

    # Backend API used by ResilientClient for relative endpoints
    api_base_url: str = "http://localhost:3002"
    api_timeout: float = Field(default=30.0, description="Per-attempt request timeout in seconds")
    api_retries: int = Field(default=3, description="Total attempts for 5xx / network failures")
    connection_timeout: float = Field(
        default=5.0, description="Shorter timeout for the first attempt (fast offline detection)",
    )
    offline_cache_ttl: float = Field(
        default=10.0, description="Seconds a connection failure short-circuits later calls",
    )

    # Guest playground
    playground_enabled: bool = True
    playground_rate_limit: int = Field(default=5, description="Requests per IP per window")
    playground_window_seconds: int = 120
    playground_url_cache_seconds: int = 120

    # Legacy compatibility surface
    legacy_rate_limit: int = 5
    legacy_window_seconds: int = 300

    # Service state
    maintenance_mode: bool = False
    maintenance_message: str = "XTFetch is under maintenance. Please try again later."
    disabled_platforms: str = Field(default="", description="Comma separated platform ids")

    # Admin endpoints are disabled while this is empty
    admin_api_key: str = ""

    # Media proxy
    proxy_chunk_size: int = 65536
    proxy_upstream_timeout: float = 120.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="XTFETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def disabled_platform_set(self) -> set[str]:
        """Parse disabled_platforms into a set of platform ids."""
        return {p.strip().lower() for p in self.disabled_platforms.split(",") if p.strip()}

    def is_platform_enabled(self, platform: str) -> bool:
        return platform.lower() not in self.disabled_platform_set()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
