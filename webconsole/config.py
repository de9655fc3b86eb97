"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream API (the server that owns tokens and usage logs)
    upstream_base_url: str = "http://localhost:3000"
    upstream_timeout_seconds: float = 10.0

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_title: str = "Web Console API"
    api_version: str = "0.1.0"
    api_description: str = "Token usage lookup and console route gate"

    # Token usage lookup
    default_log_page_size: int = 10
    log_page_size_options: list[int] = [10, 20, 50, 100]
    tokens_per_dollar: int = 500_000
    quota_display_digits: int = 3
    display_timezone: str = "UTC"
    error_separator: str = "; "

    # Route gate
    status_cache_ttl_seconds: int = 10
    admin_role_threshold: int = 10
    page_bundle_package: str = "console_pages"
    preload_pages: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "webconsole"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        A console pointed at a bogus upstream or configured with a
        non-positive page size would only fail on the first user query.
        """
        errors: list[str] = []

        if not self.upstream_base_url.startswith(("http://", "https://")):
            errors.append(
                f"UPSTREAM_BASE_URL must be an http(s) URL, got: {self.upstream_base_url[:20]!r}"
            )
        if self.default_log_page_size <= 0:
            errors.append(
                f"DEFAULT_LOG_PAGE_SIZE must be positive, got: {self.default_log_page_size}"
            )
        if not self.log_page_size_options or any(n <= 0 for n in self.log_page_size_options):
            errors.append("LOG_PAGE_SIZE_OPTIONS must be a non-empty list of positive sizes")
        if self.tokens_per_dollar <= 0:
            errors.append(f"TOKENS_PER_DOLLAR must be positive, got: {self.tokens_per_dollar}")
        if self.quota_display_digits < 0:
            errors.append("QUOTA_DISPLAY_DIGITS cannot be negative")
        if not self.page_bundle_package.strip():
            errors.append("PAGE_BUNDLE_PACKAGE cannot be empty")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def upstream_base(self) -> str:
        """Upstream base URL without a trailing slash."""
        return self.upstream_base_url.rstrip("/")


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
