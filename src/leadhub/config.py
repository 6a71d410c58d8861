"""Configuration management for LeadHub."""

import logging
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "LeadHub-Webhook/1.0"


class Settings(BaseSettings):
    """LeadHub configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the LEADHUB_ prefix. For example:
        LEADHUB_QDRANT_URL=http://localhost:6333
        LEADHUB_WEBHOOK_MAX_ATTEMPTS=5
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Storage
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (for cloud)",
    )
    collection_prefix: str = Field(
        default="leadhub",
        description="Prefix for Qdrant collection names",
    )
    storage_max_scroll_limit: int = Field(
        default=10000,
        ge=100,
        le=100000,
        description=(
            "Page size for scrolling a collection. Listings read every page, "
            "then filter and sort in memory."
        ),
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    # Webhook delivery
    webhook_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Hard timeout for a single webhook POST",
    )
    webhook_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum delivery attempts per destination per lead",
    )
    webhook_retry_base_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Backoff base: the delay before attempt n is base * 2^(n-1) seconds",
    )
    webhook_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        min_length=1,
        description="User-Agent header sent with every webhook POST",
    )
    webhook_response_excerpt_chars: int = Field(
        default=500,
        ge=0,
        le=10000,
        description="Characters of the response body kept on successful deliveries",
    )
    webhook_max_concurrent: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum webhook POSTs in flight at once (backoff waits do not count)",
    )
    webhook_log_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Number of recent delivery logs returned by the operator view",
    )

    # Leads
    leads_default_page_size: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Default page size for lead listing",
    )
    leads_max_page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum page size accepted for lead listing",
    )

    # CORS Configuration
    cors_enabled: bool = Field(
        default=True,
        description="Install the CORS middleware",
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description=(
            "Origins allowed to call the API from a browser, e.g. the dashboard at "
            "'https://leads.example.com'. ['*'] allows any origin."
        ),
    )
    cors_allow_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        description="Methods the dashboard may use cross-origin",
    )
    cors_allow_headers: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Request headers accepted on cross-origin calls",
    )
    cors_allow_credentials: bool = Field(
        default=False,
        description=(
            "Send Access-Control-Allow-Credentials. Requires explicit origins."
        ),
    )
    cors_max_age: int = Field(
        default=600,
        ge=0,
        le=86400,
        description="Seconds a browser may cache a preflight response",
    )

    model_config = {
        "env_prefix": "LEADHUB_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @model_validator(mode="after")
    def validate_cors_settings(self) -> "Settings":
        """Reject credentialed CORS combined with a wildcard origin."""
        if self.cors_allow_credentials and "*" in self.cors_allow_origins:
            raise ValueError(
                "cors_allow_credentials cannot be True when cors_allow_origins contains '*'. "
                "List explicit origins instead."
            )
        return self

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "Settings":
        """The default page size must fit under the maximum."""
        if self.leads_default_page_size > self.leads_max_page_size:
            raise ValueError(
                f"leads_default_page_size ({self.leads_default_page_size}) must not exceed "
                f"leads_max_page_size ({self.leads_max_page_size})"
            )
        return self


# Global settings instance
settings = Settings()
