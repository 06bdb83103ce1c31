"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )

    # ===================
    # SHOPIFY
    # ===================
    shopify_api_version: str = Field(
        default="2025-01",
        pattern=r"^\d{4}-\d{2}$",
        description="Shopify Admin API version used for GraphQL calls"
    )
    shopify_request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=120,
        description="Timeout for a single Shopify GraphQL request"
    )

    # ===================
    # SYNC ENGINE LIMITS
    # ===================
    max_product_options: int = Field(
        default=3,
        ge=1,
        le=3,
        description="Maximum options per product accepted by the store"
    )
    max_product_variants: int = Field(
        default=100,
        ge=1,
        le=2048,
        description="Maximum variants per product accepted by the store"
    )

    # ===================
    # BULK SYNC
    # ===================
    bulk_sync_batch_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Products synced concurrently per batch"
    )
    bulk_sync_batch_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        le=60,
        description="Fixed pause between bulk sync batches"
    )

    # ===================
    # MAPPING STORE
    # ===================
    mapping_cas_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Reconcile attempts before a version conflict is surfaced"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        description="Dashboard origins allowed to call the API (JSON list in env)"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
