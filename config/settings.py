"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Credentials are optional so the service can start (and tests can run)
without a configured store; the clients check them before calling out.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


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
    # SOURCE FEED (APIFY)
    # ===================
    apify_token: Optional[str] = Field(
        None,
        description="Apify API token"
    )
    apify_actor_id: str = Field(
        default="autofacts~shopify",
        description="Actor whose last run dataset is the source feed"
    )
    apify_base_url: str = Field(
        default="https://api.apify.com/v2",
        description="Apify API base URL"
    )
    source_url_prefix: str = Field(
        default="https://www.manchesterwholesale.co.uk/products/",
        description="Product URL prefix stripped to derive a handle"
    )

    # ===================
    # DESTINATION (SHOPIFY)
    # ===================
    shopify_domain: Optional[str] = Field(
        None,
        description="Store domain, e.g. my-store.myshopify.com"
    )
    shopify_access_token: Optional[str] = Field(
        None,
        description="Admin API access token"
    )
    shopify_location_id: Optional[str] = Field(
        None,
        description="Inventory location that levels are set on"
    )
    shopify_api_version: str = Field(
        default="2024-01",
        description="Admin REST API version"
    )
    supplier_tag: str = Field(
        default="Supplier",
        min_length=1,
        description="Tag marking destination records owned by this integration"
    )

    # ===================
    # TELEGRAM
    # ===================
    telegram_bot_token: Optional[str] = Field(
        None,
        description="Telegram bot token from @BotFather"
    )
    telegram_chat_id: Optional[str] = Field(
        None,
        description="Telegram chat ID for alerts"
    )

    # ===================
    # FAILSAFE LIMITS
    # ===================
    max_inventory_update_percentage: float = Field(
        default=5,
        ge=0,
        le=100,
        description="Halt inventory sync above this share of records changing"
    )
    max_discontinue_percentage: float = Field(
        default=30,
        ge=0,
        le=100,
        description="Halt discontinue above this share of records retiring"
    )
    max_discontinue_count: int = Field(
        default=100,
        ge=0,
        description="Halt discontinue above this many records retiring in one run"
    )
    max_new_products: int = Field(
        default=100,
        ge=0,
        description="Halt create-new above this many new records"
    )
    max_create_per_run: int = Field(
        default=200,
        ge=1,
        description="Maximum records created in a single run"
    )
    min_source_items: int = Field(
        default=0,
        ge=0,
        description="Halt when the source feed is smaller than this (0 disables)"
    )
    min_destination_records: int = Field(
        default=0,
        ge=0,
        description="Halt when the store snapshot is smaller than this (0 disables)"
    )
    discontinue_miss_runs: int = Field(
        default=1,
        ge=1,
        description="Consecutive runs a SKU must be missing before it is retired"
    )
    max_error_rate_percentage: float = Field(
        default=20,
        ge=0,
        le=100,
        description="Stop a batch once failed writes exceed this share of attempts"
    )
    error_rate_min_attempts: int = Field(
        default=10,
        ge=1,
        description="Attempts a batch makes before its error rate is checked"
    )

    # ===================
    # MATCHING & PACING
    # ===================
    fuzzy_match_threshold: float = Field(
        default=60,
        ge=0,
        le=100,
        description="Word overlap % a fuzzy title match must strictly exceed"
    )
    api_call_delay_seconds: float = Field(
        default=0.4,
        ge=0,
        description="Pause after every remote write"
    )
    fetch_timeout_seconds: float = Field(
        default=300,
        gt=0,
        description="HTTP timeout for catalog calls"
    )
    activity_log_size: int = Field(
        default=500,
        ge=10,
        description="Activity log entries kept for the status endpoint"
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

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def telegram_configured(self) -> bool:
        """Check if Telegram is properly configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def shopify_configured(self) -> bool:
        return bool(self.shopify_domain and self.shopify_access_token)

    @property
    def shopify_base_url(self) -> str:
        return f"https://{self.shopify_domain}/admin/api/{self.shopify_api_version}"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
