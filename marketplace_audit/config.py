"""
Configuration management for the Marketplace Audit platform
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Marketplace Audit - bol.com Seller Health"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./marketplace_audit.db"

    # bol.com endpoints
    bol_api_base_url: str = "https://api.bol.com"
    bol_ads_base_url: str = "https://advertising.bol.com"
    bol_token_url: str = "https://login.bol.com/token?grant_type=client_credentials"
    bol_http_timeout_seconds: float = 30.0
    bol_token_expiry_margin_seconds: int = 60  # Refresh tokens a minute early

    # Rate limiting (bol.com enforces per-second limits, no automatic retries)
    bol_request_delay_seconds: float = 0.1  # Between calls in entity loops
    bol_batch_delay_seconds: float = 0.2  # Between offer-insight batches
    bol_extended_delay_seconds: float = 0.15  # Between per-product extended calls
    bol_batch_size: int = 20  # API max ids per batched call

    # Entity caps per sync
    max_campaigns_per_sync: int = 20
    max_ad_groups_per_sync: int = 40
    extended_max_products: int = 50
    extended_catalog_products: int = 20
    forecast_weeks_ahead: int = 4

    # Offers export job policy
    export_job_max_attempts: int = 50
    export_job_retention_hours: int = 24

    # Advertising backfill policy
    ads_backfill_days: int = 180
    ads_incremental_days: int = 7

    # Performance indicators fetched during the main sync
    performance_indicator_names: str = "CANCELLATION_RATE,FULFILMENT_RATE,REVIEW_SCORE"

    # Trigger authentication
    dashboard_api_token: str = ""  # Bearer token for user-initiated syncs
    cron_secret: Optional[str] = None  # Bearer token for scheduled calls
    webhook_secret: Optional[str] = None  # x-webhook-secret header for manual system calls

    # Scheduler (UTC)
    enable_scheduler: bool = True
    main_sync_hour: int = 2
    main_sync_minute: int = 0
    complete_sync_interval_minutes: int = 5
    extended_sync_interval_hours: int = 6

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def indicator_names(self) -> list:
        return [n.strip() for n in self.performance_indicator_names.split(",") if n.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
