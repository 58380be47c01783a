"""
TradeDoc Tracker - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "TradeDoc Tracker"
    app_env: str = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str  # Required - must be set in .env
    database_pool_size: int = 5
    database_max_overflow: int = 10

    @property
    def is_sqlite(self) -> bool:
        """SQLite does not accept pool sizing arguments."""
        return self.database_url_async.startswith("sqlite")

    # ===========================================
    # JWT VERIFICATION
    # Tokens are issued by the upstream identity service.
    # ===========================================
    jwt_secret_key: str  # Required - must be set in .env
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # ===========================================
    # REDIS / CELERY CONFIGURATION
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"

    # ===========================================
    # EMAIL CONFIGURATION
    # ===========================================
    email_provider: Optional[str] = None  # smtp | sendgrid | mock; auto-detected when unset
    mail_server: str = ""
    mail_port: int = 587
    mail_use_tls: bool = True
    mail_username: str = ""
    mail_password: str = ""
    mail_from: str = ""
    mail_from_name: str = "Phòng Thanh toán Quốc tế"
    sendgrid_api_key: str = ""

    @property
    def smtp_host(self) -> str:
        """SMTP host server."""
        return self.mail_server

    @property
    def smtp_port(self) -> int:
        """SMTP port."""
        return self.mail_port

    @property
    def email_from(self) -> str:
        """Email from address."""
        return self.mail_from or self.mail_username

    # ===========================================
    # WORKFLOW CONFIGURATION
    # ===========================================
    business_timezone: str = "Asia/Ho_Chi_Minh"
    import_strict_mode: bool = False  # Require document + contract number on every row
    declaration_days: int = 30  # Declaration deadline = delivery date + N days
    additional_days: int = 30  # Grace deadline = declaration deadline + N days
    require_censorship_before_inspection: bool = False

    # ===========================================
    # REMINDER CONFIGURATION
    # ===========================================
    reminder_lead_days: int = 10
    reminder_dispatch_hour: int = 9
    reminder_subject_template: str = "[Nhắc nhở] Bổ sung chứng từ giao dịch {trref}"
    reminder_sweep_enabled: bool = True
    reminder_sweep_interval_seconds: int = 3600
    reminder_job_backend: str = "inprocess"  # inprocess | celery

    # ===========================================
    # CORS SETTINGS
    # ===========================================
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every call.
    """
    return Settings()


# Export settings instance
settings = get_settings()
