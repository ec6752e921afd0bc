"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Coffeetrix"
    app_version: str = "1.0.0"
    debug: bool = False

    # Storage
    database_path: str = "./data/coffeetrix.db"
    store_retry_attempts: int = 5
    store_retry_delay_seconds: float = 0.1  # multiplied by the attempt number

    # Scheduling
    default_daily_time: str = "08:00"  # HH:MM, UTC
    day_boundary_timezone: str = "UTC"  # session dates are calendar days in this zone
    signup_window_minutes: int = 30
    close_interval_seconds: float = 30.0
    reconfigure_interval_seconds: float = 60.0

    # Test mode: immediate invites, short window, no daily loop, placeholder members
    test_mode: bool = False
    test_signup_window_minutes: int = 1
    test_close_interval_seconds: float = 5.0

    # Feishu (Lark) Bot settings
    feishu_app_id: Optional[str] = None
    feishu_app_secret: Optional[str] = None
    feishu_verification_token: Optional[str] = None
    feishu_encrypt_key: Optional[str] = None

    # Admin endpoints are open when unset
    admin_token: Optional[str] = None

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/coffeetrix.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_webhook_payloads: bool = False  # Dump inbound webhook bodies at DEBUG

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def signup_window_seconds(self) -> float:
        """Effective signup window, honoring test mode."""
        minutes = self.test_signup_window_minutes if self.test_mode else self.signup_window_minutes
        return minutes * 60.0

    @property
    def effective_close_interval(self) -> float:
        """Effective closer poll interval, honoring test mode."""
        return self.test_close_interval_seconds if self.test_mode else self.close_interval_seconds


settings = Settings()
