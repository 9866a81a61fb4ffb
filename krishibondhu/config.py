"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class KrishiConfig(BaseSettings):
    """KrishiBondhu core configuration"""

    # Persistence configuration
    database_path: str = "krishibondhu.db"  # SQLite file holding the kb_* keys
    use_sqlite: bool = True

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8091

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Payment simulation
    payment_processing_delay_seconds: float = 2.0
    payment_failure_sentinel: str = "0000"  # Reserved PIN / account number that is always declined

    # Reminders and notifications
    reminder_poll_interval_seconds: float = 60.0
    reminder_poller_enabled: bool = True
    notifications_auto_grant: bool = True  # Log provider answers permission requests with this
    notification_webhook_url: str = ""  # Empty = log-only delivery
    notification_timeout: float = 5.0
    notification_icon: Optional[str] = "/icon.png"

    class Config:
        env_prefix = "KB_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = KrishiConfig()


def get_config() -> KrishiConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> KrishiConfig:
    """Reload configuration from environment"""
    global config
    config = KrishiConfig()
    return config
