"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class LedgerConfig(BaseSettings):
    """Lending ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    sqlite_path: str = "lending_ledger.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    amount_places: int = 2  # Payment amounts are rounded to cents
    allow_overpayment: bool = False  # When True the reconciler clamps instead

    # Feature flags
    enable_audit_logging: bool = True


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
