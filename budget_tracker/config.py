"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class BudgetTrackerConfig(BaseSettings):
    """Budget tracker configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    database_path: str = "budget_tracker.db"

    # API configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8095

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Startup behaviour
    seed_on_create: bool = True  # Seed demo accounts/categories on first open
    process_on_start: bool = True  # Run recurring + due bill posting on start

    # Business rules configuration
    small_expense_threshold: str = "50"  # Below this, recurring expenses prefer credit
    loan_category_name: str = "Loan Interest"
    bill_occurrences_ahead: int = 2  # Future bills spawned when a recurring bill is paid
    default_currency: str = "AUD"

    class Config:
        env_prefix = "BUDGET_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BudgetTrackerConfig()


def get_config() -> BudgetTrackerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BudgetTrackerConfig:
    """Reload configuration from environment"""
    global config
    config = BudgetTrackerConfig()
    return config
