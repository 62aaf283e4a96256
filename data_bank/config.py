"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import Optional, Tuple


class DataBankConfig(BaseSettings):
    """Data Bank reporting configuration"""
    
    # Dataset configuration
    database_path: str = "data_bank.db"
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Report constants (defaults match the original query literals)
    row_limit: int = 1000
    balance_increase_threshold: Decimal = Decimal("0.05")
    trailing_window_size: int = 30
    percentiles: Tuple[float, float, float] = (0.5, 0.8, 0.95)
    
    # Interest projection
    annual_interest_rate: Decimal = Decimal("0.06")
    months_per_year: int = 12
    days_per_year: int = 365
    
    class Config:
        env_prefix = "DATABANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = DataBankConfig()


def get_config() -> DataBankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> DataBankConfig:
    """Reload configuration from environment"""
    global config
    config = DataBankConfig()
    return config
