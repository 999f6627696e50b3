"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class ExchangeConfig(BaseSettings):
    """Core exchange ledger configuration"""
    
    # Starting grant for every new account (Decimal strings)
    starting_usd: str = "100"
    starting_rub: str = "10000"
    
    # Fixed conversion table
    usd_rub_rate: str = "100"
    rub_usd_rate: str = "0.01"
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Feature flags
    enable_events: bool = True
    
    class Config:
        env_prefix = "EXCHANGE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = ExchangeConfig()


def get_config() -> ExchangeConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> ExchangeConfig:
    """Reload configuration from environment"""
    global config
    config = ExchangeConfig()
    return config
