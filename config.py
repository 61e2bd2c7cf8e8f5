from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Payments Ledger Engine"
    app_version: str = "1.0.0"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Ledger rules
    verify_transfer_owner: bool = True  # reject disputes/settlements from a client other than the transfer's owner

    # Stream policy
    stop_on_error: bool = False  # abort the run on the first rejected action

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    log_level: str = "DEBUG"
    log_format: str = "text"


class ProductionSettings(Settings):
    log_level: str = "INFO"
    log_format: str = "json"


class TestingSettings(Settings):
    log_level: str = "WARNING"  # Reduce noise in tests
    log_format: str = "text"


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()
