"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Experiment Dashboard"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./expdash.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # API Keys
    admin_api_key: str = "admin-key-change-in-production"  # guards /setup/users
    integration_api_key: str = ""  # empty disables the live feed

    # Rate Limiting (live feed consumers)
    integration_rate_limit: int = 600
    rate_limit_window: int = 3600  # seconds (1 hour)

    # CORS
    frontend_url: str = "http://localhost:3000"

    # Experiments
    max_secondary_kpis: int = 5
    # Re-evaluations of a status transition when a concurrent request won the race
    transition_max_attempts: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
