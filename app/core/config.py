from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import os


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App Configuration
    app_name: str = "Polling App"
    app_version: str = "1.0.0"
    debug: bool = False
    app_url: str = "http://localhost:8000"

    # Database Configuration
    database_url: str = "sqlite:///./polling_app.db"
    database_echo: bool = False

    # Redis Configuration
    redis_enabled: bool = True
    redis_url: str = "redis://localhost:6379"
    redis_password: Optional[str] = None

    # Security Configuration
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    session_cookie_name: str = "access_token"
    cookie_secure: bool = False

    # CORS Configuration
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8000"
    ]

    # Rate Limiting
    vote_rate_limit: int = 3
    vote_rate_window: int = 60  # seconds

    # Email (Resend)
    resend_api_key: Optional[str] = None
    resend_api_url: str = "https://api.resend.com/emails"
    from_email: str = "notifications@pollingapp.dev"
    reply_to_email: str = "support@pollingapp.dev"

    # Environment
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()


def get_database_url() -> str:
    """Get database URL with fallback to environment variable."""
    return os.getenv("DATABASE_URL", settings.database_url)


def is_production() -> bool:
    """Check if running in production environment."""
    return settings.environment.lower() == "production"
