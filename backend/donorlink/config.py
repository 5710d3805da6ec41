"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./donorlink.db"
    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Donation slots are entered as local date + HH:MM in this zone
    SERVICE_TIMEZONE: str = "UTC"
    DONATION_REST_DAYS: int = 90
    NOTIFICATION_BATCH_SIZE: int = 100
    MIN_REQUEST_MESSAGE_LENGTH: int = 10

    class Config:
        env_file = ".env"


settings = Settings()
