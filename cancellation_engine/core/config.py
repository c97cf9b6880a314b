"""
Configuration management for the Cancellation Decisioning Engine.
"""
from typing import Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    APP_NAME: str = Field(default="Cancellation Decisioning Engine")
    APP_VERSION: str = Field(default="1.0.0")

    # Database settings. DATABASE_URL wins over the individual DB_* parts.
    DATABASE_URL: Optional[str] = Field(default=None)
    DB_HOST: str = Field(default="localhost")
    DB_PORT: int = Field(default=5432)
    DB_NAME: str = Field(default="cancellations")
    DB_USER: str = Field(default="postgres")
    DB_PASSWORD: str = Field(default="")
    DB_ECHO: bool = Field(default=False)

    # Risk scoring
    HIGH_VALUE_ORDER_THRESHOLD: float = Field(default=50000.0)
    RECENT_ORDER_SNAPSHOT_LIMIT: int = Field(default=10)

    # Tenant used by the seed script and by portal requests that omit one
    DEFAULT_ORGANIZATION_ID: str = Field(default="demo-org")

    # API settings
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_RELOAD: bool = Field(default=False)
    CORS_ORIGINS: list[str] = ["*"]

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{quote_plus(self.DB_PASSWORD)}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


# Global settings instance
settings = Settings()
