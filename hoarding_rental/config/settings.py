"""
Environment configuration for the hoarding rental service.
Uses Pydantic's settings management to handle environment variables
with proper type validation and default values.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Application configuration
    APP_NAME: str = Field(default="Hoarding Rental Service", alias="PROJECT_NAME")
    API_VERSION: str = Field(default="v1", alias="PROJECT_VERSION")
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: List[str] = Field(default=["*"], alias="BACKEND_CORS_ORIGINS")

    # Database configuration
    DATABASE_URL: str = "sqlite:///./hoarding_rental.db"
    DB_POOL_SIZE: int = 20
    DB_POOL_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Redis (only used when LOCK_BACKEND=redis)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"
    LOG_SQL_QUERIES: bool = False
    ENABLE_STRUCTURED_LOGGING: bool = False

    # Booking token lifecycle
    TOKEN_HOLD_HOURS: int = 48
    TOKEN_EXTENSION_HOURS: int = 24
    HOARDING_LOCK_TIMEOUT_SECONDS: float = 5.0
    LOCK_BACKEND: str = "memory"

    # Rent
    RENT_DEFAULT_REMINDER_DAYS: List[int] = Field(default=[14])

    @field_validator('CORS_ORIGINS', 'RENT_DEFAULT_REMINDER_DAYS', mode='before')
    @classmethod
    def parse_list(cls, v: Union[str, list]) -> list:
        """Accept JSON arrays or comma separated strings for list settings"""
        if isinstance(v, str):
            if v.startswith('[') and v.endswith(']'):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator('LOCK_BACKEND', 'LOG_FORMAT', mode='before')
    @classmethod
    def normalize_choice(cls, v: Optional[str]) -> str:
        return (v or "").strip().lower()

    @field_validator('HOARDING_LOCK_TIMEOUT_SECONDS')
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("HOARDING_LOCK_TIMEOUT_SECONDS must be positive")
        return v

    def get_database_url(self) -> str:
        return self.DATABASE_URL

    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
