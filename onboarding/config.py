"""Application configuration module."""

from typing import List, Optional
from pydantic import BaseSettings, validator


class Settings(BaseSettings):
    """Application settings."""

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./onboarding.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    # Text-generation service
    OPENAI_API_KEY: Optional[str] = None
    GENERATION_MODEL: str = "gpt-4o-mini"
    GENERATION_TEMPERATURE: float = 0.3
    GENERATION_MAX_TOKENS: int = 2000
    GENERATION_TIMEOUT_SECONDS: float = 60.0
    GENERATION_MAX_RETRIES: int = 2

    # Assessment settings
    DEFAULT_QUIZ_VARIANT: str = "default"
    LEARNING_STYLE_QUESTION_COUNT: int = 40

    # API settings
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Onboarding Assessments"
    ALLOW_ORIGINS: List[str] = ["*"]

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @validator("GENERATION_TIMEOUT_SECONDS")
    def validate_timeout(cls, v):
        """Generation calls must always be bounded"""
        if v <= 0:
            raise ValueError(f"Generation timeout must be positive, got {v}")
        return v

    class Config:
        """Pydantic settings config."""
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()
