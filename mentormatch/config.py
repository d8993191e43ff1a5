from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # JWT Authentication
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # Email Configuration
    EMAIL_NOTIFICATIONS_ENABLED: bool = True
    SMTP_SERVER: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    EMAIL_FROM: Optional[str] = None
    EMAIL_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT_SECONDS: int = 8

    # Matching engine
    MATCH_SUGGESTION_TTL_DAYS: int = 14
    MATCH_SUGGESTION_LIMIT: int = 10
    MATCH_MAX_LIMIT: int = 50
    MATCH_DECLINE_COOLDOWN_DAYS: int = 30
    MATCH_DEFAULT_MENTOR_CAPACITY: int = 3
    MATCH_WEIGHT_EXPERTISE: float = 0.5
    MATCH_WEIGHT_AVAILABILITY: float = 0.25
    MATCH_WEIGHT_INTERACTIONS: float = 0.15
    MATCH_WEIGHT_PRIORITY: float = 0.1
    MATCH_PRIORITY_WAIT_DAYS: int = 30
    MATCH_PRIORITY_WAIT_BONUS: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
