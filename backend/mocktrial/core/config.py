# mocktrial/core/config.py
"""
Application configuration using Pydantic Settings
"""
import json
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "MockTrial"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # JWT Authentication (tokens are issued by the auth service)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # CORS
    CORS_ORIGINS: str = '["http://localhost:3000"]'

    # Case rules
    DEFAULT_REQUIRED_JURORS: int = 7
    MIN_REQUIRED_JURORS: int = 6
    MAX_REQUIRED_JURORS: int = 12
    CASE_FULL_JUROR_CAP: int = 7
    SCHEDULE_GRACE_MINUTES: int = 5
    BATCH_REVIEW_LIMIT: int = 50

    # Timezones
    DEFAULT_TIMEZONE: str = "UTC"

    # Maintenance scheduler
    MAINTENANCE_SCHEDULER_ENABLED: bool = True
    MAINTENANCE_INTERVAL_MINUTES: int = 1440
    NOTIFICATION_ARCHIVE_DAYS: int = 90
    EVENT_ARCHIVE_DAYS: int = 365
    LOGIN_ATTEMPT_RETENTION_DAYS: int = 30

    # Trial reminders (in-app, 4/3/2/1 days before the trial)
    TRIAL_REMINDERS_ENABLED: bool = True
    TRIAL_REMINDER_INTERVAL_MINUTES: int = 60

    # War room team
    TEAM_BATCH_LIMIT: int = 20

    # Password reset
    PASSWORD_RESET_TOKEN_MINUTES: int = 60
    PASSWORD_RESET_MAX_ATTEMPTS: int = 3
    PASSWORD_RESET_WINDOW_MINUTES: int = 15

    # Login lockout
    LOGIN_LOCKOUT_MINUTES: int = 15
    LOGIN_MAX_FAILED_ATTEMPTS: int = 5

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# Create settings instance
settings = Settings()
