# taskboard/config.py
# Application settings, built once at startup and handed to every component

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-derived configuration for the API, scheduler and mailer"""

    # Database
    DATABASE_URL: str = "sqlite:///./taskboard.db"

    # Tokens and passwords
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(24 * 60, ge=1)
    BCRYPT_ROUNDS: int = Field(10, ge=4, le=31)
    EMAIL_VERIFICATION_EXPIRATION_HOURS: int = Field(24, ge=1)

    # Frontend / CORS
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: List[str] = []

    # Email transport
    EMAIL_ENABLED: bool = False
    EMAIL_HOST: str = "localhost"
    EMAIL_PORT: int = 587
    EMAIL_USER: str = ""
    EMAIL_PASSWORD: str = ""
    EMAIL_USE_TLS: bool = True
    EMAIL_FROM: str = "no-reply@taskboard.local"
    EMAIL_FROM_NAME: str = "Task Management System"
    EMAIL_TIMEOUT_SECONDS: int = 30

    # Reminders and notifications
    REMINDER_THRESHOLDS: str = "48,24,1"
    REMINDER_CHECK_INTERVAL: int = Field(60, ge=1)  # minutes
    REMINDER_RUN_ON_STARTUP: bool = True
    NOTIFICATION_RETENTION_DAYS: int = Field(30, ge=1)
    SSE_HEARTBEAT_SECONDS: float = Field(30.0, gt=0)
    SCHEDULER_ENABLED: bool = True

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_postgres_scheme(cls, v: str) -> str:
        # SQLAlchemy only understands the postgresql:// scheme
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator("REMINDER_THRESHOLDS")
    @classmethod
    def check_thresholds(cls, v: str) -> str:
        hours = [part.strip() for part in v.split(",") if part.strip()]
        if not hours or not all(h.isdigit() and int(h) > 0 for h in hours):
            raise ValueError("REMINDER_THRESHOLDS must be a comma-separated list of positive hours")
        return v

    @property
    def reminder_thresholds(self) -> List[int]:
        """Configured lead times in hours, largest first"""
        hours = {int(part.strip()) for part in self.REMINDER_THRESHOLDS.split(",") if part.strip()}
        return sorted(hours, reverse=True)

    @property
    def allowed_origins(self) -> List[str]:
        return [self.FRONTEND_URL, *self.CORS_ORIGINS]
