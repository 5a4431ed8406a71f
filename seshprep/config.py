"""SeshPrep Configuration Settings."""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

GIB = 1024 * 1024 * 1024


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # Database
    DATABASE_URL: Optional[str] = None
    # "database" persists through DATABASE_URL, "memory" keeps everything in RAM
    STORAGE_BACKEND: str = "database"

    # Object storage
    BLOB_BACKEND: str = "local"
    BLOB_ROOT: str = "media_storage"

    # JWT
    JWT_SECRET_KEY: str = Field(default="dev-secret-key-change-me")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # Application
    APP_NAME: str = "SeshPrep"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    FRONTEND_URL: str = "http://localhost:5173"

    # Email
    EMAIL_BACKEND: str = "console"
    SMTP_HOST: str = "smtp.sendgrid.net"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = "noreply@seshprep.app"
    SMTP_FROM_NAME: str = "SeshPrep"

    # Billing
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_WEBHOOK_TOLERANCE: int = 300

    # Workspace / invitations
    TRIAL_DAYS: int = 10
    INVITATION_TTL_DAYS: int = 7
    INVITATION_RATE_LIMIT: int = 10
    INVITATION_RATE_WINDOW_MINUTES: int = 60
    RECOVERY_TTL_MINUTES: int = 60

    # Files
    MAX_FILE_SIZE_REGULAR: int = 5 * GIB
    MAX_FILE_SIZE_SESSIONS: int = 60 * GIB
    UPLOAD_MAX_RETRIES: int = 3
    UPLOAD_RETRY_BASE_DELAY: float = 0.5
    UPLOAD_SESSION_TTL_HOURS: int = 24
    DOWNLOAD_URL_TTL_SECONDS: int = 3600

    # Retention
    RETENTION_DAYS: int = 730
    CLEANUP_SECRET: str = ""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    @property
    def cors_origins_list(self) -> List[str]:
        """Return the configured CORS origins as a sanitized list."""

        if not self.CORS_ORIGINS:
            return []

        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
