"""Environment configuration for the Daily Vibe backend."""

import os
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv

load_dotenv()

DEFAULT_JWT_SECRET = "dev-secret-change-in-production"


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.SQLITE_PATH: str = os.getenv("SQLITE_PATH", "./data/app.db")
        self.JWT_SECRET: str = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.JWT_ALGORITHM: str = "HS256"
        self.JWT_EXPIRATION_HOURS: int = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))
        self.ENVIRONMENT: str = os.getenv("APP_ENV", os.getenv("NODE_ENV", "development"))
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "3000"))
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
        self.MAX_FILE_SIZE: int = int(os.getenv("MAX_FILE_SIZE", str(50 * 1024 * 1024)))
        self.MAX_FILES: int = int(os.getenv("MAX_FILES", "10"))
        self.STATIC_DIR: str = os.getenv("STATIC_DIR", "./public")
        self.BACKUP_DIR: str = os.getenv("BACKUP_DIR", "./backups")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def storage_backend(self) -> str:
        """Name of the storage back-end selected by DATABASE_URL."""
        return "postgres" if self.DATABASE_URL else "sqlite"

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        problems = []
        if self.DATABASE_URL and not self.DATABASE_URL.startswith(
            ("postgres://", "postgresql://", "postgresql+psycopg://")
        ):
            problems.append("DATABASE_URL must be a PostgreSQL connection string")
        if self.is_production and self.JWT_SECRET in ("", DEFAULT_JWT_SECRET):
            problems.append("JWT_SECRET must be set in production")
        if self.MAX_FILE_SIZE <= 0:
            problems.append("MAX_FILE_SIZE must be positive")
        return problems

    def public_config(self) -> dict[str, Any]:
        """Non-secret runtime configuration exposed to the browser."""
        return {
            "environment": self.ENVIRONMENT,
            "storage": self.storage_backend,
            "upload": {
                "maxFileSize": self.MAX_FILE_SIZE,
                "maxFiles": self.MAX_FILES,
            },
            "auth": {
                "tokenTtlHours": self.JWT_EXPIRATION_HOURS,
                "defaultUserId": "default",
            },
            "features": {
                "userRegistration": True,
                "fileUpload": True,
                "calendar": True,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    return settings
