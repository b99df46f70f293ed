"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.

Security Impact:
    - Settings are loaded from the environment (EMR_ prefix)
    - Sensitive values are never logged
    - Upload limits bound the size and type of stored attachments
"""

import os
from typing import Optional

from src.infrastructure.config_manager import DatabaseConfig, get_database_config

APP_NAME = "EMR Intake"
APP_VERSION = "1.0.0"

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DEFAULT_ALLOWED_IMAGE_TYPES = "image/jpeg,image/jpg,image/png,image/gif"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
DEFAULT_WRITE_RETRIES = 3


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings:
    """Application settings loaded from configuration manager and environment.

    Attributes:
        app_name: Service name reported by the health endpoint
        log_level: Root log level (EMR_LOG_LEVEL)
        json_logs: Emit JSON log lines (EMR_JSON_LOGS)
        max_upload_bytes: Largest accepted attachment (EMR_MAX_UPLOAD_BYTES)
        allowed_image_types: Accepted attachment content types (EMR_ALLOWED_IMAGE_TYPES)
        cors_origins: Allowed browser origins (EMR_CORS_ORIGINS)
        write_retries: Attempts for a conflicting DuckDB write (EMR_WRITE_RETRIES)
        host/port: Bind address for `emr-intake serve`
    """

    def __init__(self):
        self._db_config: Optional[DatabaseConfig] = None

        self.app_name = os.getenv("EMR_APP_NAME", APP_NAME)
        self.log_level = os.getenv("EMR_LOG_LEVEL", "INFO")
        self.json_logs = _env_flag("EMR_JSON_LOGS", "false")

        self.max_upload_bytes = int(os.getenv("EMR_MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES)))
        self.allowed_image_types = tuple(_env_list("EMR_ALLOWED_IMAGE_TYPES", DEFAULT_ALLOWED_IMAGE_TYPES))
        self.cors_origins = _env_list("EMR_CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
        self.write_retries = int(os.getenv("EMR_WRITE_RETRIES", str(DEFAULT_WRITE_RETRIES)))

        self.host = os.getenv("EMR_HOST", "127.0.0.1")
        self.port = int(os.getenv("EMR_PORT", "8000"))

    @property
    def db_config(self) -> DatabaseConfig:
        """Database configuration, loaded lazily on first access."""
        if self._db_config is None:
            self._db_config = get_database_config()
        return self._db_config

    def get_db_path(self) -> str:
        """Get database path for DuckDB.

        Raises:
            ValueError: If the configured database is not DuckDB
        """
        if self.db_config.db_type == "duckdb":
            return self.db_config.db_path or ":memory:"
        raise ValueError(f"Database type '{self.db_config.db_type}' does not use db_path")


# Global settings instance
settings = Settings()
