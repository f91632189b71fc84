"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from environment
variables.  Defaults are provided for all fields so the API starts with
an embedded SQLite database and local image storage.  In a production
deployment override these via environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "CityGuard API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    refresh_token_expire_days: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

    # SQLAlchemy database URL.  Relative SQLite paths are resolved against
    # the working directory by SQLAlchemy itself.
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./cityguard.db")

    # Image storage.  ``local`` writes uploads under ``media_root`` and
    # serves them from ``media_url``; ``remote`` posts them to
    # ``image_upload_url`` with ``image_api_key`` as bearer token.
    storage_backend: str = os.getenv("STORAGE_BACKEND", "local")
    media_root: str = os.getenv("MEDIA_ROOT", "./media")
    media_url: str = os.getenv("MEDIA_URL", "/media")
    image_upload_url: str = os.getenv("IMAGE_UPLOAD_URL", "")
    image_api_key: str = os.getenv("IMAGE_API_KEY", "")


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables must be
# set before importing this module.
settings = Settings()
