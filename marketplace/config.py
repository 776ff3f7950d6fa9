"""Application configuration management."""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables from project-level .env if available
PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = os.getenv("APP_NAME", "Marketplace API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = os.getenv("DEBUG", "False") == "True"

    # Server
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))
    reload: bool = os.getenv("RELOAD", "False") == "True"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./marketplace.db")
    query_timeout_seconds: float = float(os.getenv("QUERY_TIMEOUT_SECONDS", "5"))

    # Discovery
    max_delivery_radius_km: float = float(os.getenv("MAX_DELIVERY_RADIUS_KM", "50"))
    default_delivery_radius_km: float = float(os.getenv("DEFAULT_DELIVERY_RADIUS_KM", "5"))
    nearby_default_radius_km: float = float(os.getenv("NEARBY_DEFAULT_RADIUS_KM", "10"))
    radius_default_km: float = float(os.getenv("RADIUS_DEFAULT_KM", "5"))

    # Dashboard
    dashboard_default_page_size: int = int(os.getenv("DASHBOARD_DEFAULT_PAGE_SIZE", "10"))
    dashboard_max_page_size: int = int(os.getenv("DASHBOARD_MAX_PAGE_SIZE", "100"))
    dashboard_default_window_days: int = int(os.getenv("DASHBOARD_DEFAULT_WINDOW_DAYS", "7"))

    # CORS
    cors_origins: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ALLOW_ORIGINS",
            "http://localhost:3000,http://localhost:8080",
        ).split(",")
        if origin.strip()
    ]
    cors_allow_credentials: bool = True

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")
    centralized_logging_enabled: bool = os.getenv("CENTRALIZED_LOGGING_ENABLED", "False") == "True"
    centralized_log_level: str = os.getenv("CENTRALIZED_LOG_LEVEL", "WARNING")
    centralized_log_queue_size: int = int(os.getenv("CENTRALIZED_LOG_QUEUE_SIZE", "1000"))


# Global settings instance
settings = Settings()
