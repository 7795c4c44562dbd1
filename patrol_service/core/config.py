# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Core configuration, all env-driven, zero hardcode.
Single source of truth for every tunable parameter.
"""

import os


class Settings:
    """Application settings loaded from environment variables."""

    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "patrol-scheduling")
    SERVICE_VERSION: str = os.getenv("SERVICE_VERSION", "1.0.0")
    SERVICE_PORT: int = int(os.getenv("SERVICE_PORT", "8005"))

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./patrol.db")
    POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
    MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "5"))
    POOL_RECYCLE: int = int(os.getenv("DB_POOL_RECYCLE", "300"))

    # Length of one patrol slot; two groups on the same date overlap when
    # their [start, start + slot) intervals intersect.
    PATROL_SLOT_MINUTES: int = int(os.getenv("PATROL_SLOT_MINUTES", "120"))

    LOCK_TIMEOUT_SECONDS: float = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5.0"))
    LOCK_STRIPES: int = int(os.getenv("LOCK_STRIPES", "64"))
    TX_MAX_RETRIES: int = int(os.getenv("TX_MAX_RETRIES", "3"))

    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "50"))

    CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
