"""Application settings and environment variables."""

import os

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_DATABASE: str = os.getenv("DB_NAME", "inventory_db")
    DB_USER: str = os.getenv("DB_USER", "user")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "password")

    # "mysql" or "memory"
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "mysql")

    # Seconds to wait for a per-product lock before giving up
    LOCK_TIMEOUT: float = float(os.getenv("LOCK_TIMEOUT", "3.0"))

    # Arrival edits are not stock-checked unless this is enabled
    GUARD_ARRIVAL_EDITS: bool = _env_flag("GUARD_ARRIVAL_EDITS")

    # Dashboard settings
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))
    LOW_STOCK_LIMIT: int = int(os.getenv("LOW_STOCK_LIMIT", "5"))
    TIMEZONE: str = os.getenv("TIMEZONE", "UTC")

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")  # INFO, DEBUG, WARNING, ERROR, CRITICAL


settings = Settings()
