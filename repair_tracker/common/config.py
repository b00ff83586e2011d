"""
Configuration loader for the repair tracker data-access layer.

Loads all settings from environment variables (.env file).
Validates required settings and provides type-safe access.

env_int, env_float and env_bool parse every numeric and flag setting; a
malformed value falls back to its default. DataAccessConfig.from_env reads
through the same parsers.
"""

import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def env_int(name: str, default: int) -> int:
    """Integer setting; unset, blank or malformed values give the default."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}', defaulting to {default}")
        return default


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}', defaulting to {default}")
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() == "true"


class Config:
    """
    Centralized configuration for both backends and the failover arbiter.

    All values loaded from environment variables - NO SECRETS IN CODE.
    Access tokens are never configured here; they come from the injected
    token provider.
    """

    # ===== Relational backend (primary) =====
    RELATIONAL_API_URL: str = os.getenv("RELATIONAL_API_URL", "")

    # ===== Document backend (fallback workbook) =====
    DOCUMENT_API_URL: str = os.getenv("DOCUMENT_API_URL", "https://graph.microsoft.com/v1.0")
    DOCUMENT_DRIVE_ID: str = os.getenv("DOCUMENT_DRIVE_ID", "")
    DOCUMENT_FILE_ID: str = os.getenv("DOCUMENT_FILE_ID", "")
    DOCUMENT_TABLE_NAME: str = os.getenv("DOCUMENT_TABLE_NAME", "RepairTable")

    # ===== Session Manager =====
    SESSION_MAX_RETRIES: int = env_int("SESSION_MAX_RETRIES", 3)
    SESSION_RETRY_DELAY_MS: int = env_int("SESSION_RETRY_DELAY_MS", 1000)
    SESSION_TIMEOUT_MS: int = env_int("SESSION_TIMEOUT_MS", 30 * 60 * 1000)
    SESSION_PERSIST_CHANGES: bool = env_bool("SESSION_PERSIST_CHANGES", True)

    # ===== Failover =====
    # How long to stay on the fallback before probing the primary again
    FAILOVER_RETRY_INTERVAL_MS: int = env_int("FAILOVER_RETRY_INTERVAL_MS", 60000)

    # ===== HTTP =====
    HTTP_TIMEOUT_SECONDS: float = env_float("HTTP_TIMEOUT_SECONDS", 30.0)

    # ===== Logging =====
    DEBUG_MODE: bool = env_bool("DEBUG_MODE", False)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "simple")

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required configuration is present.
        Raises ValueError if critical settings are missing.
        """
        required_settings = {
            "RELATIONAL_API_URL": cls.RELATIONAL_API_URL,
            "DOCUMENT_API_URL": cls.DOCUMENT_API_URL,
            "DOCUMENT_DRIVE_ID": cls.DOCUMENT_DRIVE_ID,
            "DOCUMENT_FILE_ID": cls.DOCUMENT_FILE_ID,
        }

        missing = [name for name, value in required_settings.items() if not value]

        if missing:
            raise ValueError(
                f"Missing required configuration: {', '.join(missing)}. "
                f"Please check your .env file."
            )

        if cls.SESSION_MAX_RETRIES < 1:
            raise ValueError("SESSION_MAX_RETRIES must be at least 1")

        if cls.FAILOVER_RETRY_INTERVAL_MS < 0:
            raise ValueError("FAILOVER_RETRY_INTERVAL_MS cannot be negative")

        if cls.LOG_FORMAT not in ("simple", "json"):
            raise ValueError(
                f"Invalid LOG_FORMAT: {cls.LOG_FORMAT}. Must be 'simple' or 'json'"
            )

    @classmethod
    def summary(cls) -> str:
        """Return a configuration summary (safe for logging, no secrets)."""
        return f"""
Configuration Summary:
  Relational API: {cls.RELATIONAL_API_URL or '✗ Missing'}
  Document API: {cls.DOCUMENT_API_URL}
  Workbook: {'✓ Set' if cls.DOCUMENT_FILE_ID else '✗ Missing'} (table {cls.DOCUMENT_TABLE_NAME})
  Session: {cls.SESSION_MAX_RETRIES} attempts, {cls.SESSION_RETRY_DELAY_MS}ms base delay
  Failover Retry Interval: {cls.FAILOVER_RETRY_INTERVAL_MS}ms
  Debug Mode: {cls.DEBUG_MODE}
        """.strip()


# Validated explicitly by scripts/check_backends.py
# Config.validate()
