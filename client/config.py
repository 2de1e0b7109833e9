"""
Centralized configuration for the buzzer client.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.API_BASE_URL)
    print(config.REFRESH_THRESHOLD_SECS)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class ClientConfig:
    """Client configuration."""
    # Server endpoints
    API_BASE_URL: str = "http://localhost:3000/api"
    WS_BASE_URL: str = "ws://localhost:3000"
    PUBLIC_URL: str = "http://localhost:3000"
    HTTP_TIMEOUT_SECS: float = 10.0

    # Token lifecycle
    REFRESH_THRESHOLD_SECS: int = 60 * 60
    REFRESH_CHECK_INTERVAL_SECS: int = 15 * 60

    # Connection
    MAX_CONNECTION_FAILURES: int = 3
    RECONNECT_DELAY_SECS: float = 1.0

    # Round protocol: the stock server reopens buzzing after a timeout
    REOPEN_ON_TIMEOUT: bool = True

    # Transient UI
    NOTICE_DURATION_MS: int = 2800
    FLASH_DURATION_MS: int = 800

    # Room defaults
    DEFAULT_ANSWER_WINDOW_MS: int = 5000

    # Session persistence ("memory", "sqlite" or "redis")
    SESSION_STORE: str = "sqlite"
    SESSION_DB_PATH: str = "buzzer_sessions.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Logging / error tracking
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    SENTRY_DSN: str = ""

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables."""
        return cls(
            API_BASE_URL=get_env("API_BASE_URL", "http://localhost:3000/api").rstrip("/"),
            WS_BASE_URL=get_env("WS_BASE_URL", "ws://localhost:3000").rstrip("/"),
            PUBLIC_URL=get_env("PUBLIC_URL", "http://localhost:3000").rstrip("/"),
            HTTP_TIMEOUT_SECS=get_env_float("HTTP_TIMEOUT_SECS", 10.0),
            REFRESH_THRESHOLD_SECS=get_env_int("REFRESH_THRESHOLD_SECS", 60 * 60),
            REFRESH_CHECK_INTERVAL_SECS=get_env_int("REFRESH_CHECK_INTERVAL_SECS", 15 * 60),
            MAX_CONNECTION_FAILURES=get_env_int("MAX_CONNECTION_FAILURES", 3),
            RECONNECT_DELAY_SECS=get_env_float("RECONNECT_DELAY_SECS", 1.0),
            REOPEN_ON_TIMEOUT=get_env_bool("REOPEN_ON_TIMEOUT", True),
            NOTICE_DURATION_MS=get_env_int("NOTICE_DURATION_MS", 2800),
            FLASH_DURATION_MS=get_env_int("FLASH_DURATION_MS", 800),
            DEFAULT_ANSWER_WINDOW_MS=get_env_int("DEFAULT_ANSWER_WINDOW_MS", 5000),
            SESSION_STORE=get_env("SESSION_STORE", "sqlite").lower(),
            SESSION_DB_PATH=get_env("SESSION_DB_PATH", "buzzer_sessions.db"),
            REDIS_URL=get_env("REDIS_URL", "redis://localhost:6379"),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            SENTRY_DSN=get_env("SENTRY_DSN", ""),
        )


# Global config instance - loaded once at module import
config = ClientConfig.from_env()


def reload_config() -> ClientConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ClientConfig.from_env()
    return config
