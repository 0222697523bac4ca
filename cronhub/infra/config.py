"""
Runtime configuration for cronhub.

Settings are read from the environment once at startup. A .env file in the
working directory is loaded first (python-dotenv) without overriding
variables that are already set.

Environment Variables:
- CRONHUB_DB_PATH: SQLite job store (default: data/cronhub.db)
- CRONHUB_TIMEZONE: Timezone cron expressions are evaluated in (default: UTC)
- CRONHUB_HTTP_TIMEOUT: HTTP job request timeout in seconds (default: 30)
- CRONHUB_SHELL_TIMEOUT: Shell job timeout in seconds (default: 300)
- CRONHUB_WEBHOOK_TIMEOUT: Webhook request timeout in seconds (default: 10)
- CRONHUB_LOG_LEVEL: Log level (default: INFO)
- CRONHUB_LOG_DIR: Directory for daily log files (default: logs)
- API_AUTH_ENABLED: Require X-API-Key on job routes (default: false)
- API_KEY: Expected X-API-Key value
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    val = os.getenv(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    elif val in ("false", "0", "no", "off"):
        return False
    return default


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    val = os.getenv(key)
    if val is not None:
        try:
            return int(val)
        except ValueError:
            logger.warning(f"[Config] Invalid integer for {key}: {val}, using default: {default}")
    return default


@dataclass(frozen=True)
class Settings:
    """Process-wide settings."""

    db_path: Path = Path("data/cronhub.db")
    timezone: str = "UTC"
    http_timeout: int = 30
    shell_timeout: int = 300
    webhook_timeout: int = 10
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    api_auth_enabled: bool = False
    api_key: str = ""

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from the environment.

        Args:
            dotenv: Load a .env file first (existing variables win)
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True), override=False)

        return cls(
            db_path=Path(os.getenv("CRONHUB_DB_PATH", "data/cronhub.db")),
            timezone=os.getenv("CRONHUB_TIMEZONE", "UTC"),
            http_timeout=_get_env_int("CRONHUB_HTTP_TIMEOUT", 30),
            shell_timeout=_get_env_int("CRONHUB_SHELL_TIMEOUT", 300),
            webhook_timeout=_get_env_int("CRONHUB_WEBHOOK_TIMEOUT", 10),
            log_level=os.getenv("CRONHUB_LOG_LEVEL", "INFO").upper(),
            log_dir=Path(os.getenv("CRONHUB_LOG_DIR", "logs")),
            api_auth_enabled=_get_env_bool("API_AUTH_ENABLED", False),
            api_key=os.getenv("API_KEY", ""),
        )

    def ensure_directories(self) -> None:
        """Create the directories the database and log files live in."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
