"""
Tests for config module.
"""

import os
from pathlib import Path
from unittest.mock import patch

from cronhub.infra.config import Settings, _get_env_bool, _get_env_int


CONFIG_VARS = (
    "CRONHUB_DB_PATH",
    "CRONHUB_TIMEZONE",
    "CRONHUB_HTTP_TIMEOUT",
    "CRONHUB_SHELL_TIMEOUT",
    "CRONHUB_WEBHOOK_TIMEOUT",
    "CRONHUB_LOG_LEVEL",
    "CRONHUB_LOG_DIR",
    "API_AUTH_ENABLED",
    "API_KEY",
)


def clean_env(**values) -> dict:
    """Environment without any cronhub variables, plus the given ones."""
    env = {k: v for k, v in os.environ.items() if k not in CONFIG_VARS}
    env.update(values)
    return env


class TestEnvHelpers:
    """Tests for _get_env_bool and _get_env_int."""

    def test_bool_truthy_values(self):
        for value in ("true", "1", "yes", "on", "TRUE"):
            with patch.dict(os.environ, {"TEST_FLAG": value}):
                assert _get_env_bool("TEST_FLAG") is True

    def test_bool_falsy_values(self):
        for value in ("false", "0", "no", "off"):
            with patch.dict(os.environ, {"TEST_FLAG": value}):
                assert _get_env_bool("TEST_FLAG", default=True) is False

    def test_bool_unknown_uses_default(self):
        with patch.dict(os.environ, {"TEST_FLAG": "maybe"}):
            assert _get_env_bool("TEST_FLAG", default=True) is True

    def test_int_parsed(self):
        with patch.dict(os.environ, {"TEST_INT": "42"}):
            assert _get_env_int("TEST_INT", 7) == 42

    def test_int_invalid_uses_default(self):
        """Test that an unparseable value falls back to the default."""
        with patch.dict(os.environ, {"TEST_INT": "forty-two"}):
            assert _get_env_int("TEST_INT", 7) == 7


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self):
        with patch.dict(os.environ, clean_env(), clear=True):
            settings = Settings.from_env(dotenv=False)

        assert settings == Settings()
        assert settings.db_path == Path("data/cronhub.db")
        assert settings.timezone == "UTC"
        assert settings.api_auth_enabled is False

    def test_env_overrides(self):
        env = clean_env(
            CRONHUB_DB_PATH="/var/lib/cronhub/jobs.db",
            CRONHUB_TIMEZONE="Europe/Berlin",
            CRONHUB_HTTP_TIMEOUT="5",
            CRONHUB_SHELL_TIMEOUT="60",
            CRONHUB_WEBHOOK_TIMEOUT="2",
            CRONHUB_LOG_LEVEL="debug",
            CRONHUB_LOG_DIR="/tmp/cronhub-logs",
            API_AUTH_ENABLED="true",
            API_KEY="secret",
        )
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env(dotenv=False)

        assert settings.db_path == Path("/var/lib/cronhub/jobs.db")
        assert settings.timezone == "Europe/Berlin"
        assert settings.http_timeout == 5
        assert settings.shell_timeout == 60
        assert settings.webhook_timeout == 2
        assert settings.log_level == "DEBUG"
        assert settings.log_dir == Path("/tmp/cronhub-logs")
        assert settings.api_auth_enabled is True
        assert settings.api_key == "secret"

    def test_invalid_timeout_falls_back(self):
        with patch.dict(os.environ, clean_env(CRONHUB_HTTP_TIMEOUT="soon"), clear=True):
            settings = Settings.from_env(dotenv=False)

        assert settings.http_timeout == 30

    def test_dotenv_does_not_override(self, tmp_path, monkeypatch):
        """Values from .env fill gaps; existing variables win."""
        (tmp_path / ".env").write_text(
            "CRONHUB_TIMEZONE=Asia/Tokyo\nCRONHUB_LOG_LEVEL=WARNING\n"
        )
        monkeypatch.chdir(tmp_path)

        with patch.dict(os.environ, clean_env(CRONHUB_LOG_LEVEL="ERROR"), clear=True):
            settings = Settings.from_env()

        assert settings.timezone == "Asia/Tokyo"
        assert settings.log_level == "ERROR"

    def test_ensure_directories(self, tmp_path):
        settings = Settings(
            db_path=tmp_path / "data" / "cronhub.db",
            log_dir=tmp_path / "logs",
        )

        settings.ensure_directories()

        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "logs").is_dir()
