"""Unit tests for settings loading."""

import importlib

import pytest

from familyhub.config.settings import Settings

# The package exposes a Settings instance under the same name as this module
settings_module = importlib.import_module("familyhub.config.settings")


@pytest.fixture
def clean_env(monkeypatch):
    """Remove FamilyHub variables so defaults apply."""
    for key in (
        "LOG_LEVEL", "LOG_DIR", "LOG_JSON", "STORAGE_BACKEND", "DATA_DIR",
        "DATABASE_PATH", "MAX_UPDATE_RETRIES", "REMINDER_GRACE_HOURS",
        "INTAKE_TOLERANCE_HOURS", "DEFAULT_TIMEZONE_OFFSET",
    ):
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the test
    monkeypatch.setattr(settings_module, "load_dotenv", lambda **kwargs: False)
    return monkeypatch


class TestSettings:
    """Test cases for Settings."""

    def test_defaults(self, clean_env):
        settings = Settings()

        assert settings.storage_backend == "json"
        assert settings.max_update_retries == 3
        assert settings.reminder_grace_hours == 6
        assert settings.intake_tolerance_hours == 1
        assert settings.default_timezone_offset == "+00:00"
        assert settings.log_json is False

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("STORAGE_BACKEND", "SQLite")
        clean_env.setenv("REMINDER_GRACE_HOURS", "4")
        clean_env.setenv("LOG_JSON", "yes")
        clean_env.setenv("LOG_LEVEL", "debug")

        settings = Settings()

        assert settings.storage_backend == "sqlite"
        assert settings.reminder_grace_hours == 4
        assert settings.log_json is True
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("key,value", [
        ("STORAGE_BACKEND", "mongo"),
        ("MAX_UPDATE_RETRIES", "0"),
        ("REMINDER_GRACE_HOURS", "six"),
        ("LOG_JSON", "maybe"),
    ])
    def test_invalid_values_rejected(self, clean_env, key, value):
        clean_env.setenv(key, value)

        with pytest.raises(ValueError, match=key):
            Settings()

    def test_repr_lists_fields(self, clean_env):
        assert "storage_backend=json" in repr(Settings())
