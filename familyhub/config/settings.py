"""Configuration settings for FamilyHub."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


STORAGE_BACKENDS = ("json", "sqlite", "memory")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


class Settings:
    """Application settings loaded from a .env file and environment variables.

    Values already present in the environment take precedence over .env.
    """

    def __init__(self):
        env_path = Path(__file__).parent.parent.parent / ".env"
        load_dotenv(dotenv_path=env_path)

        # Logging
        self.log_level: str = self._get_env("LOG_LEVEL", "INFO").upper()
        self.log_dir: Path = Path(self._get_env("LOG_DIR", "logs"))
        self.log_json: bool = self._get_bool("LOG_JSON", False)

        # Storage
        self.storage_backend: str = self._get_env("STORAGE_BACKEND", "json").lower()
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unsupported STORAGE_BACKEND '{self.storage_backend}'. "
                f"Expected one of: {', '.join(STORAGE_BACKENDS)}"
            )
        self.data_dir: Path = Path(self._get_env("DATA_DIR", "data/medications"))
        self.database_path: Path = Path(self._get_env("DATABASE_PATH", "data/familyhub.db"))
        self.max_update_retries: int = self._get_int("MAX_UPDATE_RETRIES", 3, minimum=1)

        # Reminders
        self.reminder_grace_hours: int = self._get_int("REMINDER_GRACE_HOURS", 6, minimum=0)
        self.intake_tolerance_hours: int = self._get_int("INTAKE_TOLERANCE_HOURS", 1, minimum=0)
        self.default_timezone_offset: str = self._get_env("DEFAULT_TIMEZONE_OFFSET", "+00:00")

    def _get_env(self, key: str, default: Optional[str] = None) -> str:
        """Get environment variable with optional default value."""
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int, minimum: Optional[int] = None) -> int:
        """Get an integer environment variable.

        Raises:
            ValueError: If the value is not an integer or below ``minimum``
        """
        raw = self._get_env(key)
        if raw is None or raw.strip() == "":
            return default

        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{key} must be an integer, got {raw!r}") from None

        if minimum is not None and value < minimum:
            raise ValueError(f"{key} must be at least {minimum}, got {value}")
        return value

    def _get_bool(self, key: str, default: bool) -> bool:
        """Get a boolean environment variable ("true"/"false", "1"/"0", ...)."""
        raw = self._get_env(key)
        if raw is None:
            return default

        value = raw.strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        raise ValueError(f"{key} must be a boolean, got {raw!r}")

    def ensure_storage_dirs(self) -> None:
        """Create directories required by the configured storage backend."""
        if self.storage_backend == "json":
            self.data_dir.mkdir(parents=True, exist_ok=True)
        elif self.storage_backend == "sqlite":
            self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        fields = (
            "log_level",
            "log_dir",
            "log_json",
            "storage_backend",
            "data_dir",
            "database_path",
            "max_update_retries",
            "reminder_grace_hours",
            "intake_tolerance_hours",
            "default_timezone_offset",
        )
        values = ", ".join(f"{name}={getattr(self, name)}" for name in fields)
        return f"Settings({values})"
