"""Configuration management for calendarlog."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from calendarlog.calendar.rrule_engine import DEFAULT_MAX_OCCURRENCES
from calendarlog.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_AGGREGATION_NAME = "events"
DEFAULT_NOTIFICATION_OFFSET_MINUTES = 30

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True)
class CalendarLogSettings:
    """Resolved application settings with explicit defaults."""

    log_level: str = "INFO"
    log_path: Optional[Path] = None
    aggregation_name: str = DEFAULT_AGGREGATION_NAME
    notification_offset_minutes: int = DEFAULT_NOTIFICATION_OFFSET_MINUTES
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES
    sort_results: bool = False
    expand_all_templates: bool = False

    def __post_init__(self) -> None:
        if self.notification_offset_minutes < 0:
            raise ConfigurationError("notification_offset_minutes must be >= 0")
        if self.max_occurrences < 1:
            raise ConfigurationError("max_occurrences must be >= 1")
        if not self.aggregation_name:
            raise ConfigurationError("aggregation_name must not be empty")

    @classmethod
    def from_mapping(cls, cfg: dict[str, Any]) -> CalendarLogSettings:
        """Build settings from a config dictionary, keeping defaults for missing keys."""
        known = {k: v for k, v in cfg.items() if k in cls.__dataclass_fields__}
        return replace(cls(), **known)


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment to avoid
        surprising overrides of user's environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.debug("Failed to read .env file (continuing): %s", self.env_file_path, exc_info=True)
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export "):].strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from environment variables.

        Recognizes:
        - CALENDARLOG_LOG_LEVEL -> 'log_level'
        - CALENDARLOG_LOG_PATH -> 'log_path' (JSON-lines mutation log file)
        - CALENDARLOG_AGGREGATION_NAME -> 'aggregation_name'
        - CALENDARLOG_NOTIFICATION_OFFSET_MINUTES -> 'notification_offset_minutes' (int >= 0)
        - CALENDARLOG_MAX_OCCURRENCES -> 'max_occurrences' (int > 0)
        - CALENDARLOG_SORT_RESULTS -> 'sort_results' (bool)
        - CALENDARLOG_EXPAND_ALL_TEMPLATES -> 'expand_all_templates' (bool)

        Invalid values are logged and ignored.

        Returns:
            Configuration dictionary
        """
        cfg: dict[str, Any] = {}

        level = os.environ.get("CALENDARLOG_LOG_LEVEL")
        if level:
            if level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
                cfg["log_level"] = level.upper()
            else:
                logger.warning("Invalid CALENDARLOG_LOG_LEVEL=%r; ignoring", level)

        log_path = os.environ.get("CALENDARLOG_LOG_PATH")
        if log_path:
            cfg["log_path"] = Path(log_path).expanduser()

        aggregation = os.environ.get("CALENDARLOG_AGGREGATION_NAME")
        if aggregation:
            cfg["aggregation_name"] = aggregation.strip()

        offset = self._read_int("CALENDARLOG_NOTIFICATION_OFFSET_MINUTES", minimum=0)
        if offset is not None:
            cfg["notification_offset_minutes"] = offset

        max_occurrences = self._read_int("CALENDARLOG_MAX_OCCURRENCES", minimum=1)
        if max_occurrences is not None:
            cfg["max_occurrences"] = max_occurrences

        for key, field_name in (
            ("CALENDARLOG_SORT_RESULTS", "sort_results"),
            ("CALENDARLOG_EXPAND_ALL_TEMPLATES", "expand_all_templates"),
        ):
            flag = self._read_bool(key)
            if flag is not None:
                cfg[field_name] = flag

        return cfg

    @staticmethod
    def _read_bool(key: str) -> Optional[bool]:
        raw = os.environ.get(key)
        if not raw:
            return None
        value = raw.strip().lower()
        if value in _TRUTHY:
            return True
        if value in _FALSY:
            return False
        logger.warning("Invalid %s=%r; ignoring", key, raw)
        return None

    @staticmethod
    def _read_int(key: str, minimum: int) -> Optional[int]:
        raw = os.environ.get(key)
        if not raw:
            return None
        try:
            value = int(raw)
        except ValueError:
            logger.warning("Invalid %s=%r; ignoring", key, raw)
            return None
        if value < minimum:
            logger.warning("%s=%d is below %d; ignoring", key, value, minimum)
            return None
        return value

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment.

        This is the main entry point for loading configuration.

        Returns:
            Configuration dictionary
        """
        self.load_env_file()
        return self.build_config_from_env()

    def load_settings(self) -> CalendarLogSettings:
        """Load configuration and resolve it into settings."""
        return CalendarLogSettings.from_mapping(self.load_full_config())

