"""
Configuration management using Pydantic Settings.

Values come from environment variables (or a ``.env`` file) and can be
overridden by a YAML config file. The resulting ``Settings`` are validated
once at startup; the scheduling core only ever sees the derived
``WorkingHoursConfig`` value.
"""

from datetime import time
from pathlib import Path
from typing import Any, Optional

import pendulum
import yaml
from pendulum.tz.exceptions import InvalidTimezone
from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.exceptions import ConfigurationError
from .domain.models import WorkingHoursConfig


def parse_wall_clock(value: Any) -> time:
    """
    Parse an hour setting into a wall-clock time.

    Accepts ``8``, ``"8"``, ``"8:30"``, ``"08:00"`` or a ``time`` object.
    """
    if isinstance(value, time):
        return value

    if isinstance(value, bool):
        raise ValueError(f"Invalid hour value: {value!r}")

    if isinstance(value, int):
        hour, minute = value, 0
    else:
        text = str(value).strip()
        parts = text.split(":")
        if len(parts) not in (1, 2) or not all(p.isdigit() for p in parts):
            raise ValueError(f"Invalid hour value: {value!r}, expected HH or HH:MM")
        hour = int(parts[0])
        minute = int(parts[1]) if len(parts) == 2 else 0

    if not 0 <= hour <= 23:
        raise ValueError(f"Hour must be between 0 and 23, got {hour}")
    if not 0 <= minute <= 59:
        raise ValueError(f"Minute must be between 0 and 59, got {minute}")

    return time(hour=hour, minute=minute)


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    timezone: str = "US/Eastern"  # Resource (doctor) timezone
    client_timezone: str = "US/Eastern"  # Used when a request names none
    start_hour: time = time(8, 0)
    end_hour: time = time(17, 0)
    slot_duration: int = 30
    max_booking_minutes: int = 240
    store_path: Optional[Path] = None  # None keeps bookings in memory
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "INFO"

    @field_validator("start_hour", "end_hour", mode="before")
    @classmethod
    def validate_hour(cls, value: Any) -> time:
        """Accept plain hours as well as HH:MM strings."""
        return parse_wall_clock(value)

    @field_validator("slot_duration", "max_booking_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure durations are positive."""
        if value <= 0:
            raise ValueError("durations must be greater than zero")
        return value

    @field_validator("timezone", "client_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (InvalidTimezone, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def validate_hours_order(self) -> "Settings":
        """Ensure the configured window opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self

    def working_hours(self) -> WorkingHoursConfig:
        """Build the working-hours value handed to the scheduling core."""
        return WorkingHoursConfig(
            start_hour=self.start_hour,
            end_hour=self.end_hour,
            slot_duration_minutes=self.slot_duration,
            resource_timezone=self.timezone,
        )

    @classmethod
    def load_from_yaml(cls, config_path: Path, **overrides: Any) -> "Settings":
        """
        Load configuration from YAML file.

        Keys in the file take precedence over environment variables.

        Args:
            config_path: Path to the YAML config file
            overrides: Values taking precedence over the file

        Returns:
            Settings instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the file is not a YAML mapping
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        data.update(overrides)
        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.cwd() / "config.yaml"


def load_settings(config_path: Path | None = None, **overrides: Any) -> Settings:
    """
    Load and validate settings at startup.

    Uses ``config_path`` when given, else ``./config.yaml`` when present,
    else the environment alone.

    Raises:
        ConfigurationError: If any setting is invalid or the file is unusable
    """
    try:
        if config_path is not None:
            return Settings.load_from_yaml(config_path, **overrides)

        default_path = get_default_config_path()
        if default_path.exists():
            return Settings.load_from_yaml(default_path, **overrides)

        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
    except (FileNotFoundError, ValueError) as exc:
        raise ConfigurationError(str(exc)) from exc
