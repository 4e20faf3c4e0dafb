"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.slot_calculator import DEFAULT_STEP_MINUTES

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class BackendConfig(BaseModel):
    """Connection settings for the hosted backend."""
    url: str = ""
    api_key: str = ""

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Allow empty (mock mode) or an http(s) URL."""
        if value and not value.startswith(("http://", "https://")):
            raise ValueError(f"Backend url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")


class BookingConfig(BaseModel):
    """Slot search settings."""
    slot_step_minutes: int = DEFAULT_STEP_MINUTES

    @field_validator("slot_step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        """Ensure the slot step is positive."""
        if value <= 0:
            raise ValueError("slot_step_minutes must be greater than zero")
        return value


class ReminderConfig(BaseModel):
    """Appointment reminder settings."""
    lead_hours: int = 8
    interval_minutes: int = 60

    @field_validator("lead_hours", "interval_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Reminder settings must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    backend: BackendConfig = Field(default_factory=BackendConfig)
    timezone: str = "Europe/Madrid"
    booking: BookingConfig = Field(default_factory=BookingConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
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

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def load_config(config_path: Path | None = None, required: bool = True) -> AppConfig:
    """
    Load the configuration, falling back to defaults when the file is optional.

    Raises:
        FileNotFoundError: If ``required`` and the file does not exist
    """
    path = config_path or get_default_config_path()
    if not required and not path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(path)
