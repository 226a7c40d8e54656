"""Configuration settings for the WhatsApp bot harness."""

import json
import re
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings loaded from environment variables or JSON file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WA_BOT_",
        extra="ignore",
    )

    # Turn-taking timing
    poll_interval: int = Field(
        default=500,
        ge=1,
        description="Interval between inbound count polls (ms)",
    )
    stabilization_window: int = Field(
        default=1200,
        ge=1,
        description="Quiet period after the last new message before a reply counts as complete (ms)",
    )
    reply_timeout: int = Field(
        default=90000,
        ge=1,
        description="Default time to wait for the first reply message of a turn (ms)",
    )
    option_timeout: int = Field(
        default=20000,
        ge=1,
        description="Time to wait for the reply to an automatically selected option (ms)",
    )
    option_check_interval: int = Field(
        default=1000,
        ge=0,
        description="Wait before re-checking for late option prompts (ms)",
    )
    option_backoff: int = Field(
        default=500,
        ge=0,
        description="Pause before sending an automatically selected option (ms)",
    )
    option_max_attempts: int = Field(
        default=5,
        ge=0,
        description="Maximum options answered automatically within one turn",
    )

    # Option detection
    option_markers: list[str] = Field(
        default_factory=lambda: ["Opciones", "Options"],
        description="Literal markers introducing a list of options",
    )
    option_max_lines: int = Field(
        default=3,
        ge=1,
        description="Lines after the marker that may contain options",
    )

    # Bot vocabulary
    early_exit_pattern: str = Field(
        default=r"ya existe",
        description="Case-insensitive regex for the bot's 'already exists' reply",
    )
    skip_keyword: str = Field(
        default="omitir",
        description="Word the bot accepts to skip an optional question",
    )
    name_base: str = Field(
        default="Cultivo",
        description="Prefix for generated resource names",
    )

    # WhatsApp Web surface
    typing_delay: int = Field(
        default=15,
        ge=0,
        description="Delay between typed characters (ms)",
    )
    read_timeout: int = Field(
        default=1200,
        ge=1,
        description="Timeout for reading a single message bubble (ms)",
    )

    # Conversation log
    logs_dir: str = Field(
        default="./logs",
        description="Directory for conversation logs",
    )

    @model_validator(mode='after')
    def validate_timing(self):
        """Validate that the timing settings are consistent."""
        if self.stabilization_window < self.poll_interval:
            raise ValueError(
                "STABILIZATION_WINDOW must not be shorter than POLL_INTERVAL"
            )
        if self.option_timeout > self.reply_timeout:
            raise ValueError(
                "OPTION_TIMEOUT must not exceed REPLY_TIMEOUT"
            )
        try:
            re.compile(self.early_exit_pattern)
        except re.error as e:
            raise ValueError(f"EARLY_EXIT_PATTERN is not a valid regex: {e}")
        if not self.option_markers:
            raise ValueError("OPTION_MARKERS must contain at least one marker")
        return self

    @property
    def logs_path(self) -> Path:
        """Path object for the conversation log directory."""
        return Path(self.logs_dir)

    @property
    def early_exit_regex(self) -> re.Pattern:
        return re.compile(self.early_exit_pattern, re.IGNORECASE)

    @classmethod
    def from_json(cls, json_path: Path) -> "Settings":
        """Load settings from a JSON config file.

        JSON keys use snake_case matching the field names. Fields missing
        from the file fall back to the environment, .env and defaults.
        """
        with open(json_path) as f:
            config_data = json.load(f)
        return cls(**config_data)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the current settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Set the global settings instance."""
    global _settings
    _settings = settings


def load_settings_from_json(json_path: Path) -> Settings:
    """Load settings from JSON file and set as global instance."""
    global _settings
    _settings = Settings.from_json(json_path)
    return _settings
