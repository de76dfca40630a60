"""Application configuration for reqscope.

Defines configuration models for the telemetry pipeline. Config is a JSON file
validated with Pydantic; two environment variables override it at startup.

Example usage:
    # Load from config file, then apply REQSCOPE_ENV / REQSCOPE_LOG_DIR
    config = AppConfig.load_from_file(config_path).with_env_overrides()

    # Save new configuration
    config.save_to_file(config_path)
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_LOG_DIR",
    "AppConfig",
    "LoggingConfig",
    "load_config",
]

import json
import os
from pathlib import Path
from typing import Literal, Mapping

from platformdirs import user_log_dir
from pydantic import BaseModel, Field, ValidationError

from reqscope.constants import APP_NAME, ENV_VAR_ENVIRONMENT, ENV_VAR_LOG_DIR, ENVIRONMENTS
from reqscope.exceptions import ConfigurationError

# Default log directory (platform-specific, follows OS conventions)
DEFAULT_LOG_DIR = user_log_dir(APP_NAME)


class LoggingConfig(BaseModel):
    """Telemetry pipeline settings.

    Logs are stored directly under log_dir:
        <log_dir>/
        ├── access.log          # production access stage (combined format)
        ├── error.log           # error stage (status >= 400)
        ├── api.log             # /api stage (structured JSON)
        └── access.log.2025-01-27   # rotated archives

    Attributes:
        log_dir: Directory for persistent sinks. Created on first write.
        environment: "development" logs requests to the console in the dev
            format; "production" writes the combined format to access.log.
        streaming_stage: Also log /stream and /video requests to the console
            in the minimal format.
        rotation_enabled: Run the daily rotation scheduler.
        system_log_file: Optional file name (under log_dir) receiving
            WARNING+ system records as JSONL.
    """

    log_dir: str = Field(default=DEFAULT_LOG_DIR, min_length=1)
    environment: Literal["development", "production"] = "production"
    streaming_stage: bool = False
    rotation_enabled: bool = True
    system_log_file: str | None = None

    @property
    def log_path(self) -> Path:
        """Expanded log directory path."""
        return Path(self.log_dir).expanduser()

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


class AppConfig(BaseModel):
    """Root configuration model."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def with_env_overrides(self, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Return a copy with REQSCOPE_ENV / REQSCOPE_LOG_DIR applied.

        Args:
            environ: Environment mapping (defaults to os.environ).

        Returns:
            New AppConfig; self is not modified.

        Raises:
            ConfigurationError: If REQSCOPE_ENV names an unknown environment.
        """
        env = os.environ if environ is None else environ
        updates: dict[str, str] = {}

        environment = env.get(ENV_VAR_ENVIRONMENT, "").strip().lower()
        if environment:
            if environment not in ENVIRONMENTS:
                raise ConfigurationError(
                    f"{ENV_VAR_ENVIRONMENT}={environment!r} is not one of {', '.join(ENVIRONMENTS)}"
                )
            updates["environment"] = environment

        log_dir = env.get(ENV_VAR_LOG_DIR, "").strip()
        if log_dir:
            updates["log_dir"] = log_dir

        if not updates:
            return self
        return self.model_copy(update={"logging": self.logging.model_copy(update=updates)})

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to JSON file.

        Creates parent directories if they don't exist.

        Args:
            config_path: Path where the config JSON file should be saved.
        """
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(), f, indent=2)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file.

        Args:
            config_path: Path to the config JSON file.

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            ConfigurationError: If the file is missing, unreadable, not JSON,
                or fails validation.
        """
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found at {config_path}.")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Could not read config file {config_path}: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"])
                errors.append(f"  - {loc}: {error['msg']}")
            raise ConfigurationError(
                f"Invalid configuration in {config_path}:\n" + "\n".join(errors)
            ) from e


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from a file (or defaults) and apply environment overrides.

    Args:
        config_path: Optional JSON config path. None means defaults.

    Returns:
        Effective AppConfig.
    """
    config = AppConfig.load_from_file(config_path) if config_path is not None else AppConfig()
    return config.with_env_overrides()
