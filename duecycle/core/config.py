"""Application configuration.

Values come from an optional JSON file (``duecycle.json`` in the working
directory) with environment variable overrides on top:

    DUECYCLE_DB_PATH    Path to the SQLite database.
    DUECYCLE_LOG_LEVEL  Logging level name (DEBUG, INFO, ...).
"""

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from duecycle.core.exceptions import InvalidConfigurationError

CONFIG_FILENAME = "duecycle.json"

_ENV_OVERRIDES = {
    "DUECYCLE_DB_PATH": "db_path",
    "DUECYCLE_LOG_LEVEL": "log_level",
}


class AppConfig(BaseModel):
    """Configuration for a DueCycle installation."""

    db_path: Path = Path(".duecycle/duecycle.db")
    currency: str = Field(default="USD", min_length=3, max_length=3, pattern=r"^[A-Z]{3}$")
    usage_stats_window: int = Field(default=6, ge=1)  # Cycles considered for usage stats
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file and environment.

    Args:
        path: Config file to read. Defaults to ./duecycle.json; a missing
            default file is not an error.

    Returns:
        Validated AppConfig.

    Raises:
        InvalidConfigurationError: If the file is unreadable or values are invalid.
    """
    data: dict = {}
    config_path = path if path is not None else Path.cwd() / CONFIG_FILENAME

    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise InvalidConfigurationError(f"Cannot read {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfigurationError(f"{config_path} must contain a JSON object")
    elif path is not None:
        raise InvalidConfigurationError(f"Config file not found: {config_path}")

    for env_var, field_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            data[field_name] = value

    try:
        return AppConfig(**data)
    except ValidationError as e:
        raise InvalidConfigurationError(str(e)) from e
