"""Configuration loading."""

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from ashbot.config.schema import Config
from ashbot.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("config.json")


def get_config_path(path: str | Path | None = None) -> Path:
    """Get the configuration file path."""
    return Path(path).expanduser() if path else DEFAULT_CONFIG_PATH


def load_config(path: str | Path | None = None) -> Config:
    """
    Load configuration from a JSON file.

    Environment variables (ASHBOT_*) override file values. A missing
    file yields the defaults.

    Args:
        path: Config file path, defaults to ./config.json.

    Returns:
        Validated Config.

    Raises:
        ConfigError: If the file cannot be parsed or validated.
    """
    config_path = get_config_path(path)

    data: dict = {}
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"decode {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path}: top level must be an object")
    else:
        logger.warning(f"Config file {config_path} not found, using defaults")

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid config {config_path}: {e}") from e


def save_config(config: Config, path: str | Path | None = None) -> Path:
    """Write configuration back to disk."""
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        json.dumps(config.model_dump(), indent=2),
        encoding="utf-8",
    )
    return config_path
