"""Configuration module for ashbot."""

from ashbot.config.loader import load_config, save_config, get_config_path
from ashbot.config.schema import Config, RoomConfig

__all__ = ["Config", "RoomConfig", "load_config", "save_config", "get_config_path"]
