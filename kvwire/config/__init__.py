"""Configuration module for kvwire."""

from kvwire.config.loader import get_config_path, load_config
from kvwire.config.schema import ClientConfig, Config, ServerConfig, TransportSettings

__all__ = ["ClientConfig", "Config", "ServerConfig", "TransportSettings", "load_config", "get_config_path"]
