"""Configuration loading utilities."""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from kvwire.config.schema import ClientConfig, Config, ServerConfig


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".kvwire" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if not path.exists():
        return Config()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("top-level JSON value must be an object")
        data = convert_keys(data)
        return Config(
            client=ClientConfig(**_section(data, "client")),
            server=ServerConfig(**_section(data, "server")),
        )
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        raise ValueError(
            f"Failed to load config from {path}: {e}. "
            "Fix the file or remove it to use defaults."
        ) from e


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' must be an object")
    return section


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)
