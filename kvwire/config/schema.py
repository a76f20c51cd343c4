"""Configuration schema using Pydantic.

Only transport addresses come from the environment: ``KVWIRE_URL`` for the
client and ``KVWIRE_SERVER_HOST`` / ``KVWIRE_SERVER_PORT`` for the reference
server. Everything else is set in code or the config file. File values
override the environment, which overrides defaults.
"""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _check_ws_url(value: str) -> str:
    value = value.strip()
    if not value.startswith(("ws://", "wss://")):
        raise ValueError(f"url must start with ws:// or wss://, got {value!r}")
    return value


class TransportSettings(BaseSettings):
    """Server address for the client, read from ``KVWIRE_URL``."""
    url: str = "ws://localhost:8080"

    model_config = SettingsConfigDict(env_prefix="KVWIRE_")

    @field_validator("url")
    @classmethod
    def _check_scheme(cls, value: str) -> str:
        return _check_ws_url(value)


class ClientConfig(BaseModel):
    """Connection settings for one client."""
    url: str = Field(default_factory=lambda: TransportSettings().url)
    call_timeout: float | None = Field(default=None, gt=0)  # Seconds; None waits until reply or close
    open_timeout: float | None = Field(default=10.0, gt=0)
    close_timeout: float | None = Field(default=10.0, gt=0)
    ping_interval: float | None = Field(default=20.0, gt=0)  # None disables keepalive pings
    ping_timeout: float | None = Field(default=20.0, gt=0)
    max_frame_size: int | None = Field(default=2**20, gt=0)

    @field_validator("url")
    @classmethod
    def _check_scheme(cls, value: str) -> str:
        return _check_ws_url(value)


class ServerConfig(BaseSettings):
    """Reference store server listen address."""
    host: str = "localhost"
    port: int = Field(default=8080, ge=0, le=65535)  # 0 binds an ephemeral port

    model_config = SettingsConfigDict(env_prefix="KVWIRE_SERVER_")


class Config(BaseModel):
    """Root configuration for kvwire."""
    client: ClientConfig = Field(default_factory=ClientConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
