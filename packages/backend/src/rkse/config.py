"""Application configuration via environment variables and CLI overrides.

Uses pydantic-settings to load config from env vars with RKSE_ prefix.
Each value resolves as: explicit override (CLI flag) > RKSE_* env var >
built-in default.

Learn: pydantic-settings gives init kwargs priority over the environment,
so passing the CLI flags as kwargs is all it takes to get the precedence
right. Flags the user didn't pass arrive as None and are dropped first.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class BusConnection:
    """Everything needed to reach the Redis bus and counter store."""

    address: str
    password: Optional[str]
    db: int
    channel: str
    stats_prefix: str


class Settings(BaseSettings):
    """All app configuration. Set via RKSE_* env vars."""

    # Web server
    bind: str = "127.0.0.1:3000"
    static_path: str = "static"

    # Redis
    redis_addr: str = "redis://127.0.0.1:6379"
    redis_password: str = ""  # empty means no password
    redis_db: int = 0
    redis_channel: str = "on_model_selection"
    redis_stats_prefix: str = "selector_stat"

    # Broadcast hub backlog per consumer
    hub_capacity: int = 5

    # Logging
    log_level: str = "info"
    log_json: bool = False

    model_config = {"env_prefix": "RKSE_"}

    @field_validator("bind")
    @classmethod
    def validate_bind(cls, value: str) -> str:
        """Bind address must look like host:port."""
        host, sep, port = value.rpartition(":")
        if not sep or not host or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"bind address must be host:port, got {value!r}")
        return value

    @field_validator("hub_capacity")
    @classmethod
    def validate_capacity(cls, value: int) -> int:
        if value < 1:
            raise ValueError("hub_capacity must be at least 1")
        return value

    @property
    def host(self) -> str:
        # Strip brackets from IPv6 literals like [::1]:3000
        return self.bind.rpartition(":")[0].strip("[]")

    @property
    def port(self) -> int:
        return int(self.bind.rpartition(":")[2])

    @property
    def bus(self) -> BusConnection:
        return BusConnection(
            address=self.redis_addr,
            password=self.redis_password or None,
            db=self.redis_db,
            channel=self.redis_channel,
            stats_prefix=self.redis_stats_prefix,
        )


def load_settings(**overrides: Any) -> Settings:
    """Build Settings, letting non-None overrides win over the environment."""
    explicit = {key: value for key, value in overrides.items() if value is not None}
    return Settings(**explicit)
