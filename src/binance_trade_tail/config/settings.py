"""Configuration settings using Pydantic for validation."""

import os
import re
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..clients.binance_ws import BINANCE_STREAM_URL


class StreamConfig(BaseModel):
    """Binance stream configuration."""
    url: str = Field(default=BINANCE_STREAM_URL, description="Binance WebSocket stream URL")
    channels: List[str] = Field(default_factory=list, description="Channels to subscribe to")
    normalize_timestamps: bool = Field(default=False, description="Rewrite E/T as RFC 3339 timestamps")
    batch_size: int = Field(default=32, description="Channels per SUBSCRIBE request")
    request_id: int = Field(default=1, description="Correlation id sent with every SUBSCRIBE")
    keepalive_interval_seconds: float = Field(default=60.0, description="Seconds between pings")
    open_timeout_seconds: float = Field(default=10.0, description="WebSocket handshake timeout")
    max_message_size: int = Field(default=2**20, description="Largest accepted inbound message")
    on_decode_error: str = Field(default="skip", description="Malformed frames: skip or abort")

    @field_validator('batch_size', 'max_message_size')
    @classmethod
    def validate_positive_int(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator('keepalive_interval_seconds', 'open_timeout_seconds')
    @classmethod
    def validate_positive_float(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator('on_decode_error')
    @classmethod
    def validate_on_decode_error(cls, v):
        if v not in ['skip', 'abort']:
            raise ValueError("on_decode_error must be 'skip' or 'abort'")
        return v


class RateLimitConfig(BaseModel):
    """Client-side pacing of control messages."""
    max_permits: int = Field(default=5, description="Control messages allowed per window")
    window_seconds: float = Field(default=1.0, description="Length of the rolling window")

    @field_validator('max_permits')
    @classmethod
    def validate_max_permits(cls, v):
        if v < 1:
            raise ValueError("max_permits must be at least 1")
        return v

    @field_validator('window_seconds')
    @classmethod
    def validate_window(cls, v):
        if v <= 0:
            raise ValueError("window_seconds must be positive")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")
    output: str = Field(default="stderr", description="Log output destination")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        if v.upper() not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v.lower() not in ['json', 'text']:
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class TailerSettings(BaseSettings):
    """Main tailer settings."""

    service_name: str = Field(default="binance-trade-tail", description="Service name")

    stream: StreamConfig = Field(default_factory=StreamConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="BINANCE_TAIL_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )


# ${NAME} or ${NAME:-fallback}; "$${" escapes a literal "${"
_ENV_REFERENCE = re.compile(r'\$(\$?)\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}')


def _resolve_env_reference(match: "re.Match[str]") -> str:
    escaped, name, fallback = match.groups()
    if escaped:
        return match.group(0)[1:]

    value = os.environ.get(name)
    if value:
        return value
    if fallback is not None:
        return fallback
    if value is None:
        raise ValueError(f"Required environment variable '{name}' is not set")
    return value


def expand_env_vars(config: Any) -> Any:
    """
    Expand environment references in every string of a parsed YAML document.

    ``${NAME}`` must be set. ``${NAME:-fallback}`` uses the fallback when
    NAME is unset or empty, as in POSIX shells.

    Raises:
        ValueError: If a required environment variable is not set
    """
    if isinstance(config, dict):
        return {key: expand_env_vars(value) for key, value in config.items()}
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):
        return _ENV_REFERENCE.sub(_resolve_env_reference, config)
    return config


def load_settings(config_file: Optional[str] = None) -> TailerSettings:
    """
    Load settings from a YAML file and environment variables.

    Args:
        config_file: Path to YAML configuration file

    Raises:
        ValueError: If required environment variables are missing
        FileNotFoundError: If config file doesn't exist
    """
    if config_file and os.path.exists(config_file):
        with open(config_file, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        config_data = expand_env_vars(raw_config)
        return TailerSettings(**config_data)

    elif config_file:
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    return TailerSettings()
