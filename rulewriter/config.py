"""Configuration models using Pydantic for validation."""
import os
from typing import Dict, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, ValidationError

from rulewriter.errors import ConfigError


class WriterConfig(BaseModel):
    """Remote-write destination settings."""
    url: str = ""
    timeout: float = 30.0  # seconds
    basic_auth_username: str = ""
    basic_auth_password: str = ""
    custom_headers: Dict[str, str] = Field(default_factory=dict)


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"
    metrics_port: Optional[int] = None


class Config(BaseModel):
    """Root configuration model."""
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    writer: WriterConfig = Field(default_factory=WriterConfig)

    model_config = {"populate_by_name": True}


def _check_url(url: str) -> None:
    try:
        parts = urlsplit(url)
        # .port raises on a malformed port
        parts.port
    except ValueError as e:
        raise ConfigError(f"invalid URL: {e}") from e
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ConfigError(f"invalid URL: {url!r} must be an absolute http(s) URL")


def validate_settings(settings: WriterConfig) -> None:
    """Check writer settings, raising ConfigError on the first problem.

    Nothing here touches the network.
    """
    if settings.basic_auth_username and not settings.basic_auth_password:
        raise ConfigError("basic auth password is required if username is set")

    _check_url(settings.url)

    if settings.timeout <= 0:
        raise ConfigError("timeout must be greater than 0")


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    import yaml

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    writer_env = {
        'url': os.getenv('REMOTE_WRITE_URL'),
        'basic_auth_username': os.getenv('REMOTE_WRITE_USERNAME'),
        'basic_auth_password': os.getenv('REMOTE_WRITE_PASSWORD'),
    }
    for key, value in writer_env.items():
        if value:
            raw_config.setdefault('writer', {})[key] = value

    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    try:
        config = Config(**raw_config)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e

    validate_settings(config.writer)
    return config
