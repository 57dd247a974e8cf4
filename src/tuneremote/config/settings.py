"""Configuration management for tuneremote.

Loads settings from a YAML configuration file with environment variable
overrides for the access token and endpoint address. Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/tuneremote.yaml")


class AutomationConfig(BaseModel):
    endpoint_host: str = Field(default="localhost", description="Remote debugging host of the player")
    endpoint_port: int = Field(default=9222, ge=1, le=65535)
    cache_duration_ms: int = Field(default=2000, ge=0)
    reconnect_base_delay_ms: int = Field(default=3000, ge=0)
    max_reconnect_attempts: int = Field(default=10, ge=0)
    auto_connect: bool = Field(default=True)
    reconnect_check_interval: float = Field(
        default=300.0, gt=0, description="Seconds between idle reconnect checks"
    )
    evaluate_timeout: float = Field(default=10.0, gt=0)


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3002, ge=1, le=65535)
    public_ip_services: list[str] = Field(
        default_factory=lambda: [
            "https://api.ipify.org",
            "https://api64.ipify.org",
            "https://checkip.amazonaws.com",
            "https://ifconfig.me/ip",
        ]
    )
    public_ip_timeout: float = Field(default=3.0, gt=0)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the API from a browser",
    )


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the tuneremote service.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "TUNEREMOTE_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    auth_token: SecretStr = Field(default=SecretStr("tuneremote-token"))

    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    token = os.environ.get("TOKEN", "")
    cdp_host = os.environ.get("CDP_HOST", "")
    cdp_port = os.environ.get("CDP_PORT", "")
    port = os.environ.get("PORT", "")

    if token:
        yaml_data["auth_token"] = token

    if "automation" not in yaml_data:
        yaml_data["automation"] = {}
    if "server" not in yaml_data:
        yaml_data["server"] = {}

    if cdp_host and not yaml_data["automation"].get("endpoint_host"):
        yaml_data["automation"]["endpoint_host"] = cdp_host
    if cdp_port and not yaml_data["automation"].get("endpoint_port"):
        yaml_data["automation"]["endpoint_port"] = int(cdp_port)
    if port and not yaml_data["server"].get("port"):
        yaml_data["server"]["port"] = int(port)
