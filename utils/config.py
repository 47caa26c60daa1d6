from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from exceptions import ConfigError

CONFIG_FILE = "cerberus.config"
CONFIG_ENV = "CERBERUS_CONFIG"
# name used by earlier deployments
LEGACY_CONFIG_ENV = "cerberus_config"

# role historically allowed to remove players from the whitelist
DEFAULT_AUTHORIZED_ROLE_ID = 841184009802219520


class MinecraftServer(BaseModel):
    host: str
    port: int = 25575
    password: str


class Settings(BaseSettings):
    # Discord
    bot_token: str
    authorized_role_id: int = DEFAULT_AUTHORIZED_ROLE_ID
    command_prefix: str = "c+"
    max_concurrent_commands: int = 4

    # RCON
    minecraft: MinecraftServer
    rcon_timeout: float = 5.0

    # App
    log_file: str = "logs.txt"
    log_level: str = "INFO"
    http_port: int = Field(default=8080, validation_alias=AliasChoices("http_port", "PORT"))

    model_config = SettingsConfigDict(env_nested_delimiter="__", extra="ignore")


def _read_blob(path: str | os.PathLike) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return os.environ.get(CONFIG_ENV) or os.environ.get(LEGACY_CONFIG_ENV, "")


def load_settings(path: str | os.PathLike = CONFIG_FILE) -> Settings:
    """
    Read the JSON config from `path`, falling back to the CERBERUS_CONFIG
    environment variable when the file does not exist.
    """
    blob = _read_blob(path)
    if not blob.strip():
        raise ConfigError(f"no configuration: {path} missing and {CONFIG_ENV} (or {LEGACY_CONFIG_ENV}) unset")
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise ConfigError(f"configuration is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object")
    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


@lru_cache
def get_settings() -> Settings:
    return load_settings()
