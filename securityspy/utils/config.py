from __future__ import annotations

import configparser
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    url: str
    username: Optional[str] = None
    password: Optional[str] = None
    verify_ssl: bool = False
    timeout: float = 10.0
    # Directory for request/response captures when LOG_LEVEL=debug.
    http_log_dir: Optional[str] = None


class EventsConfig(BaseModel):
    retry_interval: float = 10.0
    refresh_interval: float = 0.0  # 0 disables the periodic refresh
    refresh_on_config_change: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_file: Optional[str] = None
    max_log_size: int = 10485760
    backup_count: int = 5


class Config(BaseModel):
    server: ServerConfig = Field(alias="SERVER")
    events: EventsConfig = Field(default_factory=EventsConfig, alias="EVENTS")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, alias="LOGGING")

    model_config = {"validate_by_name": True}


def load_config(config_path: Path) -> Config:
    parser = configparser.ConfigParser()
    read = parser.read(config_path)
    if not read:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    config_dict = {s: dict(parser.items(s)) for s in parser.sections()}

    return Config.model_validate(config_dict)


def save_config(config: Config, config_path: Path):
    parser = configparser.ConfigParser()

    for field_name, field in Config.model_fields.items():
        alias = field.alias if field.alias else field_name
        value = getattr(config, field_name)

        if isinstance(value, BaseModel):
            section_items = {
                k: str(v) for k, v in value.model_dump().items() if v is not None
            }
            if section_items:
                parser[alias] = section_items

    with Path(config_path).open("w") as f:
        parser.write(f)
